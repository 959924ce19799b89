"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'ryme')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'ryme')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'ryme')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    # Create missing tables on startup (local SQLite setups and tests)
    DB_AUTO_CREATE = os.getenv('DB_AUTO_CREATE', 'false').lower() == 'true'

    # Recycle bin: entries live exactly this long after deletion
    RECYCLE_BIN_TTL_DAYS = 50
    RECYCLE_BIN_SWEEP_ON_START = os.getenv('RECYCLE_BIN_SWEEP_ON_START', 'true').lower() == 'true'

    # Mark-paid transaction (optimistic retry on write-write conflicts)
    MARK_PAID_MAX_ATTEMPTS = int(os.getenv('MARK_PAID_MAX_ATTEMPTS', '8'))
    MARK_PAID_RETRY_BACKOFF = float(os.getenv('MARK_PAID_RETRY_BACKOFF', '0.05'))

    # Offline write-queue (client-local durable storage)
    OFFLINE_QUEUE_URL = os.getenv('OFFLINE_QUEUE_URL', 'sqlite:///offline_queue.db')

    # Redis Cache Configuration
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_DASHBOARD_TTL = int(os.getenv('CACHE_DASHBOARD_TTL', '120'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'ryme')


class TestConfig(Config):
    """Configuration used by the test-suite (SQLite file DB, no Redis)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///ryme_test.db')
    SQLALCHEMY_ECHO = False
    DB_AUTO_CREATE = True
    RECYCLE_BIN_SWEEP_ON_START = False
    MARK_PAID_MAX_ATTEMPTS = 20
    MARK_PAID_RETRY_BACKOFF = 0.01
    OFFLINE_QUEUE_URL = os.getenv('TEST_OFFLINE_QUEUE_URL', 'sqlite:///ryme_test_offline.db')
    CACHE_ENABLED = False
