"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify

from ryme.database import init_db, get_session


def _configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    app.logger.setLevel(level)


def _build_core(app):
    """Wire the executor, live query hub and connectivity gate."""
    from ryme.commands import CommandExecutor, read_topic
    from ryme.offline import ConnectivityGate, OfflineQueue
    from ryme.services.live_query import LiveQueryHub

    settings = {
        key: app.config.get(key)
        for key in ('MARK_PAID_MAX_ATTEMPTS', 'MARK_PAID_RETRY_BACKOFF', 'RECYCLE_BIN_TTL_DAYS', 'CACHE_DASHBOARD_TTL')
    }
    executor = CommandExecutor(get_session, cache=app.extensions.get('cache'), settings=settings)
    hub = LiveQueryHub(executor.read, read_topic)
    executor.hub = hub

    queue = OfflineQueue(app.config['OFFLINE_QUEUE_URL'])
    gate = ConnectivityGate(executor, queue, online=True)

    app.extensions['executor'] = executor
    app.extensions['live_queries'] = hub
    app.extensions['gate'] = gate


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for dashboard aggregates
    from ryme.services.cache_service import init_cache
    init_cache(app)

    # Prometheus instrumentation
    from ryme.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    init_db(app)
    _build_core(app)

    if app.config.get('RECYCLE_BIN_SWEEP_ON_START'):
        from ryme.services.recycle_bin_service import sweep_expired
        removed = sweep_expired(get_session())
        get_session().remove()
        app.logger.info(f"[RECYCLE] Startup sweep removed {removed} expired entries")

    # Error handlers
    from ryme.exceptions import RymeError

    @app.errorhandler(RymeError)
    def handle_ryme_error(error):
        """Domain errors become JSON with their own status code."""
        app.logger.warning(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}", exc_info=True)
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from ryme.blueprints.products import products_bp
    from ryme.blueprints.orders import orders_bp
    from ryme.blueprints.recycle_bin import recycle_bin_bp
    from ryme.blueprints.activity_log import activity_log_bp
    from ryme.blueprints.dashboard import dashboard_bp
    from ryme.blueprints.sync import sync_bp
    from ryme.blueprints.metrics import metrics_bp

    app.register_blueprint(products_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(recycle_bin_bp)
    app.register_blueprint(activity_log_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(metrics_bp)

    from ryme.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
