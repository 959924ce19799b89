import pytest
from decimal import Decimal

from config import TestConfig
from ryme import create_app
from ryme import database
from ryme.database import Base, get_session
from ryme.models import Product
from ryme.offline.models import OfflineBase


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application instance backed by throwaway SQLite files."""
    db_dir = tmp_path_factory.mktemp('db')

    class Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{db_dir / 'ryme.db'}"
        OFFLINE_QUEUE_URL = f"sqlite:///{db_dir / 'offline.db'}"

    app = create_app(Config)
    yield app
    database.db_session.remove()
    database.drop_schema()


@pytest.fixture(autouse=True)
def clean_state(app):
    """Every test starts with empty tables, an empty queue and the gate online."""
    yield
    session = get_session()
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()

    gate = app.extensions['gate']
    with gate.queue.engine.begin() as conn:
        for table in OfflineBase.metadata.sorted_tables:
            conn.execute(table.delete())
    gate._online = True
    gate._resolved.clear()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for the current thread."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def product_factory(session):
    """Create products priced with a fixed markup (sales_price = cost + markup)."""
    def _create(name, stock, cost='10.00', markup_amount='5.00'):
        product = Product(
            name=name,
            product_name=name,
            sorting_code=name[:3].upper(),
            description='',
            stock_quantity=stock,
            cost_of_production=Decimal(cost),
            markup_percentage=Decimal('0'),
            markup_amount=Decimal(markup_amount),
            sales_price=Decimal(cost) + Decimal(markup_amount),
            profit=Decimal(markup_amount),
        )
        session.add(product)
        session.commit()
        return product
    return _create


@pytest.fixture(scope='function')
def shampoo(product_factory):
    """Sells at 100.00, costs 60.00."""
    return product_factory('Shampoo', stock=10, cost='60.00', markup_amount='40.00')


@pytest.fixture(scope='function')
def soap(product_factory):
    """Sells at 50.00, costs 20.00."""
    return product_factory('Soap', stock=20, cost='20.00', markup_amount='30.00')
