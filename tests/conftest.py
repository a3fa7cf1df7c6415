import pytest
from decimal import Decimal

from estimator import create_app
from estimator.database import get_session
from estimator.models import Material, Product, Estimation
from estimator.services.storage_service import StorageService, set_storage_service


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite, no Redis)."""
    app = create_app('config.TestConfig')
    app.config['TESTING'] = True
    return app


@pytest.fixture(scope='function')
def app_context(app):
    """Push an application context for code reading current_app."""
    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app_context):
    """Database session; every table is emptied after the test."""
    session = get_session()
    yield session
    session.rollback()
    for model in (Estimation, Material, Product):
        session.query(model).delete()
    session.commit()


@pytest.fixture
def owner():
    """Authenticated user id for the main test user."""
    return 'user-1'


@pytest.fixture
def other_owner():
    """Second user for isolation tests."""
    return 'user-2'


@pytest.fixture(scope='function')
def material(session, owner):
    """Material priced 10.00 per kg."""
    material = Material(owner_id=owner, name='Plywood', unit='kg', unit_price=Decimal('10.00'))
    session.add(material)
    session.commit()
    return material


@pytest.fixture(scope='function')
def second_material(session, owner):
    """Material priced 0.25 per piece."""
    material = Material(owner_id=owner, name='Screw', unit='piece', unit_price=Decimal('0.25'))
    session.add(material)
    session.commit()
    return material


@pytest.fixture(scope='function')
def product(session, owner):
    """Product without image."""
    product = Product(owner_id=owner, name='Bookshelf')
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def other_material(session, other_owner):
    """Material of the second user."""
    material = Material(owner_id=other_owner, name='Steel', unit='m', unit_price=Decimal('7.50'))
    session.add(material)
    session.commit()
    return material


@pytest.fixture(scope='function')
def storage(app_context, mocker):
    """StorageService backed by a mocked boto3 client, installed as the singleton."""
    service = StorageService(client=mocker.MagicMock(), ensure_bucket=False)
    set_storage_service(service)
    yield service
    set_storage_service(None)


@pytest.fixture(scope='function')
def authenticated_client(client, owner):
    """Create authenticated client for the main test user."""
    with client.session_transaction() as sess:
        sess['user_id'] = owner
    return client
