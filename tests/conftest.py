import pytest
from decimal import Decimal

from natapos import create_app
from natapos.database import create_all, drop_all, get_session
from natapos.models import Staff, StaffRole
from natapos.services import shift_service
from natapos.state import get_app_state


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database)."""
    app = create_app('config.TestConfig')
    ctx = app.app_context()
    ctx.push()
    create_all()

    yield app

    get_session().remove()
    drop_all()
    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def state(app):
    """Application state (stores) of the test app."""
    return get_app_state(app)


@pytest.fixture(scope='function')
def staff(session):
    """Create a cashier."""
    staff = Staff(full_name='Sari Dewi', email='sari@natafood.test', role=StaffRole.CASHIER, active=True)
    session.add(staff)
    session.commit()
    return staff


@pytest.fixture(scope='function')
def other_staff(session):
    staff = Staff(full_name='Budi Santoso', email='budi@natafood.test', role=StaffRole.KITCHEN, active=True)
    session.add(staff)
    session.commit()
    return staff


@pytest.fixture(scope='function')
def open_shift(session, staff):
    """Open shift for `staff` with a 200.000 float."""
    return shift_service.open_shift(session, staff.id, Decimal('200000'))


@pytest.fixture(scope='function')
def authenticated_client(client, staff):
    """Client with `staff` signed in."""
    with client.session_transaction() as sess:
        sess['staff_id'] = staff.id
    return client


@pytest.fixture
def kitchen_items():
    return [
        {'product_id': 1, 'name': 'Nasi Goreng', 'price': 25000, 'quantity': 2, 'notes': 'extra pedas'},
        {'product_id': 2, 'name': 'Es Teh', 'price': 5000, 'quantity': 2},
    ]
