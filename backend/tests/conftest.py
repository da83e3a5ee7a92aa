"""
Pytest fixtures for PartsDesk backend tests.

Provides test database setup, a two-company scope layout, one user per
role, token helpers and the test client.

Layout:
    Company 1: stores NYC001 (retailer 1), NYC002 (retailer 2)
    Company 2: store LA001 (retailer 3)
"""

from types import SimpleNamespace

import pytest

from partsdesk import create_app
from partsdesk.extensions import db
from partsdesk.models import Company, Store, Retailer, Part
from partsdesk.permissions import Actor
from partsdesk.services import order_service
from partsdesk.services.auth_service import create_user
from partsdesk.services.session_service import create_session


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_LOG_ROUNDS': 4,
        'ORDER_STATUS_RETRY_ATTEMPTS': 3,
        'ORDER_STATUS_RETRY_BACKOFF': 0,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    db.session.remove()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def world(db_session):
    """Companies, stores, retailers and parts."""
    db_session.add_all([
        Company(id="1", name="AutoParts Plus"),
        Company(id="2", name="Premier Auto Supply"),
    ])
    db_session.flush()
    db_session.add_all([
        Store(code="NYC001", company_id="1", name="Manhattan Central Store"),
        Store(code="NYC002", company_id="1", name="Brooklyn East Store"),
        Store(code="LA001", company_id="2", name="Hollywood Store"),
    ])
    db_session.flush()
    db_session.add_all([
        Retailer(id=1, name="Downtown Auto Parts", store_code="NYC001"),
        Retailer(id=2, name="Quick Fix Auto", store_code="NYC002"),
        Retailer(id=3, name="Sunset Auto Supply", store_code="LA001"),
        Part(part_number="SP-001-NGK", name="NGK Spark Plug", category="Ignition System",
             price=1299, basic_discount=5, scheme_discount=3, additional_discount=2),
        Part(part_number="OF-003-MANN", name="Mann Oil Filter", category="Filters",
             price=899, basic_discount=0, scheme_discount=0, additional_discount=0),
    ])
    db_session.commit()
    return SimpleNamespace(companies=("1", "2"), stores=("NYC001", "NYC002", "LA001"), retailers=(1, 2, 3))


@pytest.fixture(scope='function')
def users(world):
    """One user per role, plus an admin for company 2."""
    return SimpleNamespace(
        super_admin=create_user("Sam Super", "super@test.local", PASSWORD, "super_admin"),
        admin=create_user("Jane Admin", "admin@company1.test", PASSWORD, "admin", company_id="1"),
        admin2=create_user("Paul Admin", "admin@company2.test", PASSWORD, "admin", company_id="2"),
        manager=create_user("Bob Manager", "manager@nyc001.test", PASSWORD, "manager",
                            company_id="1", store_id="NYC001"),
        storeman=create_user("Alice Storeman", "alice@nyc001.test", PASSWORD, "storeman",
                             company_id="1", store_id="NYC001"),
        salesman=create_user("Charlie Sales", "charlie@nyc001.test", PASSWORD, "salesman",
                             company_id="1", store_id="NYC001"),
        la_storeman=create_user("Lee Storeman", "lee@la001.test", PASSWORD, "storeman",
                                company_id="2", store_id="LA001"),
        retailer=create_user("Michael Johnson", "retailer@downtown.test", PASSWORD, "retailer",
                             retailer_id=1),
    )


@pytest.fixture(scope='function')
def actors(users):
    return SimpleNamespace(**{name: Actor.from_user(user) for name, user in vars(users).items()})


@pytest.fixture(scope='function')
def headers_for(users):
    """Return a function that builds Authorization headers for a user."""
    def _headers(user):
        _session, token = create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture(scope='function')
def make_order(actors, users):
    """Place an order at a store through the service layer (as the company admin)."""
    def _make(store_code="NYC001", retailer_id=1, items=None, actor=None, **kwargs):
        if items is None:
            items = [{"part_number": "SP-001-NGK", "quantity": 2}]
        return order_service.create_order(
            actor or actors.admin,
            retailer_id,
            items,
            store_code=store_code,
            user_id=users.admin.id,
            **kwargs,
        )
    return _make
