"""
Pytest fixtures for repairdesk backend tests.

Every test gets a fresh app bound to an in-memory SQLite database, two
tenants (company A and company B), one location each, and users for each
role. Route tests log in through /api/auth/login and send bearer headers.
"""

import pytest

from repairdesk import create_app
from repairdesk.extensions import db
from repairdesk.models import Company, Location, Customer
from repairdesk.services.auth_service import create_user, create_default_roles, assign_role


PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'MAIL_SERVER': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant)."""
    company = Company(name="Fix-It Phones", code="FIXIT", is_active=True)
    db_session.add(company)
    db_session.commit()
    create_default_roles(company.id)
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    company = Company(name="Beta Repairs", code="BETA", is_active=True)
    db_session.add(company)
    db_session.commit()
    create_default_roles(company.id)
    return company


@pytest.fixture(scope='function')
def location_a(db_session, company_a):
    """Main shop of company A; no default tax."""
    location = Location(company_id=company_a.id, name="Main Street", tax_rate_bps=0, tax_enabled=False)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def taxed_location_a(db_session, company_a):
    """Second shop of company A with an 8.5% default tax."""
    location = Location(company_id=company_a.id, name="Mall Kiosk", tax_rate_bps=850, tax_enabled=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def location_b(db_session, company_b):
    location = Location(company_id=company_b.id, name="Beta Downtown", tax_rate_bps=0, tax_enabled=False)
    db_session.add(location)
    db_session.commit()
    return location


def make_user(company, location, username, role_name):
    user = create_user(
        username=username,
        email=f"{username}@{company.code.lower()}.test",
        password=PASSWORD,
        company_id=company.id,
        location_id=location.id if location is not None else None,
    )
    assign_role(user.id, role_name)
    return user


@pytest.fixture(scope='function')
def admin_a(db_session, company_a, location_a):
    return make_user(company_a, location_a, "admin_a", "admin")


@pytest.fixture(scope='function')
def manager_a(db_session, company_a, location_a):
    return make_user(company_a, location_a, "manager_a", "manager")


@pytest.fixture(scope='function')
def frontdesk_a(db_session, company_a, location_a):
    return make_user(company_a, location_a, "frontdesk_a", "frontdesk")


@pytest.fixture(scope='function')
def technician_a(db_session, company_a, location_a):
    return make_user(company_a, location_a, "technician_a", "technician")


@pytest.fixture(scope='function')
def admin_b(db_session, company_b, location_b):
    return make_user(company_b, location_b, "admin_b", "admin")


@pytest.fixture(scope='function')
def customer_a(db_session, company_a):
    customer = Customer(company_id=company_a.id, first_name="Dana", last_name="Reyes", email="dana@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, company_b):
    customer = Customer(company_id=company_b.id, first_name="Sam", last_name="Lee", email="sam@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_a):
    return auth_headers(get_auth_token(client, admin_a.username))


@pytest.fixture(scope='function')
def frontdesk_headers(client, frontdesk_a):
    return auth_headers(get_auth_token(client, frontdesk_a.username))


@pytest.fixture(scope='function')
def technician_headers(client, technician_a):
    return auth_headers(get_auth_token(client, technician_a.username))


@pytest.fixture(scope='function')
def admin_b_headers(client, admin_b):
    return auth_headers(get_auth_token(client, admin_b.username))
