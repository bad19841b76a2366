"""
Pytest fixtures for ERP backend tests.

Provides the application (in-memory SQLite), a fresh database per test,
two tenants with their owners, a sales_viewer, and token helpers.

External services are replaced for the whole session:
- Alimtalk: httpx.MockTransport that records every form it receives
- LLM: tests that need it install a stub under app.extensions["llm_client"]
"""

from urllib.parse import parse_qs

import httpx
import pytest

from erp import create_app
from erp.config import Settings
from erp.extensions import db
from erp.models import Business, Customer, Product, User
from erp.models.auth import ROLE_ADMIN, ROLE_SALES_VIEWER
from erp.services import rate_limit_service, token_service
from erp.services.auth_service import hash_password


PASSWORD = "Tiger#Moon7x"

JWT_SECRET = "test-jwt-secret-0123456789-abcdefghij"
SESSION_SECRET = "test-session-secret-9876543210-zyxwvut"


def make_settings(**overrides) -> Settings:
    values = {
        "jwt_secret": JWT_SECRET,
        "session_secret": SESSION_SECRET,
        "frontend_url": "http://localhost:3000",
        "app_env": "test",
        "bcrypt_rounds": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def install_alimtalk_recorder(app) -> list:
    """Route Alimtalk sends to an in-memory list of submitted forms."""
    outbox: list = []

    def handler(request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}
        outbox.append(form)
        return httpx.Response(200, json={"result": "100"})

    app.extensions["alimtalk_transport"] = httpx.MockTransport(handler)
    app.extensions["alimtalk_outbox"] = outbox
    return outbox


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app(
        make_settings(),
        config_overrides={
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'CSRF_ENABLED': False,
            'RATE_LIMIT_ENABLED': False,
            'UPLOAD_PATH': str(tmp_path_factory.mktemp('uploads')),
            'ALIMTALK_API_KEY': 'test-alimtalk-key',
        },
    )
    install_alimtalk_recorder(app)

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
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions["alimtalk_outbox"].clear()
        app.extensions.pop("llm_client", None)
        rate_limit_service.reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def alimtalk_outbox(app, db_session):
    return app.extensions["alimtalk_outbox"]


def _make_owner(db_session, *, email, name, business_number, company_name):
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD),
        name=name,
        phone="010-1234-5678",
        role=ROLE_ADMIN,
    )
    db_session.add(user)
    db_session.flush()

    business = Business(
        user_id=user.id,
        business_number=business_number,
        company_name=company_name,
        representative=name,
        address="서울시 강남구 테헤란로 1",
        phone="02-555-0100",
    )
    db_session.add(business)
    db_session.commit()
    return user, business


@pytest.fixture(scope='function')
def owner_a(db_session):
    """Owner of business A (first tenant)."""
    return _make_owner(
        db_session,
        email="owner_a@acme.co.kr",
        name="김대표",
        business_number="1234567890",
        company_name="에이상사",
    )


@pytest.fixture(scope='function')
def owner_b(db_session):
    """Owner of business B (second tenant)."""
    return _make_owner(
        db_session,
        email="owner_b@beta.co.kr",
        name="이사장",
        business_number="2223334444",
        company_name="비상사",
    )


@pytest.fixture(scope='function')
def user_a(owner_a):
    return owner_a[0]


@pytest.fixture(scope='function')
def business_a(owner_a):
    return owner_a[1]


@pytest.fixture(scope='function')
def user_b(owner_b):
    return owner_b[0]


@pytest.fixture(scope='function')
def business_b(owner_b):
    return owner_b[1]


@pytest.fixture(scope='function')
def viewer_a(db_session, business_a):
    """sales_viewer bound to business A."""
    user = User(
        email="viewer@acme.co.kr",
        password_hash=hash_password(PASSWORD),
        name="박영업",
        phone="010-9999-0000",
        role=ROLE_SALES_VIEWER,
        business_id=business_a.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer_a(db_session, business_a):
    customer = Customer(
        business_id=business_a.id,
        customer_code="C0001",
        name="가나다유통",
        business_number="1112233333",
        customer_type="매출처",
        phone="02-777-8888",
        manager_contact="010-2222-3333",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, business_b):
    customer = Customer(
        business_id=business_b.id,
        customer_code="C0001",
        name="라마바물산",
        customer_type="매입처",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product_a(db_session, business_a):
    product = Product(
        business_id=business_a.id,
        product_code="P001",
        name="A4 복사용지",
        spec="80g",
        unit="BOX",
        buy_price=20000,
        sell_price=25000,
        category="사무용품",
        tax_type="tax_separate",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, business_b):
    product = Product(
        business_id=business_b.id,
        product_code="P001",
        name="볼펜",
        sell_price=1000,
        tax_type="tax_separate",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def auth_headers(app):
    """auth_headers(user, business_id=None) -> Authorization header dict."""
    def build(user, business_id=None):
        tokens = token_service.issue_tokens(user, business_id)
        return {'Authorization': f'Bearer {tokens.access_token}'}
    return build


@pytest.fixture(scope='function')
def headers_a(auth_headers, user_a, business_a):
    return auth_headers(user_a, business_a.id)


@pytest.fixture(scope='function')
def headers_b(auth_headers, user_b, business_b):
    return auth_headers(user_b, business_b.id)


@pytest.fixture(scope='function')
def viewer_headers(auth_headers, viewer_a, business_a):
    return auth_headers(viewer_a, business_a.id)
