# conftest.py
import pytest
import fakeredis

from collabchat import create_app
from collabchat.extensions import db
from collabchat.core.constants import UserRole
from collabchat.core.metrics import metrics
from collabchat.services import get_services
from tests.utils import PASSWORD, make_tenant, make_user


@pytest.fixture
def fake_redis_server():
    """Shared in-memory Redis server; clients created from it see each other's pub/sub"""
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(fake_redis_server):
    redis_client = fakeredis.FakeStrictRedis(server=fake_redis_server)
    redis_client.ping()  # Ensure it works
    return redis_client


@pytest.fixture
def app():
    """Fresh app with an empty in-memory database for every test"""
    app = create_app("testing")
    metrics.reset()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

    app.extensions["collabchat"].notifier.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


@pytest.fixture
def tenant_one(app):
    return make_tenant("acme", "Acme Corp")


@pytest.fixture
def tenant_two(app):
    return make_tenant("globex", "Globex")


@pytest.fixture
def tenant_three(app):
    return make_tenant("initech", "Initech")


@pytest.fixture
def admin_user(app):
    return make_user("admin@example.com", role=UserRole.ADMIN.value, display_name="Ada Admin")


@pytest.fixture
def alice(tenant_one):
    """Standard user of tenant one"""
    return make_user("alice@example.com", tenants=[tenant_one], display_name="Alice Smith")


@pytest.fixture
def bob(tenant_one):
    """Second standard user of tenant one"""
    return make_user("bob@example.com", tenants=[tenant_one], display_name="Bob Jones")


@pytest.fixture
def carol(tenant_two):
    """Standard user of tenant two"""
    return make_user("carol@example.com", tenants=[tenant_two], display_name="Carol White")


@pytest.fixture
def special_user(tenant_one, tenant_two):
    """Special user with memberships in tenants one (primary) and two"""
    return make_user(
        "sam@example.com",
        role=UserRole.SPECIAL_USER.value,
        tenants=[tenant_one, tenant_two],
        display_name="Sam Special",
    )


@pytest.fixture
def login(services):
    """Log a user in and return the resolved identity"""

    def _login(user):
        return services.identity.authenticate(user.email, PASSWORD).identity

    return _login


@pytest.fixture
def auth_headers(client):
    """Log a user in over HTTP and return bearer headers"""

    def _headers(user):
        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200, response.json
        return {"Authorization": f"Bearer {response.json['token']}"}

    return _headers
