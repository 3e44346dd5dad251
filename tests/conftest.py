import pytest

from app_factory import create_app, db
from backend.models import TIER_PREMIUM, User

SECRET = "test-secret"


def make_app(uri="sqlite://", **extra):
    config = {"TESTING": True, "SQLALCHEMY_DATABASE_URI": uri, "JWT_SECRET": SECRET}
    config.update(extra)
    return create_app(config)


@pytest.fixture
def app():
    app = make_app()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    with app.app_context():
        yield db.session


def signup(client, email="owner@example.com", password="secret123"):
    """Register and log in; return (user_id, auth headers)."""
    resp = client.post("/api/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.get_json()
    resp = client.post("/api/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    return body["user_id"], {"Authorization": f"Bearer {body['token']}"}


def create_lot(client, headers, **fields):
    payload = {"name": "Centro", "capacity": 3, "latitude": -34.6037, "longitude": -58.3816}
    payload.update(fields)
    resp = client.post("/api/facilities", json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["id"]


def promote(app, user_id):
    with app.app_context():
        db.session.get(User, user_id).tier = TIER_PREMIUM
        db.session.commit()


@pytest.fixture
def owner(client):
    return signup(client)
