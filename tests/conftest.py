import pytest
from flask import g

from erp_admin.extensions import db
from erp_admin.main import create_app
from erp_admin.models.user import UserRole
from erp_admin.services import user_service


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "WTF_CSRF_ENABLED": False,
        "BCRYPT_LOG_ROUNDS": 4,
        "SECRET_KEY": "test",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role=UserRole.BASIC, is_active=True, name=None, password="secret123"):
        counter["n"] += 1
        n = counter["n"]
        return user_service.create_user(
            name or f"User {n}", f"user{n}@example.com", password, role=role, is_active=is_active,
        )

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user.id)
            sess["_fresh"] = True
        # Requests share the test's app context, so drop any cached user
        g.pop("_login_user", None)
        return user

    return _login
