# tests/conftest.py

import pytest

import credentials
from app import create_app
from config import TestingConfig
from models import ROLE_ADMIN, db


@pytest.fixture()
def app():
    """App on in-memory SQLite with fresh tables, inside an app context."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def users(app):
    """An admin plus three normal users, keyed by username."""
    return {
        "admin": credentials.register("admin", "admin-pass", "Tran Admin", role=ROLE_ADMIN),
        "alice": credentials.register("alice", "alice-pass", "Nguyễn Thị Alice"),
        "bob": credentials.register("bob", "bob-pass", "Bob Le"),
        "carol": credentials.register("carol", "carol-pass", "nguyễn Carol"),
    }
