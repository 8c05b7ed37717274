"""
Pytest configuration and shared fixtures.
"""

import asyncio
import time

import pytest
from authlib.jose import jwt
from fastapi.testclient import TestClient

from api.config import config
from api.database import InMemoryBookStore
from api.main import app, get_book_store
from api.models import Book


def make_token(subject="user", roles=None, secret=None, algorithm="HS256", **claims):
    """Sign a bearer token the way the identity provider would."""
    now = int(time.time())
    payload = {"sub": subject, "iat": now, "exp": now + 3600}
    if roles is not None:
        payload[config.roles_claim] = roles
    payload.update(claims)
    token = jwt.encode({"alg": algorithm}, payload, secret or config.secret_key)
    return token.decode()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def memory_store():
    """Create an empty in-memory book store."""
    return InMemoryBookStore()


@pytest.fixture
def client(memory_store):
    """Create test client backed by the in-memory store."""
    app.dependency_overrides[get_book_store] = lambda: memory_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    """Authorization headers for a USER principal."""
    return auth_headers(make_token(subject="user", roles=["USER"]))


@pytest.fixture
def admin_headers():
    """Authorization headers for an ADMIN principal."""
    return auth_headers(make_token(subject="admin", roles=["ADMIN"]))


@pytest.fixture
def test_book(memory_store):
    """Reset the store, save a single book and return it with its assigned id."""
    asyncio.run(memory_store.delete_all())
    return asyncio.run(memory_store.save(Book(title="Test Book", author="Test Author")))


@pytest.fixture
def sample_book_payload():
    """Create sample request body for testing."""
    return {"title": "Test title", "author": "Test author", "publishYear": "1999"}


@pytest.fixture
def token_factory():
    """Return a helper that signs bearer tokens."""
    return make_token
