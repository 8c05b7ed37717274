"""
Unit tests for token verification and role parsing.
"""

import pytest
from fastapi import HTTPException

from api import auth
from api.auth import BOOK_ACCESS, parse_roles, verify_token
from api.models import Role


class TestParseRoles:
    """Test cases for roles claim parsing."""

    def test_list_claim(self):
        assert parse_roles(["USER", "ADMIN"]) == {Role.USER, Role.ADMIN}

    def test_string_claim(self):
        assert parse_roles("user, admin") == {Role.USER, Role.ADMIN}

    def test_role_prefix(self):
        assert parse_roles(["ROLE_ADMIN"]) == {Role.ADMIN}

    def test_unknown_roles_ignored(self):
        assert parse_roles(["GUEST", 42, "USER"]) == {Role.USER}

    def test_missing_claim(self):
        assert parse_roles(None) == frozenset()


class TestVerifyToken:
    """Test cases for bearer token verification."""

    def test_valid_token(self, token_factory):
        principal = verify_token(token_factory(subject="alice", roles=["USER"]))
        assert principal.subject == "alice"
        assert principal.roles == {Role.USER}

    def test_token_without_roles(self, token_factory):
        principal = verify_token(token_factory(subject="bob"))
        assert principal.roles == frozenset()

    def test_missing_subject(self, token_factory):
        with pytest.raises(HTTPException) as exc_info:
            verify_token(token_factory(subject="", roles=["USER"]))
        assert exc_info.value.status_code == 401

    def test_disallowed_algorithm(self, token_factory, monkeypatch):
        monkeypatch.setattr(auth.config, "allowed_algorithms", ["HS512"])
        with pytest.raises(HTTPException) as exc_info:
            verify_token(token_factory(roles=["USER"], algorithm="HS256"))
        assert exc_info.value.status_code == 401

    def test_issuer_checked_when_configured(self, token_factory, monkeypatch):
        monkeypatch.setattr(auth.config, "token_issuer", "https://idp.example.com")

        principal = verify_token(token_factory(roles=["USER"], iss="https://idp.example.com"))
        assert principal.roles == {Role.USER}

        with pytest.raises(HTTPException):
            verify_token(token_factory(roles=["USER"], iss="https://evil.example.com"))

    def test_audience_checked_when_configured(self, token_factory, monkeypatch):
        monkeypatch.setattr(auth.config, "token_audience", "book-api")

        with pytest.raises(HTTPException) as exc_info:
            verify_token(token_factory(roles=["USER"]))
        assert exc_info.value.status_code == 401

        principal = verify_token(token_factory(roles=["ADMIN"], aud="book-api"))
        assert principal.roles == {Role.ADMIN}

    def test_custom_roles_claim(self, token_factory, monkeypatch):
        monkeypatch.setattr(auth.config, "roles_claim", "groups")
        principal = verify_token(token_factory(groups=["ADMIN"]))
        assert principal.roles == {Role.ADMIN}


def test_book_access_table():
    """Test the operation to role mapping."""
    assert BOOK_ACCESS["list"] == {Role.USER, Role.ADMIN}
    assert BOOK_ACCESS["get"] == {Role.USER, Role.ADMIN}
    assert BOOK_ACCESS["create"] == {Role.USER, Role.ADMIN}
    assert BOOK_ACCESS["update"] == {Role.ADMIN}
    assert BOOK_ACCESS["delete"] == {Role.ADMIN}
