from __future__ import annotations

import pytest

from app.accounts import AccountService
from app.database import Database
from app.errors import ConflictError, UnauthenticatedError, ValidationError
from app.security import TokenService


@pytest.fixture()
def tokens() -> TokenService:
    return TokenService("tests-secret-key")


@pytest.fixture()
def accounts(database: Database, tokens: TokenService) -> AccountService:
    return AccountService(database, tokens)


def test_register_returns_user_and_token(accounts: AccountService, tokens: TokenService) -> None:
    user, token = accounts.register("  carol  ", "Carol@Example.com", "secret1")

    assert user.username == "carol"
    assert user.email == "carol@example.com"
    assert tokens.verify(token) == user.id


@pytest.mark.parametrize(
    "username, email, password",
    [
        ("ab", "carol@example.com", "secret1"),
        ("   ab   ", "carol@example.com", "secret1"),
        ("carol", "not-an-email", "secret1"),
        ("carol", "carol@example", "secret1"),
        ("carol", "carol@example.com", "short"),
    ],
)
def test_register_validates_input(accounts: AccountService, username: str, email: str, password: str) -> None:
    with pytest.raises(ValidationError):
        accounts.register(username, email, password)


def test_register_rejects_duplicate_email(accounts: AccountService) -> None:
    accounts.register("carol", "carol@example.com", "secret1")
    with pytest.raises(ConflictError):
        accounts.register("carol2", "CAROL@example.com", "secret2")


def test_login_returns_fresh_token(accounts: AccountService, tokens: TokenService) -> None:
    registered, _ = accounts.register("carol", "carol@example.com", "secret1")

    user, token = accounts.login(" CAROL@example.com ", "secret1")

    assert user.id == registered.id
    assert tokens.verify(token) == registered.id


@pytest.mark.parametrize(
    "email, password",
    [("carol@example.com", "wrong-password"), ("nobody@example.com", "secret1")],
)
def test_login_rejects_bad_credentials(accounts: AccountService, email: str, password: str) -> None:
    accounts.register("carol", "carol@example.com", "secret1")
    with pytest.raises(UnauthenticatedError):
        accounts.login(email, password)
