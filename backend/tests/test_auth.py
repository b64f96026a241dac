from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import jwt
import pytest
from starlette.requests import Request

from codecombat.config import Settings
from codecombat.errors import InvalidCredentials, Unauthorized
from codecombat.services.auth import (
    AdminAuthGuard,
    Principal,
    TokenService,
    check_password,
    client_ip,
    hash_password,
)
from codecombat.services.store import AdminStore

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD


@pytest.fixture
def tokens() -> TokenService:
    return TokenService("test-secret")


@pytest.fixture
def guard(database, admin_account, tokens):
    session = database.session()
    yield AdminAuthGuard(AdminStore(session), tokens)
    session.close()


def test_password_hash_is_salted_bcrypt():
    first = hash_password("hunter22")
    second = hash_password("hunter22")
    assert first.startswith("$2b$10$")
    assert first != second
    assert "hunter22" not in first
    assert check_password("hunter22", first)
    assert not check_password("hunter23", first)
    assert not check_password("hunter22", "not-a-bcrypt-hash")


def test_token_round_trip(tokens):
    token = tokens.issue(Principal(id=7, email=ADMIN_EMAIL))
    claims = jwt.decode(token, "test-secret", algorithms=["HS256"])
    assert claims["role"] == "admin"
    assert claims["exp"] - claims["iat"] == 24 * 3600
    assert tokens.verify(token) == Principal(id=7, email=ADMIN_EMAIL, role="admin")


def _rejection(tokens: TokenService, token) -> dict:
    with pytest.raises(Unauthorized) as excinfo:
        tokens.verify(token)
    return excinfo.value.to_dict()


def test_expired_and_tampered_tokens_fail_identically(tokens):
    expired = TokenService("test-secret", lifetime=timedelta(seconds=-30)).issue(Principal(1, ADMIN_EMAIL))
    forged = TokenService("another-secret").issue(Principal(1, ADMIN_EMAIL))

    expected = {"success": False, "message": "Unauthorized"}
    assert _rejection(tokens, expired) == expected
    assert _rejection(tokens, forged) == expected
    assert _rejection(tokens, "not.a.token") == expected
    assert _rejection(tokens, None) == expected
    assert _rejection(tokens, "") == expected


def test_token_without_admin_role_rejected(tokens):
    token = jwt.encode({"id": 1, "email": ADMIN_EMAIL, "role": "viewer", "iat": 0, "exp": 4102444800},
                       "test-secret", algorithm="HS256")
    assert _rejection(tokens, token)["message"] == "Unauthorized"


def test_login_success(guard, tokens):
    token, principal = guard.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert principal.email == ADMIN_EMAIL
    assert tokens.verify(token).id == principal.id


def test_unknown_email_and_wrong_password_are_indistinguishable(guard):
    with pytest.raises(InvalidCredentials) as unknown:
        guard.login("nobody@codecombat.live", ADMIN_PASSWORD)
    with pytest.raises(InvalidCredentials) as wrong:
        guard.login(ADMIN_EMAIL, "wrong-password")
    with pytest.raises(InvalidCredentials) as empty:
        guard.login(None, None)

    assert unknown.value.to_dict() == wrong.value.to_dict() == empty.value.to_dict()
    assert unknown.value.status_code == wrong.value.status_code == 401


def _request(headers=None, client=("203.0.113.9", 52000), trust_proxy=True) -> Request:
    app = SimpleNamespace(state=SimpleNamespace(settings=Settings(trust_proxy=trust_proxy)))
    scope = {
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
        "app": app,
    }
    return Request(scope)


def test_client_ip_normalisation():
    assert client_ip(_request()) == "203.0.113.9"
    assert client_ip(_request(client=("::ffff:10.0.0.5", 1))) == "10.0.0.5"
    assert client_ip(_request({"X-Forwarded-For": "198.51.100.4:61000, 10.0.0.1"})) == "198.51.100.4"
    assert client_ip(_request({"X-Forwarded-For": "198.51.100.4"}, trust_proxy=False)) == "203.0.113.9"
    assert client_ip(_request(client=None)) == "127.0.0.1"
