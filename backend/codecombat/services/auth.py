"""
Admin Auth Guard - credential checks, session tokens and the route guard.

Login flow:
1. Look up the admin by email
2. Compare the password with the stored bcrypt hash
3. Issue an HS256 JWT valid for 24 hours

Every failure in step 1 or 2 raises the same InvalidCredentials error, and
an unknown email still pays for one bcrypt comparison, so responses do not
reveal which admin emails exist. Token verification fails closed: missing,
malformed, forged, expired and wrong-role tokens all become Unauthorized.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from codecombat.errors import InvalidCredentials, Unauthorized
from codecombat.services.store import AdminStore
from codecombat.services.validation import normalize_email
from codecombat.logging_config import get_logger, log_with_context

logger = get_logger("auth")

TOKEN_ALGORITHM = "HS256"
ADMIN_ROLE = "admin"
BCRYPT_ROUNDS = 10


@dataclass(frozen=True)
class Principal:
    """The authenticated admin attached to a request."""
    id: int
    email: str
    role: str = ADMIN_ROLE


def hash_password(password: str) -> str:
    """Salted bcrypt hash of a password."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    """Constant-time bcrypt comparison; malformed input simply fails."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("codecombat-timing-equaliser")


class TokenService:
    """Issues and verifies signed admin session tokens."""

    def __init__(self, secret: str, lifetime: timedelta = timedelta(hours=24)):
        self.secret = secret
        self.lifetime = lifetime

    def issue(self, principal: Principal) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": principal.id,
            "role": principal.role,
            "email": principal.email,
            "iat": int(now.timestamp()),
            "exp": int((now + self.lifetime).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=TOKEN_ALGORITHM)

    def verify(self, token: Optional[str]) -> Principal:
        if not token:
            raise Unauthorized()
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.PyJWTError as e:
            log_with_context(logger, "WARNING", "Rejected admin token",
                             extra_data={"reason": type(e).__name__})
            raise Unauthorized() from e

        if payload.get("role") != ADMIN_ROLE or "id" not in payload or "email" not in payload:
            log_with_context(logger, "WARNING", "Rejected admin token",
                             extra_data={"reason": "claims"})
            raise Unauthorized()
        return Principal(id=payload["id"], email=payload["email"], role=payload["role"])


class AdminAuthGuard:
    """Verifies admin credentials against the store and issues tokens."""

    def __init__(self, admins: AdminStore, tokens: TokenService):
        self.admins = admins
        self.tokens = tokens

    def login(self, email: Optional[str], password: Optional[str]):
        """
        Authenticate an admin.

        Returns:
            Tuple of (token, Principal)

        Raises:
            InvalidCredentials: Unknown email or wrong password
        """
        email = normalize_email(email)
        password = password or ""

        admin = self.admins.find_by_email(email) if email else None
        if admin is None:
            check_password(password, _dummy_hash())
            log_with_context(logger, "WARNING", "Admin login failed",
                             context={"email": email}, extra_data={"reason": "unknown_email"})
            raise InvalidCredentials()

        if not check_password(password, admin.password):
            log_with_context(logger, "WARNING", "Admin login failed",
                             context={"email": email}, extra_data={"reason": "bad_password"})
            raise InvalidCredentials()

        principal = Principal(id=admin.id, email=admin.email)
        token = self.tokens.issue(principal)
        log_with_context(logger, "INFO", "Admin login succeeded", context={"email": admin.email})
        return token, principal


def client_ip(request: Request) -> str:
    """
    Best-effort client address.

    Honours the first X-Forwarded-For hop when the app sits behind a
    proxy, strips the IPv4-mapped IPv6 prefix (::ffff:) and any :port
    suffix on IPv4 addresses.
    """
    ip = None
    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        ip = forwarded.split(",")[0].strip() or None
    if not ip and request.client:
        ip = request.client.host
    if not ip:
        return "127.0.0.1"

    if ip.startswith("::ffff:"):
        ip = ip[len("::ffff:"):]
    if "." in ip and ip.count(":") == 1:
        ip = ip.split(":")[0]
    return ip


bearer_scheme = HTTPBearer(auto_error=False)


def require_admin(request: Request,
                  credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Principal:
    """
    FastAPI dependency guarding admin routes.

    Accepts only "Authorization: Bearer <token>"; on success the principal
    is also stored on request.state.admin for downstream handlers.
    """
    token = credentials.credentials if credentials else None
    principal = request.app.state.tokens.verify(token)
    request.state.admin = principal
    return principal
