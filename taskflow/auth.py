"""Password hashing, bearer tokens, and the signup/login/me operations."""

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from taskflow.config import Settings
from taskflow.errors import Forbidden, InvalidInput, NotFound, Unauthorized
from taskflow.schemas import AuthOut, UserOut, format_user
from taskflow.storage import Storage

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
BAD_CREDENTIALS = "Invalid email or password"


def _prehash(password: str) -> bytes:
    """SHA-256 first so passwords longer than bcrypt's 72 bytes still count."""
    return hashlib.sha256(password.encode("utf-8")).digest()


def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_prehash(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def create_token(user_id: int, email: str, settings: Settings, now: Optional[datetime] = None) -> str:
    """Sign a session token for ``user_id`` valid for ``settings.jwt_ttl_days``."""
    issued = now or datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "userId": user_id,
        "email": email,
        "iat": issued,
        "exp": issued + timedelta(days=settings.jwt_ttl_days),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def authenticate(token: Optional[str], settings: Settings) -> int:
    """Verify ``token`` and return the user id it was issued for.

    Raises:
        Unauthorized: no token was presented.
        Forbidden: bad signature, expired, or malformed claims.
    """
    if not token:
        raise Unauthorized("Access token required")
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise Forbidden("Invalid or expired token") from exc

    user_id = claims.get("userId")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise Forbidden("Invalid or expired token")
    return user_id


def signup(
    storage: Storage,
    settings: Settings,
    email: str,
    password: str,
    name: Optional[str] = None,
) -> AuthOut:
    if not email or not password:
        raise InvalidInput("Email and password are required")
    password_hash = hash_password(password, settings.bcrypt_rounds)
    user = storage.create_user(email, password_hash, name)
    logger.info("Registered user %s", user.id)
    return AuthOut(
        token=create_token(user.id, user.email, settings),
        user=format_user(user),
    )


def login(storage: Storage, settings: Settings, email: str, password: str) -> AuthOut:
    if not email or not password:
        raise InvalidInput("Email and password are required")
    user = storage.get_user_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        raise Unauthorized(BAD_CREDENTIALS)
    return AuthOut(
        token=create_token(user.id, user.email, settings),
        user=format_user(user),
    )


def me(storage: Storage, user_id: int) -> UserOut:
    user = storage.get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    return format_user(user)
