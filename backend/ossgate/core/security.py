import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from ossgate.core.config import get_settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

OPERATOR_TOKEN_TYPE = "operator"


class TokenError(Exception):
    """Raised when an operator token is missing, forged, expired or malformed."""


def hash_operator_password(password: str) -> str:
    """Produce a value suitable for ``ADMIN_PASSWORD_HASH``."""
    return pwd_context.hash(password)


def verify_operator_password(password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(password, hashed_password)
    except ValueError:
        # Unrecognised or truncated ADMIN_PASSWORD_HASH.
        logger.error("ADMIN_PASSWORD_HASH is not a valid pbkdf2_sha256 hash")
        return False


def issue_operator_token(username: str, expires_delta: timedelta | None = None) -> tuple[str, int]:
    """Sign a bearer token for ``username``; returns the token and its lifetime in seconds."""
    settings = get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.jwt_exp_minutes)
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": username,
        "typ": OPERATOR_TOKEN_TYPE,
        "iat": now,
        "exp": now + lifetime,
    }
    token = jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, int(lifetime.total_seconds())


def operator_from_token(token: str) -> str:
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise TokenError("Could not validate credentials") from exc

    username = claims.get("sub")
    if claims.get("typ") != OPERATOR_TOKEN_TYPE or not isinstance(username, str) or not username:
        raise TokenError("Invalid token payload")
    return username
