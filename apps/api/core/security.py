"""
Bearer token handling.

Tokens are issued by the account service and only verified here. The
subject (`sub`) is the opaque user id the analytics endpoints are scoped to.

SECRET_KEY must be set via environment variable and be at least 32
characters; the module refuses to import otherwise.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import JWTError, jwt
from core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 30 * 24 * 60  # 30 days
MIN_SECRET_KEY_LENGTH = 32


def _signing_key() -> str:
    key = settings.SECRET_KEY
    if len(key) < MIN_SECRET_KEY_LENGTH:
        raise ValueError(
            f"SECRET_KEY must be at least {MIN_SECRET_KEY_LENGTH} characters. "
            "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
        )
    return key


SECRET_KEY = _signing_key()


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None, **claims: Any) -> str:
    """Sign a token for `subject` (the user id)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    payload: Dict[str, Any] = {**claims, "sub": str(subject), "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified claims, or None for a bad signature, expired or malformed token."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
