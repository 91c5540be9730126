"""
JWT token utilities.

Tokens are issued by the account service; this backend only needs to
decode them into an Actor. ``create_access_token`` exists for tooling and
tests that need to mint a token for a known user.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from cargo_backend.app.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Example payload:
        {
            "sub": "khan-123",
            "user_id": 123,
            "role": "ADMIN",
            "branch_id": 2,
            "exp": 1234567890
        }
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decoded payload if the token is valid and unexpired, None otherwise."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
