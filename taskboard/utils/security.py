# taskboard/utils/security.py
# Password hashing and JWT encoding

import secrets
import string
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext

from taskboard.config import Settings
from taskboard.database import utcnow


@lru_cache(maxsize=None)
def get_password_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(raw_password: str, rounds: int) -> str:
    """Hash a plaintext password using bcrypt"""
    return get_password_context(rounds).hash(raw_password)


def verify_password(raw_password: str, hashed_password: str) -> bool:
    """Verify that a raw password matches its hashed stored version"""
    if not hashed_password:
        return False
    try:
        return get_password_context(12).verify(raw_password, hashed_password)
    except ValueError:
        # Unrecognised or malformed hash
        return False


def create_access_token(data: Dict[str, Any], settings: Settings, expires_delta: Optional[timedelta] = None) -> Tuple[str, datetime]:
    """
    Create a signed JWT and return it with its expiry.

    A random ``jti`` keeps two tokens minted in the same second for the same
    user distinct, since the session ledger requires unique tokens.
    """
    expires_at = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = data.copy()
    to_encode.update({"exp": expires_at, "jti": secrets.token_hex(8)})
    token = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return token, expires_at


def verify_token(token: str, settings: Settings) -> Optional[dict]:
    """Verify JWT signature and expiry and return the payload, or None"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def generate_token() -> str:
    """Opaque 64-character hex token for email verification and password setup"""
    return secrets.token_hex(32)


def generate_password(length: int = 10) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))
