from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple
from jose import JWTError, ExpiredSignatureError, jwt
import bcrypt
import calendar
import hashlib
import secrets

from infinitiflow.core.config import settings
from infinitiflow.core.exceptions import InvalidTokenError, WrongTokenTypeError


# Back-dating applied to passwordChangedAt so a token issued in the same
# second as the change is still accepted.
PASSWORD_CHANGE_GRACE = timedelta(seconds=1)

REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password"""
    if not plain_password or not hashed_password:
        return False
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_SALT_ROUNDS in .env)"""
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_SALT_ROUNDS))
    return hashed.decode('utf-8')


def to_timestamp(dt: datetime) -> int:
    """Naive-UTC datetime -> integer seconds since epoch"""
    return calendar.timegm(dt.utctimetuple())


def _encode(payload: Dict[str, Any], secret: str, lifetime: timedelta,
            issued_at: Optional[datetime]) -> str:
    issued_at = issued_at or datetime.utcnow()
    to_encode = dict(payload)
    to_encode.update({
        "iat": to_timestamp(issued_at),
        "exp": to_timestamp(issued_at + lifetime),
    })
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: str, issued_at: Optional[datetime] = None) -> str:
    """Create JWT access token: {id, iat, exp} signed with JWT_SECRET"""
    return _encode(
        {"id": str(user_id)},
        settings.JWT_SECRET,
        settings.access_token_lifetime,
        issued_at,
    )


def create_refresh_token(user_id: str, issued_at: Optional[datetime] = None) -> str:
    """Create JWT refresh token: {id, type: refresh, iat, exp} signed with JWT_REFRESH_SECRET"""
    return _encode(
        {"id": str(user_id), "type": REFRESH_TOKEN_TYPE},
        settings.JWT_REFRESH_SECRET,
        settings.refresh_token_lifetime,
        issued_at,
    )


def create_token_pair(user_id: str) -> Tuple[str, str]:
    return create_access_token(user_id), create_refresh_token(user_id)


def _decode(token: str, secret: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise InvalidTokenError("Your token has expired! Please log in again.")
    except JWTError:
        raise InvalidTokenError()

    if not payload.get("id") or "iat" not in payload:
        raise InvalidTokenError()
    return payload


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate an access token"""
    return _decode(token, settings.JWT_SECRET)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode and validate a refresh token, rejecting any other token type"""
    payload = _decode(token, settings.JWT_REFRESH_SECRET)
    if payload.get("type") != REFRESH_TOKEN_TYPE:
        raise WrongTokenTypeError()
    return payload


# ==========================================
# One-time tokens (password reset, e-mail verification)
# ==========================================

def hash_token(token: str) -> str:
    """SHA-256 hex digest; only this is ever stored"""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def generate_one_time_token(lifetime: timedelta) -> Tuple[str, str, datetime]:
    """
    Create a random one-time token.

    Returns (plain_token, token_hash, expires_at). The plain token goes to
    the user by e-mail; the hash and expiry are persisted.
    """
    plain = secrets.token_hex(32)
    return plain, hash_token(plain), datetime.utcnow() + lifetime
