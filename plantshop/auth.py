import time
from typing import NamedTuple, Optional

import jwt
from passlib.context import CryptContext

from .config import get_settings

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


class Claim(NamedTuple):
    """Decoded session token payload."""
    user_id: int
    role: str
    issued_at: int
    expires_at: int

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(user_id: int, role: str, expires_delta: Optional[int] = None, now: Optional[int] = None) -> str:
    settings = get_settings()
    now = int(time.time()) if now is None else now
    exp = now + (expires_delta if expires_delta is not None else settings.token_ttl_seconds)
    payload = {"sub": str(user_id), "role": role, "iat": now, "exp": exp}
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry; raises ``jwt.ExpiredSignatureError`` / ``jwt.PyJWTError``."""
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "exp", "iat"]},
    )


def claim_from_token(token: str) -> Claim:
    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise jwt.InvalidTokenError("subject is not a user id") from e
    return Claim(
        user_id=user_id,
        role=str(payload.get("role") or "user"),
        issued_at=int(payload["iat"]),
        expires_at=int(payload["exp"]),
    )


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
