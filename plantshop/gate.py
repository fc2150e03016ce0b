"""Session gate: FastAPI dependencies guarding identity-scoped routes.

The gate only verifies the token signature and expiry; it never touches
the database. Routes receive the decoded ``Claim``.
"""
from typing import Optional

import jwt
from fastapi import Depends, Request

from .auth import Claim, claim_from_token
from .config import get_settings
from .errors import Forbidden, Unauthorized
from .logger import get_logger

logger = get_logger(__name__)


def extract_token(request: Request) -> Optional[str]:
    # Prefer the server-issued cookie
    token = request.cookies.get(get_settings().session_cookie)
    if token:
        return token
    # Fallback to Authorization: Bearer <token>
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def verify_token(token: Optional[str]) -> Claim:
    if not token:
        raise Unauthorized("Please log in to access this resource.")
    try:
        return claim_from_token(token)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Session expired, please log in again.")
    except jwt.PyJWTError as e:
        logger.info("Token verification failed", error=str(e))
        raise Forbidden("Invalid or expired token.")


def require_session(request: Request) -> Claim:
    claim = verify_token(extract_token(request))
    request.state.claim = claim
    return claim


def require_admin(claim: Claim = Depends(require_session)) -> Claim:
    if not claim.is_admin:
        raise Forbidden("Admin access required.")
    return claim
