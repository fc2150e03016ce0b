"""Account operations: signup, login, identity lookup and profile update."""
from typing import Tuple

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .auth import Claim, create_access_token, hash_password, verify_password
from .errors import ConflictError, InvalidCredentials, NotFound, ValidationError
from .logger import get_logger
from .utils import clean_text

logger = get_logger(__name__)


def signup(db: Session, payload: schemas.SignupRequest) -> models.User:
    email = payload.email.strip().lower()
    if crud.get_user_by_email(db, email):
        raise ConflictError("User already exists")
    username = clean_text(payload.username)
    if not username:
        raise ValidationError("Username is required.")
    try:
        user = crud.create_user(db, username, email, hash_password(payload.password), payload.role)
    except ValueError:
        raise ConflictError("User already exists")
    logger.info("User registered", user_id=user.id, role=user.role)
    return user


def login(db: Session, payload: schemas.LoginRequest) -> Tuple[models.User, str]:
    user = crud.get_user_by_email(db, payload.email.strip())
    if not user:
        raise NotFound("User not found")
    if not verify_password(payload.password, user.password_hash):
        logger.info("Login rejected", user_id=user.id)
        raise InvalidCredentials("Invalid password")
    token = create_access_token(user.id, user.role)
    logger.info("User logged in", user_id=user.id)
    return user, token


def who_am_i(db: Session, claim: Claim) -> models.User:
    user = crud.get_user(db, claim.user_id)
    if not user:
        # token outlived its user
        raise NotFound("User not found")
    return user


def update_profile(db: Session, claim: Claim, payload: schemas.ProfileUpdate) -> models.User:
    username = clean_text(payload.username)
    email = (payload.email or "").strip().lower()
    if not username or not email:
        raise ValidationError("Username and email are required.")

    existing = crud.get_user_by_email(db, email)
    if existing and existing.id != claim.user_id:
        raise ConflictError("Email is already in use")

    password_hash = None
    if payload.password and payload.password.strip():
        password_hash = hash_password(payload.password)

    try:
        user = crud.update_user(db, claim.user_id, username=username, email=email, password_hash=password_hash)
    except ValueError:
        raise ConflictError("Email is already in use")
    if not user:
        raise NotFound("User not found")
    logger.info("Profile updated", user_id=user.id, password_changed=password_hash is not None)
    return user
