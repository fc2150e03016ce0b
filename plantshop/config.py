"""Runtime configuration for the shop (replaceable during tests/runtime)."""
import os
from typing import NamedTuple, Tuple

from dotenv import load_dotenv

load_dotenv()


class Settings(NamedTuple):
    database_url: str
    jwt_secret: str
    jwt_algorithm: str
    token_ttl_seconds: int
    session_cookie: str
    cart_cookie: str
    environment: str
    cookie_samesite: str
    product_cache_ttl: float
    product_query_timeout: float
    cors_origins: Tuple[str, ...]
    log_level: str
    log_format: str

    @property
    def cookie_secure(self) -> bool:
        return self.environment == "production"


def load_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./plantshop.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", str(60 * 60 * 24))),
        session_cookie=os.getenv("SESSION_COOKIE", "token"),
        cart_cookie=os.getenv("CART_COOKIE", "cart"),
        environment=(os.getenv("ENVIRONMENT") or "development").strip().lower(),
        cookie_samesite=os.getenv("COOKIE_SAMESITE", "lax"),
        product_cache_ttl=float(os.getenv("PRODUCT_CACHE_TTL", "300")),
        product_query_timeout=float(os.getenv("PRODUCT_QUERY_TIMEOUT", "15")),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "console").lower(),
    )


state = load_settings()


def set_settings(settings: Settings):
    global state
    state = settings


def get_settings() -> Settings:
    return state
