import time
from typing import List

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import accounts, orders, schemas
from .auth import Claim
from .cache import ProductCache
from .catalog import CatalogService
from .config import get_settings
from .db import Base, SessionLocal, engine
from .errors import ShopError
from .gate import require_admin, require_session
from .logger import get_logger

logger = get_logger(__name__)

# Create tables if not existing (for demo). In production, use Alembic.
Base.metadata.create_all(bind=engine)

settings = get_settings()

app = FastAPI(title="Plant Shop API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    max_age=86400,
)


def build_catalog(session_factory=SessionLocal) -> CatalogService:
    current = get_settings()
    return CatalogService(
        ProductCache(ttl=current.product_cache_ttl),
        query_timeout=current.product_query_timeout,
        session_factory=session_factory,
    )


app.state.catalog = build_catalog()


@app.middleware("http")
async def log_and_harden(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    logger.info(
        "Request handled",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return response


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after is not None else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "errors": errors})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Store error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Server error"})


# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def _set_session_cookie(response: Response, token: str) -> None:
    current = get_settings()
    response.set_cookie(
        key=current.session_cookie,
        value=token,
        max_age=current.token_ttl_seconds,
        httponly=True,
        secure=current.cookie_secure,
        samesite=current.cookie_samesite,
        path="/",
    )


def _clear_cookie(response: Response, name: str) -> None:
    current = get_settings()
    response.delete_cookie(
        name, path="/", httponly=True, secure=current.cookie_secure, samesite=current.cookie_samesite
    )


@app.get("/")
async def root():
    return {"message": "Welcome to the Plant Shop API"}


@app.get("/health")
async def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        store = "connected"
    except SQLAlchemyError as e:
        logger.warning("Health check could not reach store", error=str(e))
        store = "disconnected"
    return {"status": "ok", "store": store}


# -------------------- Auth --------------------

@app.post("/signup", response_model=schemas.Message, status_code=201)
async def signup(payload: schemas.SignupRequest, db: Session = Depends(get_db)):
    accounts.signup(db, payload)
    return {"message": "User registered successfully"}


@app.post("/login", response_model=schemas.LoginResponse)
async def login(payload: schemas.LoginRequest, response: Response, db: Session = Depends(get_db)):
    user, token = accounts.login(db, payload)
    _set_session_cookie(response, token)
    return {"message": "Logged in successfully", "user": schemas.UserRead.model_validate(user), "token": token}


@app.post("/logout", response_model=schemas.Message)
async def logout(response: Response, claim: Claim = Depends(require_session)):
    # Stateless token: only the cookie is cleared, a copied bearer token stays valid until expiry
    _clear_cookie(response, get_settings().session_cookie)
    logger.info("User logged out", user_id=claim.user_id)
    return {"message": "Logged out successfully"}


@app.get("/user", response_model=schemas.UserRead)
async def get_profile(claim: Claim = Depends(require_session), db: Session = Depends(get_db)):
    return accounts.who_am_i(db, claim)


@app.put("/user/update", response_model=schemas.UserRead)
async def update_profile(
    payload: schemas.ProfileUpdate,
    claim: Claim = Depends(require_session),
    db: Session = Depends(get_db),
):
    return accounts.update_profile(db, claim, payload)


# -------------------- Catalog --------------------

@app.get("/products", response_model=List[schemas.ProductRead])
async def list_products(catalog: CatalogService = Depends(get_catalog)):
    return await catalog.list_products()


@app.post("/products", response_model=schemas.ProductRead, status_code=201)
async def add_product(
    payload: schemas.ProductCreate,
    claim: Claim = Depends(require_admin),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog),
):
    return catalog.add_product(db, payload)


@app.put("/products/{product_id}", response_model=schemas.ProductRead)
async def update_product(
    product_id: int,
    payload: schemas.ProductUpdate,
    claim: Claim = Depends(require_admin),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog),
):
    return catalog.update_product(db, product_id, payload)


@app.delete("/products/{product_id}", response_model=schemas.Message)
async def delete_product(
    product_id: int,
    claim: Claim = Depends(require_admin),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog),
):
    catalog.delete_product(db, product_id)
    return {"message": "Product deleted successfully"}


# -------------------- Orders --------------------

@app.post("/orders", response_model=schemas.OrderRead, status_code=201)
async def create_order(
    payload: schemas.OrderCreate,
    response: Response,
    claim: Claim = Depends(require_session),
    db: Session = Depends(get_db),
):
    order = orders.create_order(db, claim, payload)
    _clear_cookie(response, get_settings().cart_cookie)
    return order


@app.get("/orders", response_model=List[schemas.OrderRead])
async def list_orders(claim: Claim = Depends(require_session), db: Session = Depends(get_db)):
    return orders.list_orders(db, claim)


@app.delete("/orders/{order_id}", response_model=schemas.Message)
async def delete_order(order_id: int, claim: Claim = Depends(require_session), db: Session = Depends(get_db)):
    orders.delete_order(db, claim, order_id)
    return {"message": "Order deleted successfully"}


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run("plantshop.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
