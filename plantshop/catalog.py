"""Product catalog with a short-lived read cache.

``list_products`` serves from ``ProductCache`` while it is fresh. On a miss
the store query races a deadline; when the store is slow or failing, an
expired cached list is served instead of an error. Every successful write
clears the cache.
"""
import asyncio
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .cache import ProductCache
from .errors import GatewayTimeout, NotFound, StoreUnavailable, ValidationError
from .logger import get_logger
from .utils import clean_text, is_image_payload, parse_amount

logger = get_logger(__name__)


def _serialize(products: List[models.Product]) -> List[Dict[str, Any]]:
    return [schemas.ProductRead.model_validate(p).model_dump(mode="json") for p in products]


def _validated_price(raw) -> Decimal:
    price = parse_amount(raw)
    if price is None or crud.round_amount(price) <= 0:
        raise ValidationError("Price must be a valid positive number", receivedPrice=raw)
    return price


def _check_image(image: str) -> None:
    if not is_image_payload(image):
        logger.info("Invalid image format received", image_bytes=len(image))
        raise ValidationError(
            "Invalid image format. Please upload a valid image file.",
            receivedImage=image[:50] + "...",
        )


class CatalogService:
    def __init__(
        self,
        cache: ProductCache,
        query_timeout: float,
        session_factory: Callable[[], Session],
        fetch: Optional[Callable[[Session], List[models.Product]]] = None,
    ):
        self.cache = cache
        self.query_timeout = query_timeout
        self._session_factory = session_factory
        self._fetch = fetch or crud.list_products

    def _load(self) -> List[Dict[str, Any]]:
        # runs on a worker thread that may outlive the request, so it owns its session
        with self._session_factory() as db:
            return _serialize(self._fetch(db))

    async def list_products(self) -> List[Dict[str, Any]]:
        cached = self.cache.fresh()
        if cached is not None:
            logger.debug("Serving products from cache", count=len(cached))
            return cached

        generation = self.cache.generation
        try:
            loop = asyncio.get_running_loop()
            # the worker thread is abandoned, not interrupted, when the deadline passes
            products = await asyncio.wait_for(loop.run_in_executor(None, self._load), timeout=self.query_timeout)
        except asyncio.TimeoutError:
            stale = self.cache.stale()
            if stale is not None:
                logger.warning("Product query timed out, serving stale cache", timeout=self.query_timeout)
                return stale
            logger.error("Product query timed out", timeout=self.query_timeout)
            raise GatewayTimeout(
                "The server is experiencing high load. Please try again in a few moments.",
                error="GATEWAY_TIMEOUT",
            )
        except SQLAlchemyError as e:
            stale = self.cache.stale()
            if stale is not None:
                logger.warning("Product query failed, serving stale cache", error=str(e))
                return stale
            logger.error("Product query failed", error=str(e))
            raise StoreUnavailable("An error occurred while fetching products")

        if not self.cache.store(products, generation):
            logger.debug("Catalog changed during fetch, result not cached")
        logger.info("Fetched products from store", count=len(products))
        return products

    def add_product(self, db: Session, payload: schemas.ProductCreate) -> models.Product:
        name = clean_text(payload.name)
        description = clean_text(payload.description)
        image = (payload.image or "").strip()
        missing = {
            "name": not name,
            "description": not description,
            "price": payload.price is None or payload.price == "",
            "image": not image,
        }
        if any(missing.values()):
            raise ValidationError("All fields are required", missingFields=missing)
        price = _validated_price(payload.price)
        _check_image(image)

        product = crud.create_product(db, name, description, price, image)
        self.cache.clear()
        logger.info("Product added", product_id=product.id, price=str(product.price), image_bytes=len(image))
        return product

    def update_product(self, db: Session, product_id: int, payload: schemas.ProductUpdate) -> models.Product:
        if not crud.get_product(db, product_id):
            raise NotFound("Product not found")

        name = clean_text(payload.name)
        description = clean_text(payload.description)
        missing = {
            "name": not name,
            "description": not description,
            "price": payload.price is None or payload.price == "",
        }
        if any(missing.values()):
            raise ValidationError("All fields are required", missingFields=missing)
        price = _validated_price(payload.price)
        # omitted image keeps the current one
        image = (payload.image or "").strip() or None
        if image is not None:
            _check_image(image)

        product = crud.update_product(db, product_id, name=name, description=description, price=price, image=image)
        if not product:
            raise NotFound("Product not found")
        self.cache.clear()
        logger.info("Product updated", product_id=product.id, image_replaced=image is not None)
        return product

    def delete_product(self, db: Session, product_id: int) -> None:
        if not crud.delete_product(db, product_id):
            raise NotFound("Product not found")
        self.cache.clear()
        logger.info("Product deleted", product_id=product_id)
