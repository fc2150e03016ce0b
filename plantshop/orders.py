"""Order placement and history, always scoped to the caller's identity."""
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .auth import Claim
from .errors import NotFound, ValidationError
from .logger import get_logger
from .utils import MAX_AMOUNT, parse_amount

logger = get_logger(__name__)


def create_order(db: Session, claim: Claim, payload: schemas.OrderCreate) -> models.Order:
    if not payload.items or payload.total is None or payload.payment_details is None:
        raise ValidationError("Items, total price, and payment details are required.")

    for index, item in enumerate(payload.items):
        if item.quantity < 1:
            raise ValidationError("Quantity must be at least 1", item=index, product_id=item.product_id)

    client_total = parse_amount(payload.total)
    if client_total is None or crud.round_amount(client_total) <= 0:
        raise ValidationError("Total must be a valid positive number", receivedTotal=payload.total)
    client_total = crud.round_amount(client_total)

    # Explicit owner check: a still-valid token may belong to a removed user
    if not crud.get_user(db, claim.user_id):
        raise NotFound("User not found")

    products = crud.get_products(db, (item.product_id for item in payload.items))
    for index, item in enumerate(payload.items):
        if item.product_id not in products:
            raise NotFound(f"Product {item.product_id} not found", item=index, product_id=item.product_id)

    lines = [(products[item.product_id], item.quantity) for item in payload.items]
    computed_total = sum((crud.round_amount(product.price) * quantity for product, quantity in lines), Decimal("0"))
    if computed_total > MAX_AMOUNT:
        raise ValidationError("Order total is too large", computedTotal=str(computed_total))

    details = payload.payment_details
    try:
        order = crud.create_order(db, claim.user_id, lines, details.payment_method, details.payment_status)
    except ValueError:
        # a product vanished between lookup and insert
        raise NotFound("Product not found")

    if client_total != order.total:
        logger.warning(
            "Client total differs from computed total",
            order_id=order.id,
            client_total=str(client_total),
            computed_total=str(order.total),
        )
    logger.info("Order created", order_id=order.id, user_id=claim.user_id, items=len(order.items), total=str(order.total))
    return order


def list_orders(db: Session, claim: Claim) -> List[models.Order]:
    return crud.list_orders_for_user(db, claim.user_id)


def delete_order(db: Session, claim: Claim, order_id: int) -> None:
    order = crud.get_order_for_user(db, order_id, claim.user_id)
    if not order:
        # missing and not-owned look the same to the caller
        raise NotFound("Order not found")
    crud.delete_order(db, order)
    logger.info("Order deleted", order_id=order_id, user_id=claim.user_id)
