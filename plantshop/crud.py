from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import models

# Business rule: money stored rounded to 2 decimals

def round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# -------------------- Users --------------------

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.execute(
        select(models.User).where(func.lower(models.User.email) == email.lower())
    ).scalar_one_or_none()


def create_user(db: Session, username: str, email: str, password_hash: str, role: str) -> models.User:
    db_user = models.User(username=username, email=email, password_hash=password_hash, role=role)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # unique index on email lost a race with a concurrent signup
        raise ValueError("integrity error") from e
    db.refresh(db_user)
    return db_user


def update_user(
    db: Session,
    user_id: int,
    username: str | None = None,
    email: str | None = None,
    password_hash: str | None = None,
) -> models.User | None:
    user = db.get(models.User, user_id)
    if not user:
        return None
    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    if password_hash is not None:
        user.password_hash = password_hash
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("integrity error") from e
    db.refresh(user)
    return user


# -------------------- Products --------------------

def list_products(db: Session) -> List[models.Product]:
    return list(db.execute(select(models.Product).order_by(models.Product.id)).scalars())


def get_product(db: Session, product_id: int) -> Optional[models.Product]:
    return db.get(models.Product, product_id)


def get_products(db: Session, product_ids: Iterable[int]) -> Dict[int, models.Product]:
    ids = set(product_ids)
    if not ids:
        return {}
    rows = db.execute(select(models.Product).where(models.Product.id.in_(ids))).scalars()
    return {p.id: p for p in rows}


def create_product(db: Session, name: str, description: str, price: Decimal, image: str) -> models.Product:
    product = models.Product(name=name, description=description, price=round_amount(price), image=image)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def update_product(db: Session, product_id: int, **fields) -> models.Product | None:
    product = db.get(models.Product, product_id)
    if not product:
        return None
    for key, value in fields.items():
        if value is None:
            continue
        if key == "price":
            value = round_amount(value)
        setattr(product, key, value)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int) -> bool:
    product = db.get(models.Product, product_id)
    if not product:
        return False
    db.delete(product)
    db.commit()
    return True


# -------------------- Orders --------------------

def create_order(
    db: Session,
    user_id: int,
    lines: List[tuple],
    payment_method: str,
    payment_status: str,
) -> models.Order:
    """Persist an order from ``(product, quantity)`` lines priced at the current product price."""
    items = [
        models.OrderItem(product_id=product.id, quantity=quantity, unit_price=round_amount(product.price))
        for product, quantity in lines
    ]
    total = round_amount(sum((item.unit_price * item.quantity for item in items), Decimal("0")))
    db_order = models.Order(
        user_id=user_id,
        total=total,
        status=models.OrderStatus.pending,
        payment_method=payment_method,
        payment_status=payment_status,
        items=items,
    )
    db.add(db_order)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("integrity error") from e
    db.refresh(db_order)
    return db_order


def list_orders_for_user(db: Session, user_id: int) -> List[models.Order]:
    stmt = (
        select(models.Order)
        .where(models.Order.user_id == user_id)
        .options(selectinload(models.Order.items).selectinload(models.OrderItem.product))
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
    )
    return list(db.execute(stmt).scalars())


def get_order_for_user(db: Session, order_id: int, user_id: int) -> Optional[models.Order]:
    return db.execute(
        select(models.Order).where(models.Order.id == order_id, models.Order.user_id == user_id)
    ).scalar_one_or_none()


def delete_order(db: Session, order: models.Order) -> None:
    db.delete(order)
    db.commit()
