from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field
from pydantic.config import ConfigDict

from .models import OrderStatus

# Loose numeric input; services parse and range-check it so the error names the field
NumberLike = Union[int, float, str]


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Literal["user", "admin"] = "user"


class LoginRequest(BaseModel):
    email: str
    password: str


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    role: str = "user"

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    message: str
    user: UserRead
    token: str


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class Message(BaseModel):
    message: str


class ProductCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[NumberLike] = None
    image: Optional[str] = None


class ProductUpdate(ProductCreate):
    pass


class ProductRead(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    image: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductSummary(BaseModel):
    id: int
    name: str
    price: Decimal
    image: str

    model_config = ConfigDict(from_attributes=True)


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int


class PaymentDetails(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    payment_status: str = Field(default="pending", max_length=50)


class OrderCreate(BaseModel):
    items: Optional[List[OrderItemIn]] = None
    total: Optional[NumberLike] = None
    payment_details: Optional[PaymentDetails] = None


class OrderItemRead(BaseModel):
    product_id: Optional[int] = None
    quantity: int
    unit_price: Decimal
    product: Optional[ProductSummary] = None

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    user_id: int
    items: List[OrderItemRead] = []
    total: Decimal
    status: OrderStatus
    payment_method: str
    payment_status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
