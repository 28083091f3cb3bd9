"""
Pydantic Schemas for Request/Response Validation

Order payloads keep the client's camelCase wire names
(``userDetails``, ``orderDetails``, ``foodName`` ...); Python code uses
snake_case and the aliases are generated.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from food_ordering.models import Order
from food_ordering.services.ledger import OrderLine, PurchaserSnapshot


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# ORDER SCHEMAS
# =============================================================================

class PurchaserDetails(CamelModel):
    """Purchaser snapshot as sent by the client."""
    name: str = Field(default="", max_length=100, examples=["Ann Lee"])
    email: str = Field(default="", max_length=255, examples=["a@x.com"])

    def to_snapshot(self) -> PurchaserSnapshot:
        return PurchaserSnapshot(name=self.name, email=self.email)


class OrderLineSchema(CamelModel):
    """Single line in an order."""
    food_name: str = Field(..., max_length=100, examples=["Burger"])
    food_price: float = Field(..., allow_inf_nan=False, examples=[5.0])
    quantity: int = Field(..., examples=[2])

    def to_line(self) -> OrderLine:
        return OrderLine(
            food_name=self.food_name,
            food_price=self.food_price,
            quantity=self.quantity,
        )


class OrderCreate(CamelModel):
    """Request schema for placing an order."""
    user_details: Optional[PurchaserDetails] = None
    order_details: List[OrderLineSchema] = Field(default_factory=list)
    total_amount: Optional[float] = Field(None, allow_inf_nan=False, examples=[10.0])
    payment_method: Optional[str] = Field(None, max_length=50, examples=["cash", "card"])


class OrderStatusUpdate(BaseModel):
    """Request body for PUT /orders/{id}."""
    status: Optional[str] = Field(None, examples=["Delivered"])


class OrderResponse(CamelModel):
    """Response schema for a single order."""
    id: int
    user_details: PurchaserDetails
    order_details: List[OrderLineSchema]
    total_amount: float
    payment_method: Optional[str]
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            user_details=PurchaserDetails(name=order.purchaser_name, email=order.purchaser_email),
            order_details=[OrderLineSchema(**line) for line in order.lines],
            total_amount=order.total_amount,
            payment_method=order.payment_method,
            status=order.status.value,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderCreateResponse(BaseModel):
    """Response after successfully placing an order."""
    message: str
    order: OrderResponse


class OrderDeleteResponse(CamelModel):
    message: str
    deleted_order: OrderResponse


# =============================================================================
# IDENTITY SCHEMAS
# =============================================================================

class SignInRequest(BaseModel):
    """Sign-in body; ``identifier`` is an email or a mobile number."""
    identifier: str = Field(..., min_length=1, examples=["a@x.com"])
    secret: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("secret", "password"),
    )


class AuthResponse(BaseModel):
    """Returned by sign-up and sign-in."""
    token: str
    name: str
    email: Optional[str]


class IdentityResponse(CamelModel):
    """Profile view of an identity; never includes the secret hash."""
    id: int
    name: str
    mobile: Optional[str]
    email: Optional[str]
    profile_image: Optional[str]
    is_admin: bool


# =============================================================================
# CATALOG SCHEMAS
# =============================================================================

class FoodItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    image: str
    price: float
    description: str
    type: str


class FoodItemDeleteResponse(CamelModel):
    message: str
    deleted_food_item: FoodItemResponse


class UploadResponse(BaseModel):
    message: str
    path: str


# =============================================================================
# SYSTEM SCHEMAS
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
