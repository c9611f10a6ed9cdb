from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from typing import List, Optional
from decimal import Decimal
from datetime import datetime


# Buyer details collected at checkout
class BuyerContact(BaseModel):
    email: str = Field(min_length=3)
    full_name: Optional[str] = None
    phone: Optional[str] = None


# Shipping address collected at checkout
class ShippingAddress(BaseModel):
    line1: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


# Amounts the processor charged
class PaymentAmounts(BaseModel):
    subtotal: Optional[Decimal] = Field(default=None, ge=0)
    shipping_cost: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, max_length=3)


# Payment confirmation delivered by the payment processor (possibly more than once)
class PaymentConfirmation(BaseModel):
    payment_reference: str = Field(min_length=1, max_length=255)
    status: str = "succeeded"
    cart_id: Optional[int] = None
    session_key: Optional[str] = None
    buyer: BuyerContact
    shipping: ShippingAddress = ShippingAddress()
    amounts: PaymentAmounts = PaymentAmounts()

    @model_validator(mode="after")
    def _require_cart_reference(self):
        if self.cart_id is None and not self.session_key:
            raise ValueError("cart_id or session_key is required")
        return self


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    sku_id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: str
    variant_color: Optional[str] = None
    variant_size: Optional[str] = None
    price_paid: Decimal
    quantity: int

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def line_total(self) -> Decimal:
        return self.price_paid * self.quantity


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    payment_reference: str
    status: str
    created_at: datetime
    customer_email: str
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    shipping_address_line1: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_country: Optional[str] = None
    currency: Optional[str] = None
    subtotal: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def _status_value(cls, v):
        return getattr(v, "value", v)


# Response for the payment notification webhook
class PaymentNotifyResponse(BaseModel):
    status: str
    order_id: Optional[int] = None
    created: Optional[bool] = None
