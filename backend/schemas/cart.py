from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

# Request schema for adding an item to the cart
class CartAddItem(BaseModel):
    sku_id: int = Field(gt=0)
    qty: int = Field(gt=0)

# Request schema for changing a cart line quantity (0 removes the line)
class CartUpdateItem(BaseModel):
    qty: int = Field(ge=0)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    sku_id: int
    product_id: Optional[int] = None
    name: str
    color_name: Optional[str] = None
    size: Optional[str] = None
    qty: int
    unit_price: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)

# Response schema for the entire cart summary
class CartOut(BaseModel):
    session_key: str
    cart_id: Optional[int] = None
    items: List[CartItemOut] = []
    subtotal: Decimal = Decimal("0.00")
    expires_at: Optional[datetime] = None
