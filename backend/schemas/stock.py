# backend/schemas/stock.py
from pydantic import BaseModel
from typing import Dict, Optional

# Current availability of a single SKU
class SkuAvailability(BaseModel):
    sku_id: int
    product_name: str
    color_name: Optional[str] = None
    size: Optional[str] = None
    available_quantity: int

# Result of one expired-cart sweep
class SweepResponse(BaseModel):
    success: bool
    message: str
    carts: int
    units: int
    skus: Dict[int, int]
