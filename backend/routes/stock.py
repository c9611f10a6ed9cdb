# backend/routes/stock.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models.product import ProductVariant
from models.stock import StockKeepingUnit
import schemas.stock as stock_schemas

router = APIRouter(prefix="/stock", tags=["Stock"])

# Current availability of a SKU (what new shoppers can still reserve)
@router.get("/{sku_id}", response_model=stock_schemas.SkuAvailability)
def get_availability(sku_id: int, db: Session = Depends(get_db)):
    sku = (
        db.query(StockKeepingUnit)
        .options(joinedload(StockKeepingUnit.variant).joinedload(ProductVariant.product))
        .filter(StockKeepingUnit.id == sku_id)
        .first()
    )
    if not sku:
        raise HTTPException(status_code=404, detail="SKU not found")

    variant = sku.variant
    return {
        "sku_id": sku.id,
        "product_name": variant.product.name if variant.product else "",
        "color_name": variant.color_name,
        "size": sku.size,
        "available_quantity": sku.available_quantity,
    }
