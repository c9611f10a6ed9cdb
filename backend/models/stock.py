# backend/models/stock.py
from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base

# Stock keeping unit: one purchasable variant x size.
# available_quantity is the only shared mutable counter; it is changed
# exclusively through services.stock_ledger.StockLedger.
class StockKeepingUnit(Base):
    __tablename__ = "stock_keeping_units"

    id = Column(Integer, primary_key=True, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), index=True, nullable=False)
    size = Column(String, nullable=True)

    available_quantity = Column(
        Integer,
        CheckConstraint("available_quantity >= 0", name="ck_sku_available_nonnegative"),
        nullable=False,
        default=0,
    )

    variant = relationship("ProductVariant", back_populates="skus")
