# backend/models/product.py
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base

# Model Product
# Catalog entry owned by catalog management; only read by the reservation pipeline
# (name is copied into order items at commit time).
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)

    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")


# Colour variant of a product; carries the selling price
class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    color_name = Column(String, nullable=True)

    price = Column(Numeric(10, 2), CheckConstraint("price >= 0", name="ck_variant_price_nonnegative"), nullable=False)

    product = relationship("Product", back_populates="variants")
    skus = relationship("StockKeepingUnit", back_populates="variant", cascade="all, delete-orphan")
