# backend/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base
from utils.clock import utcnow

# Represents a shopper's in-progress cart; one per session.
# expires_at is a sliding lease extended on every mutation.
class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    session_key = Column(String, unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, index=True, nullable=False)

    # Lines go with the cart (ORM cascade, plus ON DELETE CASCADE in the schema)
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )

    # Cart ids are never reused, so a stale cart_id in a payment cannot match another shopper
    __table_args__ = {"sqlite_autoincrement": True}

    def is_expired(self, now) -> bool:
        return self.expires_at <= now


# A reserved quantity of one SKU within a cart
class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), index=True, nullable=False)
    sku_id = Column(Integer, ForeignKey("stock_keeping_units.id"), index=True, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity > 0", name="ck_cartitem_quantity_positive"), nullable=False)

    cart = relationship("Cart", back_populates="items")
    sku = relationship("StockKeepingUnit")

    __table_args__ = (
        # Repeated adds increment the existing line instead of duplicating it
        UniqueConstraint("cart_id", "sku_id", name="uq_cartitem_cart_sku"),
    )
