import enum
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from database import Base
from utils.clock import utcnow

class OrderStatus(str, enum.Enum):
    PAID = "PAID"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    # Processor transaction id; the idempotency key for finalization
    payment_reference = Column(String, unique=True, nullable=False, index=True)
    session_key = Column(String, index=True, nullable=True)
    status = Column(Enum(OrderStatus, native_enum=False, length=20), default=OrderStatus.PAID, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Buyer contact
    customer_email = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)

    # Shipping address details
    shipping_address_line1 = Column(String, nullable=True)
    shipping_city = Column(String, nullable=True)
    shipping_postal_code = Column(String, nullable=True)
    shipping_country = Column(String, nullable=True)

    # Monetary totals
    currency = Column(String(3), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")

# Snapshot of a cart line at commit time, independent from the live catalog
class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)

    sku_id = Column(Integer, nullable=True)
    product_id = Column(Integer, nullable=True)
    product_name = Column(String, nullable=False)
    variant_color = Column(String, nullable=True)
    variant_size = Column(String, nullable=True)
    price_paid = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
