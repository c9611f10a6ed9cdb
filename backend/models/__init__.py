# Import every model so SQLAlchemy registers them on Base.metadata

from models.product import Product, ProductVariant
from models.stock import StockKeepingUnit
from models.cart import Cart, CartItem
from models.order import Order, OrderItem, OrderStatus
from models.log import Log

__all__ = [
    "Product",
    "ProductVariant",
    "StockKeepingUnit",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Log",
]
