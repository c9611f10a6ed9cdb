# backend/services/cart_store.py
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.orm import Session, joinedload

from models.cart import Cart, CartItem
from models.product import ProductVariant
from models.stock import StockKeepingUnit
from schemas.cart import CartItemOut, CartOut
from services.errors import StaleCartLine
from utils.clock import utcnow

logger = logging.getLogger(__name__)


class CartStore:
    """
    Carts and cart lines. Never touches stock: pairing line changes with
    ledger debits/credits is the ReservationManager's job.
    """

    def __init__(self, db: Session, ttl: timedelta, clock: Callable = utcnow):
        self.db = db
        self.ttl = ttl
        self.clock = clock

    # Lookups

    def get(self, cart_id: int, lock: bool = False) -> Optional[Cart]:
        q = self.db.query(Cart).filter(Cart.id == cart_id)
        if lock:
            q = q.populate_existing().with_for_update(of=Cart)
        return q.first()

    def find_by_session(self, session_key: str, lock: bool = False) -> Optional[Cart]:
        q = self.db.query(Cart).filter(Cart.session_key == session_key)
        if lock:
            q = q.populate_existing().with_for_update(of=Cart)
        return q.first()

    def find_line(self, line_id: int) -> Optional[CartItem]:
        return self.db.query(CartItem).filter(CartItem.id == line_id).populate_existing().first()

    def lines(self, cart: Cart) -> List[CartItem]:
        return (
            self.db.query(CartItem)
            .filter(CartItem.cart_id == cart.id)
            .order_by(CartItem.id)
            .populate_existing()
            .all()
        )

    # Cart lifecycle

    def create(self, session_key: str) -> Cart:
        now = self.clock()
        cart = Cart(session_key=session_key, created_at=now, expires_at=now + self.ttl)
        self.db.add(cart)
        self.db.flush()
        logger.info("Created cart %s for session %s", cart.id, session_key)
        return cart

    def get_or_create(self, session_key: str, on_expired: Callable = None) -> Cart:
        """
        Returns the session's live cart, locked for the rest of the transaction.

        An expired cart is passed to on_expired (which gives its stock back),
        deleted, and replaced by a fresh one.
        """
        cart = self.find_by_session(session_key, lock=True)
        if cart is not None and cart.is_expired(self.clock()):
            if on_expired is not None:
                on_expired(cart)
            self.delete(cart)
            cart = None

        if cart is None:
            cart = self.create(session_key)
        return cart

    def touch(self, cart: Cart) -> Cart:
        # Sliding lease: every mutation pushes expiry to now + TTL
        cart.expires_at = self.clock() + self.ttl
        return cart

    def delete(self, cart: Cart) -> None:
        self.db.delete(cart)
        # Flush now so a replacement cart with the same session key can be inserted
        self.db.flush()

    # Line mutations

    def add_line(self, cart: Cart, sku_id: int, qty: int) -> CartItem:
        item = (
            self.db.query(CartItem)
            .filter(CartItem.cart_id == cart.id, CartItem.sku_id == sku_id)
            .first()
        )
        if item:
            self.db.query(CartItem).filter(CartItem.id == item.id).update(
                {CartItem.quantity: CartItem.quantity + qty}, synchronize_session=False
            )
            self.db.expire(item, ["quantity"])
        else:
            item = CartItem(cart_id=cart.id, sku_id=sku_id, quantity=qty)
            self.db.add(item)
            self.db.flush()
        return item

    def set_line_quantity(self, item: CartItem, old_qty: int, new_qty: int) -> None:
        updated = (
            self.db.query(CartItem)
            .filter(CartItem.id == item.id, CartItem.quantity == old_qty)
            .update({CartItem.quantity: new_qty}, synchronize_session=False)
        )
        if updated != 1:
            raise StaleCartLine(item.id)
        self.db.expire(item, ["quantity"])

    def remove_line(self, item: CartItem, old_qty: int) -> None:
        deleted = (
            self.db.query(CartItem)
            .filter(CartItem.id == item.id, CartItem.quantity == old_qty)
            .delete(synchronize_session=False)
        )
        if deleted != 1:
            raise StaleCartLine(item.id)
        self.db.expunge(item)

    # Presentation

    def summary(self, session_key: str, cart: Optional[Cart] = None) -> CartOut:
        if cart is None or cart.is_expired(self.clock()):
            return CartOut(session_key=session_key)

        items = (
            self.db.query(CartItem)
            .options(
                joinedload(CartItem.sku)
                .joinedload(StockKeepingUnit.variant)
                .joinedload(ProductVariant.product)
            )
            .filter(CartItem.cart_id == cart.id)
            .order_by(CartItem.id)
            .all()
        )

        items_out = []
        subtotal = Decimal("0.00")
        for it in items:
            variant = it.sku.variant
            unit_price = Decimal(variant.price)
            line_total = unit_price * it.quantity
            subtotal += line_total
            items_out.append(CartItemOut(
                id=it.id,
                sku_id=it.sku_id,
                product_id=variant.product_id,
                name=variant.product.name if variant.product else "",
                color_name=variant.color_name,
                size=it.sku.size,
                qty=it.quantity,
                unit_price=unit_price,
                line_total=line_total,
            ))

        return CartOut(
            session_key=session_key,
            cart_id=cart.id,
            items=items_out,
            subtotal=subtotal,
            expires_at=cart.expires_at,
        )
