# backend/services/reservations.py
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from database import atomic
from models.cart import Cart, CartItem
from schemas.cart import CartOut
from services.cart_store import CartStore
from services.errors import NotFound, TransientStorageFailure
from services.stock_ledger import StockLedger
from utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    carts: int = 0
    units: int = 0
    skus: Dict[int, int] = field(default_factory=dict)


class ReservationManager:
    """
    Keeps "item in cart" and "quantity debited" consistent.

    For every SKU, the sum of quantities over all live cart lines equals
    what has been subtracted from its available_quantity. Each public
    method is one transaction; locks are taken cart row first, then SKU
    rows in ascending id order.
    """

    def __init__(
        self,
        db: Session,
        ledger: StockLedger = None,
        carts: CartStore = None,
        clock: Callable = utcnow,
        ttl: timedelta = None,
        sweep_policy: str = None,
    ):
        self.db = db
        self.clock = clock
        self.ledger = ledger or StockLedger(db)
        self.carts = carts or CartStore(db, ttl or timedelta(minutes=settings.CART_TTL_MINUTES), clock)
        self.sweep_policy = sweep_policy or settings.CART_SWEEP_POLICY

    # Queries

    def get_cart(self, session_key: str) -> CartOut:
        cart = self.carts.find_by_session(session_key)
        if cart is not None and cart.is_expired(self.clock()):
            # The session's own lease ran out: give its stock back before answering
            self._sweep_cart(cart.id)
            cart = self.carts.find_by_session(session_key)
        return self.carts.summary(session_key, cart)

    # Commands

    def add_to_cart(self, session_key: str, sku_id: int, qty: int) -> CartOut:
        if qty <= 0:
            raise ValueError("Quantity must be greater than 0")

        self._sweep_before_reserve(sku_id, session_key)

        def _add():
            with atomic(self.db):
                cart = self.carts.get_or_create(session_key, on_expired=self._release_lines)
                self.ledger.reserve(sku_id, qty)
                self.carts.add_line(cart, sku_id, qty)
                self.carts.touch(cart)
            return cart

        cart = self._retry_on_duplicate(_add)
        logger.info("Session %s reserved %s unit(s) of SKU %s", session_key, qty, sku_id)
        return self.carts.summary(session_key, cart)

    def change_quantity(self, session_key: str, line_id: int, new_qty: int) -> CartOut:
        if new_qty <= 0:
            return self.remove_from_cart(session_key, line_id)

        line = self.carts.find_line(line_id)
        if line is None:
            raise NotFound("Cart line", line_id)
        self._sweep_before_reserve(line.sku_id, session_key)

        expired = False
        with atomic(self.db):
            cart = self._owned_cart(session_key, line_id)
            if cart is None:
                raise NotFound("Cart line", line_id)
            if cart.is_expired(self.clock()):
                self._release_lines(cart)
                self.carts.delete(cart)
                expired = True
            else:
                self.ledger.lock(line.sku_id)
                # Re-read under the locks: the quantity may have moved since the lookup
                line = self.carts.find_line(line_id)
                old_qty = line.quantity
                delta = new_qty - old_qty
                if delta > 0:
                    self.ledger.reserve(line.sku_id, delta)
                elif delta < 0:
                    self.ledger.release(line.sku_id, -delta)
                self.carts.set_line_quantity(line, old_qty, new_qty)
                self.carts.touch(cart)

        if expired:
            raise NotFound("Cart", session_key, "Cart expired, please review your cart.")

        logger.info("Session %s set cart line %s to %s", session_key, line_id, new_qty)
        return self.carts.summary(session_key, cart)

    def remove_from_cart(self, session_key: str, line_id: int) -> CartOut:
        with atomic(self.db):
            cart = self._owned_cart(session_key, line_id)
            if cart is None:
                # Already gone (double click, retry): nothing to give back
                cart = self.carts.find_by_session(session_key)
            elif cart.is_expired(self.clock()):
                self._release_lines(cart)
                self.carts.delete(cart)
                cart = None
            else:
                line = self.carts.find_line(line_id)
                self.ledger.release(line.sku_id, line.quantity)
                self.carts.remove_line(line, line.quantity)
                self.carts.touch(cart)
                logger.info("Session %s removed cart line %s", session_key, line_id)

        return self.carts.summary(session_key, cart)

    def sweep_expired_carts(self, sku_id: Optional[int] = None, skip_session: Optional[str] = None) -> SweepResult:
        """
        Gives the stock of every expired cart back and deletes those carts.

        Each cart is handled in its own transaction and re-checked under its
        row lock, so an interrupted or concurrent sweep never releases the
        same cart twice. With sku_id only carts holding that SKU are swept;
        skip_session leaves that session's cart to its own request.
        """
        now = self.clock()
        q = self.db.query(Cart.id).filter(Cart.expires_at <= now)
        if sku_id is not None:
            q = q.filter(Cart.id.in_(self.db.query(CartItem.cart_id).filter(CartItem.sku_id == sku_id)))
        if skip_session is not None:
            q = q.filter(Cart.session_key != skip_session)
        cart_ids = [row[0] for row in q.order_by(Cart.id).all()]
        self.db.rollback()

        result = SweepResult()
        released = defaultdict(int)
        for cart_id in cart_ids:
            per_sku = self._sweep_cart(cart_id, now)
            if per_sku is None:
                continue
            result.carts += 1
            for sid, qty in per_sku.items():
                released[sid] += qty
                result.units += qty

        result.skus = dict(released)
        if result.carts:
            logger.info("Swept %s expired cart(s), released %s unit(s)", result.carts, result.units)
        return result

    # Internals

    def _owned_cart(self, session_key: str, line_id: int) -> Optional[Cart]:
        cart = self.carts.find_by_session(session_key, lock=True)
        if cart is None:
            return None
        line = self.carts.find_line(line_id)
        if line is None or line.cart_id != cart.id:
            return None
        return cart

    def _release_lines(self, cart: Cart) -> Dict[int, int]:
        lines = self.carts.lines(cart)
        per_sku = defaultdict(int)
        for line in lines:
            per_sku[line.sku_id] += line.quantity
        self.ledger.lock_many(per_sku.keys())
        for sid in sorted(per_sku):
            self.ledger.release(sid, per_sku[sid])
        return dict(per_sku)

    def _sweep_cart(self, cart_id: int, now=None) -> Optional[Dict[int, int]]:
        now = now or self.clock()
        with atomic(self.db):
            cart = self.carts.get(cart_id, lock=True)
            if cart is None or not cart.is_expired(now):
                # Finalized, refreshed or already swept by someone else
                return None
            session_key = cart.session_key
            per_sku = self._release_lines(cart)
            self.carts.delete(cart)
        logger.info("Expired cart %s (session %s) released %s", cart_id, session_key, per_sku)
        return per_sku

    def _sweep_before_reserve(self, sku_id: int, session_key: str) -> None:
        if self.sweep_policy in ("lazy", "both"):
            # The caller's own expired cart is released inside its transaction
            self.sweep_expired_carts(sku_id=sku_id, skip_session=session_key)

    def _retry_on_duplicate(self, operation: Callable, attempts: int = 2):
        # Two requests of one session may race to insert the same cart or cart line
        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except IntegrityError as e:
                logger.warning("Duplicate insert on attempt %s: %s", attempt, e.orig)
                if attempt == attempts:
                    raise TransientStorageFailure("Concurrent cart update, please retry") from e
