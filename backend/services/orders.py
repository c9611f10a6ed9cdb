# backend/services/orders.py
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from config import settings
from database import atomic
from models.cart import Cart, CartItem
from models.order import Order, OrderItem, OrderStatus
from models.product import ProductVariant
from models.stock import StockKeepingUnit
from schemas.order import PaymentConfirmation
from services.errors import CartNotFound, NotFound, TransientStorageFailure
from utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    order: Order
    created: bool


class OrderFinalizer:
    """
    Converts a paid cart into a permanent order exactly once per payment reference.

    The reservation made while the cart was built becomes the sale, so
    finalization never touches the stock ledger.
    """

    def __init__(self, db: Session, clock: Callable = utcnow, notifier=None, default_country: str = None):
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.default_country = default_country or settings.DEFAULT_SHIPPING_COUNTRY

    def get(self, order_id: int) -> Order:
        order = self._orders().filter(Order.id == order_id).first()
        if order is None:
            raise NotFound("Order", order_id)
        return order

    def get_by_reference(self, payment_reference: str) -> Optional[Order]:
        return self._orders().filter(Order.payment_reference == payment_reference).first()

    def finalize(self, confirmation: PaymentConfirmation) -> FinalizeResult:
        reference = confirmation.payment_reference

        try:
            with atomic(self.db):
                # Duplicate confirmations stop here
                existing = self.get_by_reference(reference)
                if existing is not None:
                    logger.info("Payment %s already finalized as order %s", reference, existing.id)
                    return FinalizeResult(existing, created=False)

                cart = self._lock_cart(confirmation)
                lines = self._cart_lines(cart) if cart is not None else []
                if not lines:
                    # A concurrent finalization of this payment may have consumed the cart while we waited on its lock
                    existing = self.get_by_reference(reference)
                    if existing is not None:
                        logger.info("Payment %s finalized concurrently as order %s", reference, existing.id)
                        return FinalizeResult(existing, created=False)
                    raise CartNotFound(confirmation.cart_id or confirmation.session_key)

                order = self._build_order(confirmation, cart, lines)
                self.db.add(order)
                self.db.flush()

                # Lines cascade; the stock stays debited as the sale
                self.db.delete(cart)
                self.db.flush()
        except IntegrityError as e:
            # Someone else committed this payment reference between our lookup and insert
            existing = self.get_by_reference(reference)
            if existing is None:
                raise TransientStorageFailure(f"Could not finalize payment {reference}") from e
            logger.info("Payment %s finalized concurrently as order %s", reference, existing.id)
            return FinalizeResult(existing, created=False)

        order = self.get(order.id)
        logger.info(
            "Order %s created for payment %s (%s item(s), total %s)",
            order.id, reference, len(order.items), order.total_amount,
        )
        self._notify(order)
        return FinalizeResult(order, created=True)

    def _orders(self):
        return self.db.query(Order).options(joinedload(Order.items))

    def _lock_cart(self, confirmation: PaymentConfirmation) -> Optional[Cart]:
        q = self.db.query(Cart)
        if confirmation.cart_id is not None:
            q = q.filter(Cart.id == confirmation.cart_id)
            if confirmation.session_key:
                q = q.filter(Cart.session_key == confirmation.session_key)
        else:
            q = q.filter(Cart.session_key == confirmation.session_key)
        return q.populate_existing().with_for_update(of=Cart).first()

    def _cart_lines(self, cart: Cart):
        return (
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

    def _build_order(self, confirmation: PaymentConfirmation, cart: Cart, lines) -> Order:
        items = []
        subtotal = Decimal("0.00")
        for line in lines:
            variant = line.sku.variant
            product = variant.product
            price = Decimal(variant.price)
            subtotal += price * line.quantity
            # Copy, don't reference: later catalog edits must not change this order
            items.append(OrderItem(
                sku_id=line.sku_id,
                product_id=product.id if product else None,
                product_name=product.name if product else "",
                variant_color=variant.color_name,
                variant_size=line.sku.size,
                price_paid=price,
                quantity=line.quantity,
            ))

        amounts = confirmation.amounts
        if amounts.subtotal is not None and amounts.subtotal != subtotal:
            logger.warning(
                "Payment %s subtotal %s differs from cart subtotal %s",
                confirmation.payment_reference, amounts.subtotal, subtotal,
            )
        shipping_cost = amounts.shipping_cost or Decimal("0.00")
        total = amounts.total_amount if amounts.total_amount is not None else subtotal + shipping_cost

        buyer, shipping = confirmation.buyer, confirmation.shipping
        return Order(
            payment_reference=confirmation.payment_reference,
            session_key=cart.session_key,
            status=OrderStatus.PAID,
            created_at=self.clock(),
            customer_email=buyer.email,
            full_name=buyer.full_name,
            phone_number=buyer.phone,
            shipping_address_line1=shipping.line1,
            shipping_city=shipping.city,
            shipping_postal_code=shipping.postal_code,
            shipping_country=shipping.country or self.default_country,
            currency=amounts.currency or settings.CURRENCY,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            total_amount=total,
            items=items,
        )

    def _notify(self, order: Order) -> None:
        # Side effect after commit; a failure here must not undo the order
        if self.notifier is None:
            return
        try:
            self.notifier.order_paid(order)
        except Exception as e:
            logger.exception("Order %s committed but downstream notification failed: %s", order.id, e)
