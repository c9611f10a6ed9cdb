# backend/services/stock_ledger.py
import logging
from sqlalchemy.orm import Session

from models.stock import StockKeepingUnit
from services.errors import InsufficientStock, NotFound

logger = logging.getLogger(__name__)


class StockLedger:
    """
    Authoritative per-SKU available quantity.

    Every method runs inside the caller's transaction and takes an exclusive
    row lock (SELECT ... FOR UPDATE) on the SKU before checking or changing
    it, so concurrent reservations of the same SKU serialize. The decrement
    is additionally guarded in its WHERE clause, which keeps the counter
    non-negative on backends that ignore FOR UPDATE (SQLite).
    """

    def __init__(self, db: Session):
        self.db = db

    def lock(self, sku_id: int) -> StockKeepingUnit:
        sku = (
            self.db.query(StockKeepingUnit)
            .filter(StockKeepingUnit.id == sku_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if sku is None:
            raise NotFound("SKU", sku_id)
        return sku

    def lock_many(self, sku_ids):
        # Ascending id order so multi-SKU transactions never deadlock each other
        return {sku_id: self.lock(sku_id) for sku_id in sorted(set(sku_ids))}

    def available(self, sku_id: int) -> int:
        qty = self.db.query(StockKeepingUnit.available_quantity).filter(StockKeepingUnit.id == sku_id).scalar()
        if qty is None:
            raise NotFound("SKU", sku_id)
        return qty

    def reserve(self, sku_id: int, qty: int) -> StockKeepingUnit:
        if qty <= 0:
            raise ValueError("Reserved quantity must be positive")

        sku = self.lock(sku_id)
        if sku.available_quantity < qty:
            raise InsufficientStock(sku_id, requested=qty, available=sku.available_quantity)

        updated = (
            self.db.query(StockKeepingUnit)
            .filter(StockKeepingUnit.id == sku_id, StockKeepingUnit.available_quantity >= qty)
            .update(
                {StockKeepingUnit.available_quantity: StockKeepingUnit.available_quantity - qty},
                synchronize_session=False,
            )
        )
        if updated != 1:
            # Lost the race on a backend without row locks
            self.db.expire(sku, ["available_quantity"])
            raise InsufficientStock(sku_id, requested=qty, available=sku.available_quantity)

        self.db.expire(sku, ["available_quantity"])
        logger.debug("Reserved %s unit(s) of SKU %s", qty, sku_id)
        return sku

    def release(self, sku_id: int, qty: int) -> None:
        if qty <= 0:
            return

        try:
            sku = self.lock(sku_id)
        except NotFound:
            # Catalog removed the SKU; there is nothing to give the units back to
            logger.warning("Cannot release %s unit(s): SKU %s no longer exists", qty, sku_id)
            return

        self.db.query(StockKeepingUnit).filter(StockKeepingUnit.id == sku_id).update(
            {StockKeepingUnit.available_quantity: StockKeepingUnit.available_quantity + qty},
            synchronize_session=False,
        )
        self.db.expire(sku, ["available_quantity"])
        logger.debug("Released %s unit(s) of SKU %s", qty, sku_id)
