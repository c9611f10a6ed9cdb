# backend/services/sweeper.py
import asyncio
import logging
from typing import Callable

from config import settings
from services.reservations import ReservationManager, SweepResult
from utils.audit import write_log
from utils.clock import utcnow

logger = logging.getLogger(__name__)


class CartSweeper:
    """Periodic release of expired carts, independent of shopper traffic."""

    def __init__(self, session_factory: Callable, interval_seconds: int = None, clock: Callable = utcnow):
        self.session_factory = session_factory
        if interval_seconds is None:
            interval_seconds = settings.CART_SWEEP_INTERVAL_SECONDS
        self.interval_seconds = interval_seconds
        self.clock = clock

    def run_once(self, source: str = "scheduler") -> SweepResult:
        db = self.session_factory()
        try:
            result = ReservationManager(db, clock=self.clock).sweep_expired_carts()
            if result.carts:
                write_log(
                    db,
                    action="CART_SWEEP",
                    resource="cart",
                    status="SUCCESS",
                    meta={"source": source, "carts": result.carts, "units": result.units,
                          "skus": {str(k): v for k, v in result.skus.items()}},
                )
            return result
        finally:
            db.close()

    async def run_forever(self) -> None:
        logger.info(f"Starting cart sweeper with {self.interval_seconds}s interval")

        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                # Keep sweeping on the next tick; each cart is its own transaction
                logger.error(f"Error in cart sweeper: {str(e)}")
            await asyncio.sleep(self.interval_seconds)
