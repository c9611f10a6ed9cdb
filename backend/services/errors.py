# backend/services/errors.py

# Base class for failures reported by the reservation subsystem
class ReservationError(Exception):
    pass


class InsufficientStock(ReservationError):
    def __init__(self, sku_id: int, requested: int, available: int):
        self.sku_id = sku_id
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for SKU {sku_id}: requested {requested}, available {available}")


# Cart, cart line, SKU or order is missing (usually expired or already removed)
class NotFound(ReservationError):
    def __init__(self, resource: str, key=None, message: str = None):
        self.resource = resource
        self.key = key
        super().__init__(message or f"{resource} {key} not found")


# The paid-for cart is gone: consumed by another finalization or swept after expiry
class CartNotFound(NotFound):
    def __init__(self, key=None):
        super().__init__("Cart", key, "Checkout session expired, please review your cart.")


# Lock timeout, deadlock or lost connection; safe to retry with backoff
class TransientStorageFailure(ReservationError):
    pass


# A cart line changed between read and write
class StaleCartLine(TransientStorageFailure):
    def __init__(self, line_id: int):
        self.line_id = line_id
        super().__init__(f"Cart line {line_id} was modified concurrently")
