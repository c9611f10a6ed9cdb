# backend/utils/error_handlers.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.errors import CartNotFound, InsufficientStock, NotFound, TransientStorageFailure

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying after a storage failure
RETRY_AFTER_SECONDS = 1


async def insufficient_stock_handler(request: Request, exc: InsufficientStock):
    return JSONResponse(
        status_code=400,
        content={
            "error": "insufficient_stock",
            "detail": "Not enough stock available",
            "sku_id": exc.sku_id,
            "requested": exc.requested,
            "available": exc.available,
        },
    )


async def cart_not_found_handler(request: Request, exc: CartNotFound):
    return JSONResponse(status_code=409, content={"error": "cart_not_found", "detail": str(exc)})


async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"error": "not_found", "detail": str(exc)})


async def transient_failure_handler(request: Request, exc: TransientStorageFailure):
    logger.warning("Retryable storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"error": "temporarily_unavailable", "detail": "Please retry shortly"},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def register_error_handlers(app: FastAPI) -> None:
    # Resolved along the exception MRO, so CartNotFound wins over NotFound
    app.add_exception_handler(InsufficientStock, insufficient_stock_handler)
    app.add_exception_handler(CartNotFound, cart_not_found_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(TransientStorageFailure, transient_failure_handler)
