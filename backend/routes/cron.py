# backend/routes/cron.py
import logging
from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.concurrency import run_in_threadpool

from config import settings
from database import get_session_factory
import schemas.stock as stock_schemas
from services.sweeper import CartSweeper

router = APIRouter(prefix="/cron", tags=["Cron"])
logger = logging.getLogger(__name__)

def _check_cron_secret(authorization: str):
    # Endpoint is public on the internet; only the scheduler knows the secret
    if not settings.CRON_SECRET or authorization != f"Bearer {settings.CRON_SECRET}":
        raise HTTPException(status_code=401, detail="Unauthorized")

@router.api_route("/cleanup-carts", methods=["GET", "POST"], response_model=stock_schemas.SweepResponse)
async def cleanup_carts(
    authorization: str = Header(None),
    session_factory=Depends(get_session_factory),
):
    _check_cron_secret(authorization)

    result = await run_in_threadpool(CartSweeper(session_factory).run_once, "cron")

    message = (
        f"Cart cleanup complete. Restored items for {len(result.skus)} SKUs. "
        f"Deleted {result.carts} expired carts."
    )
    logger.info(message)
    return {
        "success": True,
        "message": message,
        "carts": result.carts,
        "units": result.units,
        "skus": result.skus,
    }
