# backend/routes/payments.py
import logging
from fastapi import APIRouter, Request, Depends, HTTPException, Header
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import get_db
from config import settings
from schemas.order import PaymentConfirmation, PaymentNotifyResponse
from services.orders import OrderFinalizer
from utils.audit import write_log
from utils.notifier import order_notifier
from utils.signature import verify_payment_signature

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger(__name__)

# Processor statuses that mean the money was captured
COMPLETED_STATUSES = {"succeeded", "completed", "paid"}

def get_finalizer(db: Session = Depends(get_db)) -> OrderFinalizer:
    return OrderFinalizer(db, notifier=order_notifier)

@router.post("/notify", response_model=PaymentNotifyResponse)
async def payment_notify(
    request: Request,
    finalizer: OrderFinalizer = Depends(get_finalizer),
    payment_signature: str = Header(None, alias="X-Payment-Signature"),
):
    body = await request.body()

    if settings.PAYMENT_WEBHOOK_SECRET:
        if payment_signature is None:
            raise HTTPException(status_code=400, detail="Missing X-Payment-Signature header")
        if not verify_payment_signature(payment_signature, body, settings.PAYMENT_WEBHOOK_SECRET):
            logger.warning("Payment signature verification failed. header=%s", payment_signature)
            raise HTTPException(status_code=403, detail="Signature verification failed")
    else:
        logger.warning("PAYMENT_WEBHOOK_SECRET is not set; accepting unsigned payment notification")

    try:
        confirmation = PaymentConfirmation.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False, include_input=False))

    logger.info("Payment notify received. reference=%s status=%s", confirmation.payment_reference, confirmation.status)

    if confirmation.status.lower() not in COMPLETED_STATUSES:
        return PaymentNotifyResponse(status="ignored")

    # Blocking DB work runs off the event loop
    result = await run_in_threadpool(finalizer.finalize, confirmation)

    write_log(
        finalizer.db,
        session_key=result.order.session_key,
        action="ORDER_FINALIZE",
        resource="orders",
        status="SUCCESS" if result.created else "DUPLICATE",
        ip=request.client.host if request.client else None,
        meta={"order_id": result.order.id, "payment_reference": confirmation.payment_reference},
    )
    return PaymentNotifyResponse(status="ok", order_id=result.order.id, created=result.created)
