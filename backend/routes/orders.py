# backend/routes/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models.order import Order
from schemas.order import OrderResponse
from services.errors import NotFound
from services.orders import OrderFinalizer

router = APIRouter(prefix="/orders", tags=["Orders"])

def get_orders(db: Session = Depends(get_db)) -> OrderFinalizer:
    return OrderFinalizer(db)

def _order_to_out(order: Order) -> OrderResponse:
    return OrderResponse.model_validate(order)

def _ensure_owner(order: Order, session_key: str):
    # Orders are only visible to the session that paid for them
    if order is None or order.session_key != session_key:
        raise HTTPException(status_code=404, detail="Order not found or forbidden")

# Look up the order created for a payment (order confirmation page)
@router.get("/by-payment/{payment_reference}", response_model=OrderResponse)
def get_order_by_payment(
    payment_reference: str,
    session_key: str = Query(..., min_length=1),
    orders: OrderFinalizer = Depends(get_orders),
):
    order = orders.get_by_reference(payment_reference)
    _ensure_owner(order, session_key)
    return _order_to_out(order)

# Get details of a specific order
@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    session_key: str = Query(..., min_length=1),
    orders: OrderFinalizer = Depends(get_orders),
):
    try:
        order = orders.get(order_id)
    except NotFound:
        order = None
    _ensure_owner(order, session_key)
    return _order_to_out(order)
