# backend/routes/cart.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from utils.audit import write_log
from schemas.cart import CartAddItem, CartUpdateItem, CartOut
from services.reservations import ReservationManager

router = APIRouter(prefix="/cart", tags=["Cart"])

def get_reservations(db: Session = Depends(get_db)) -> ReservationManager:
    return ReservationManager(db)

def _client_ip(request: Request):
    return request.client.host if request.client else None

def _cart_meta(out: CartOut, **extra):
    # Audit meta is stored as JSON
    meta = {"cart_id": out.cart_id, "cart_items": len(out.items), "subtotal": str(out.subtotal)}
    meta.update(extra)
    return meta

@router.get("/{session_key}", response_model=CartOut)
def get_cart(
    session_key: str,
    reservations: ReservationManager = Depends(get_reservations),
):
    return reservations.get_cart(session_key)

@router.post("/{session_key}/items", response_model=CartOut, status_code=status.HTTP_200_OK)
def add_to_cart(
    session_key: str,
    payload: CartAddItem,
    request: Request,
    reservations: ReservationManager = Depends(get_reservations),
):
    out = reservations.add_to_cart(session_key, payload.sku_id, payload.qty)

    write_log(
        reservations.db,
        session_key=session_key,
        action="CART_ADD",
        resource="cart",
        status="SUCCESS",
        ip=_client_ip(request),
        meta=_cart_meta(out, sku_id=payload.sku_id, qty=payload.qty),
    )
    return out

@router.put("/{session_key}/items/{item_id}", response_model=CartOut)
def update_cart_item(
    session_key: str,
    item_id: int,
    payload: CartUpdateItem,
    request: Request,
    reservations: ReservationManager = Depends(get_reservations),
):
    out = reservations.change_quantity(session_key, item_id, payload.qty)

    write_log(
        reservations.db,
        session_key=session_key,
        action="CART_UPDATE",
        resource="cart",
        status="SUCCESS",
        ip=_client_ip(request),
        meta=_cart_meta(out, item_id=item_id, qty=payload.qty),
    )
    return out

@router.delete("/{session_key}/items/{item_id}", response_model=CartOut)
def delete_cart_item(
    session_key: str,
    item_id: int,
    request: Request,
    reservations: ReservationManager = Depends(get_reservations),
):
    out = reservations.remove_from_cart(session_key, item_id)

    write_log(
        reservations.db,
        session_key=session_key,
        action="CART_DELETE",
        resource="cart",
        status="SUCCESS",
        ip=_client_ip(request),
        meta=_cart_meta(out, item_id=item_id),
    )
    return out
