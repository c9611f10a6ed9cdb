import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from database import build_engine, init_db
from models.cart import CartItem
from models.order import Order
from models.product import Product, ProductVariant
from models.stock import StockKeepingUnit
from schemas.order import PaymentConfirmation
from services.errors import InsufficientStock, TransientStorageFailure
from services.orders import OrderFinalizer
from services.reservations import ReservationManager
from services.stock_ledger import StockLedger

TTL = timedelta(minutes=30)


@pytest.fixture
def file_sessions(tmp_path):
    """Real database file so every thread gets its own connection."""
    engine = build_engine(f"sqlite:///{tmp_path / 'reservations.db'}", lock_timeout_ms=10000)
    init_db(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


def seed_sku(session_factory, qty):
    with session_factory() as db:
        product = Product(name="Linen Shirt")
        variant = ProductVariant(product=product, color_name="Navy", price=Decimal("1500.00"))
        sku = StockKeepingUnit(variant=variant, size="M", available_quantity=qty)
        db.add(product)
        db.commit()
        return sku.id


def run_concurrently(session_factory, jobs):
    """Starts every job at once, each with its own session; returns outcome per job."""
    barrier = threading.Barrier(len(jobs))
    outcomes = [None] * len(jobs)

    def worker(index, job):
        with session_factory() as db:
            manager = ReservationManager(db, ttl=TTL, sweep_policy="both")
            barrier.wait()
            try:
                job(manager)
                outcomes[index] = "ok"
            except InsufficientStock:
                outcomes[index] = "insufficient"
            except TransientStorageFailure:
                outcomes[index] = "retry"

    threads = [threading.Thread(target=worker, args=(i, job)) for i, job in enumerate(jobs)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def stock_state(session_factory, sku_id):
    with session_factory() as db:
        available = StockLedger(db).available(sku_id)
        in_carts = db.query(func.coalesce(func.sum(CartItem.quantity), 0)).filter(CartItem.sku_id == sku_id).scalar()
        return available, in_carts


def test_last_unit_goes_to_exactly_one_shopper(file_sessions):
    sku_id = seed_sku(file_sessions, qty=1)
    jobs = [lambda m, i=i: m.add_to_cart(f"shopper-{i}", sku_id, 1) for i in range(8)]

    outcomes = run_concurrently(file_sessions, jobs)

    assert outcomes.count("ok") == 1
    assert set(outcomes) <= {"ok", "insufficient", "retry"}
    assert stock_state(file_sessions, sku_id) == (0, 1)


def test_concurrent_adds_never_oversell(file_sessions):
    sku_id = seed_sku(file_sessions, qty=5)
    jobs = [lambda m, i=i: m.add_to_cart(f"shopper-{i}", sku_id, 2) for i in range(6)]

    outcomes = run_concurrently(file_sessions, jobs)

    available, in_carts = stock_state(file_sessions, sku_id)
    assert available >= 0
    assert available + in_carts == 5
    assert in_carts == 2 * outcomes.count("ok")
    assert outcomes.count("ok") <= 2


def test_concurrent_quantity_changes_keep_stock_in_step(file_sessions):
    sku_id = seed_sku(file_sessions, qty=10)
    with file_sessions() as db:
        line_id = ReservationManager(db, ttl=TTL).add_to_cart("s1", sku_id, 1).items[0].id

    jobs = [
        lambda m: m.change_quantity("s1", line_id, 3),
        lambda m: m.change_quantity("s1", line_id, 6),
        lambda m: m.change_quantity("s1", line_id, 2),
    ]
    outcomes = run_concurrently(file_sessions, jobs)

    assert "ok" in outcomes
    available, in_carts = stock_state(file_sessions, sku_id)
    assert in_carts in (2, 3, 6)
    assert available == 10 - in_carts


def test_duplicate_payment_confirmations_share_one_order(file_sessions):
    sku_id = seed_sku(file_sessions, qty=5)
    with file_sessions() as db:
        ReservationManager(db, ttl=TTL).add_to_cart("s1", sku_id, 3)

    confirmation = PaymentConfirmation.model_validate({
        "payment_reference": "pay_123",
        "session_key": "s1",
        "buyer": {"email": "nimal@example.com"},
    })
    barrier = threading.Barrier(4)
    order_ids = [None] * 4

    def worker(index):
        with file_sessions() as db:
            finalizer = OrderFinalizer(db)
            barrier.wait()
            try:
                order_ids[index] = finalizer.finalize(confirmation).order.id
            except TransientStorageFailure:
                order_ids[index] = "retry"

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    with file_sessions() as db:
        orders = db.query(Order).all()
        assert len(orders) == 1
        assert {order_id for order_id in order_ids if order_id != "retry"} == {orders[0].id}
    assert stock_state(file_sessions, sku_id) == (2, 0)
