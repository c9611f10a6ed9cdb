from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from database import build_engine, get_db, get_session_factory, init_db
from models.product import Product, ProductVariant
from models.stock import StockKeepingUnit
from schemas.order import PaymentConfirmation
from services.orders import OrderFinalizer
from services.reservations import ReservationManager
from services.stock_ledger import StockLedger

TTL = timedelta(minutes=30)


class FakeClock:
    """Naive-UTC clock the tests move forward by hand."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every session of one test."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_sku(db):
    """Creates product -> variant -> SKU and returns the committed SKU."""

    def _make(qty=5, price="1500.00", name="Linen Shirt", color="Navy", size="M"):
        product = Product(name=name)
        variant = ProductVariant(product=product, color_name=color, price=Decimal(price))
        sku = StockKeepingUnit(variant=variant, size=size, available_quantity=qty)
        db.add(product)
        db.commit()
        return sku

    return _make


@pytest.fixture
def available(db):
    ledger = StockLedger(db)
    return ledger.available


@pytest.fixture
def reservations(db, clock):
    return ReservationManager(db, clock=clock, ttl=TTL, sweep_policy="both")


@pytest.fixture
def finalizer(db, clock):
    return OrderFinalizer(db, clock=clock, default_country="Sri Lanka")


@pytest.fixture
def payment():
    """Builds a PaymentConfirmation with checkout details filled in."""

    def _payment(reference="pay_123", session_key="s1", **overrides):
        data = {
            "payment_reference": reference,
            "status": "succeeded",
            "session_key": session_key,
            "buyer": {"email": "nimal@example.com", "full_name": "Nimal Perera", "phone": "+94 77 123 4567"},
            "shipping": {"line1": "12 Galle Road", "city": "Colombo", "postal_code": "00300"},
        }
        data.update(overrides)
        return PaymentConfirmation.model_validate(data)

    return _payment


@pytest.fixture
def client(session_factory, clock):
    import main
    from routes.cart import get_reservations

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_get_reservations(db: Session = Depends(get_db)):
        return ReservationManager(db, clock=clock, ttl=TTL, sweep_policy="both")

    main.app.dependency_overrides[get_db] = override_get_db
    main.app.dependency_overrides[get_reservations] = override_get_reservations
    main.app.dependency_overrides[get_session_factory] = lambda: session_factory

    # No context manager: the lifespan (table creation, background sweeper) stays off
    yield TestClient(main.app)

    main.app.dependency_overrides.clear()
