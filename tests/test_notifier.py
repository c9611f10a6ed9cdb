import json
from datetime import datetime
from decimal import Decimal

import httpx
import pytest

from models import Order, OrderItem, OrderStatus
from utils.notifier import OrderNotifier

NOTIFY_URL = "https://receipts.example.com/hooks/orders"


@pytest.fixture
def order():
    return Order(
        id=7,
        payment_reference="pay_777",
        session_key="s1",
        status=OrderStatus.PAID,
        created_at=datetime(2024, 1, 1, 12, 30),
        customer_email="nimal@example.com",
        full_name="Nimal Perera",
        shipping_country="Sri Lanka",
        currency="LKR",
        subtotal=Decimal("3000.00"),
        shipping_cost=Decimal("350.00"),
        total_amount=Decimal("3350.00"),
        items=[
            OrderItem(
                sku_id=3,
                product_id=1,
                product_name="Linen Shirt",
                variant_color="Navy",
                variant_size="M",
                price_paid=Decimal("1500.00"),
                quantity=2,
            )
        ],
    )


def test_order_paid_posts_the_order(order):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(202)

    notifier = OrderNotifier(url=NOTIFY_URL, timeout=1, transport=httpx.MockTransport(handler))

    assert notifier.order_paid(order) is True

    assert len(requests) == 1
    request = requests[0]
    assert str(request.url) == NOTIFY_URL
    assert request.headers["Idempotency-Key"] == "pay_777"
    body = json.loads(request.content)
    assert body["event"] == "order.paid"
    assert body["order"]["id"] == 7
    assert body["order"]["status"] == "PAID"
    assert body["order"]["total_amount"] == "3350.00"
    assert body["order"]["items"][0]["product_name"] == "Linen Shirt"
    assert body["order"]["items"][0]["line_total"] == "3000.00"


def test_error_response_is_reported_not_raised(order):
    notifier = OrderNotifier(
        url=NOTIFY_URL,
        timeout=1,
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )

    assert notifier.order_paid(order) is False


def test_connection_failure_is_reported_not_raised(order):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    notifier = OrderNotifier(url=NOTIFY_URL, timeout=1, transport=httpx.MockTransport(handler))

    assert notifier.order_paid(order) is False


def test_without_url_nothing_is_sent(order):
    def handler(request):
        raise AssertionError("no request expected")

    notifier = OrderNotifier(url="", transport=httpx.MockTransport(handler))

    assert notifier.order_paid(order) is False
