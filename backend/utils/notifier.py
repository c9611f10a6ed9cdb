# backend/utils/notifier.py
import httpx
import logging
from config import settings
from schemas.order import OrderResponse

logger = logging.getLogger(__name__)

class OrderNotifier:
    def __init__(self, url: str = None, timeout: float = None, transport: httpx.BaseTransport = None):
        # Receipt/email service endpoint; without one notifications are only logged
        self.url = url if url is not None else settings.ORDER_NOTIFY_URL
        self.timeout = timeout if timeout is not None else settings.ORDER_NOTIFY_TIMEOUT_SECONDS
        self.transport = transport

    def order_paid(self, order) -> bool:
        # Push the committed order downstream; returns whether it was delivered
        payload = OrderResponse.model_validate(order).model_dump(mode="json")
        if not self.url:
            logger.info("Order %s paid; no ORDER_NOTIFY_URL configured, skipping notification", order.id)
            return False

        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": order.payment_reference,
        }
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = client.post(self.url, json={"event": "order.paid", "order": payload}, headers=headers)
                response.raise_for_status()
                return True
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                # Log detailed error information; the order itself is already committed
                try:
                    resp_text = e.response.text if hasattr(e, 'response') and e.response is not None else str(e)
                except Exception:
                    resp_text = str(e)
                logger.error(f"Order notification error for order {order.id}: {resp_text}")
                return False

order_notifier = OrderNotifier()
