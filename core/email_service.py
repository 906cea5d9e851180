# Transactional Email Service
# Order status emails go through an HTTP email API (Mailgun/Postmark style JSON).

import logging
from typing import Any, Dict, Optional

import requests

from config.app_config import EMAIL_API_KEY, EMAIL_API_URL, EMAIL_FROM

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email API rejects or fails a send."""


STATUS_SUBJECTS = {
    "paid": "Order {order_number} confirmed",
    "shipped": "Order {order_number} has shipped",
    "delivered": "Order {order_number} was delivered",
    "cancelled": "Order {order_number} was cancelled",
}


class EmailService:
    """Sends order emails. Disabled (logs only) when no API key is configured."""

    def __init__(self, api_url: str = EMAIL_API_URL, api_key: str = EMAIL_API_KEY, sender: str = EMAIL_FROM, timeout: int = 10):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    @property
    def enabled(self) -> bool:
        return bool(self.api_url and self.api_key)

    def _send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(self.api_url, headers=self.headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.exceptions.RequestException as e:
            logger.error(f"Email API error: {e}")
            raise EmailDeliveryError(f"Email service error: {str(e)}") from e

    def send_order_status_email(self, order, customer, status: str) -> Optional[Dict[str, Any]]:
        """
        Email the customer about their order's new status.

        Args:
            order: Order row (number, totals, estimated delivery)
            customer: Customer row or None for legacy orders
            status: The status being announced

        Returns:
            The API response, or None when email is disabled
        """
        recipient = (customer.email if customer else None) or order.customer_email
        name = (customer.name if customer else None) or order.customer_name

        if not self.enabled:
            logger.warning(f"Email disabled, not sending '{status}' email for order {order.order_number}")
            return None

        subject = STATUS_SUBJECTS.get(status, "Order {order_number} updated").format(order_number=order.order_number)
        lines = [
            f"Hi {name},",
            "",
            f"Your order {order.order_number} is now {status}.",
            f"Total: {order.total_amount}",
        ]
        if order.estimated_delivery_date and status in ("paid", "shipped"):
            lines.append(f"Estimated delivery: {order.estimated_delivery_date:%Y-%m-%d}")

        return self._send({
            "from": self.sender,
            "to": recipient,
            "subject": subject,
            "text": "\n".join(lines),
            "tags": ["order-status", status],
        })
