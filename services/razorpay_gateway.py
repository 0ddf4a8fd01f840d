import hashlib
import hmac
import logging

import razorpay
import requests

from utils.errors import UpstreamError

logger = logging.getLogger(__name__)

GATEWAY_NAME = "razorpay"


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 of ``order_id|payment_id``, as Razorpay signs checkout results."""
    message = f"{order_id}|{payment_id}"
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


class RazorpayGateway:
    """Thin wrapper over ``razorpay.Client`` built once per process in create_app."""

    def __init__(self, key_id: str, key_secret: str, client=None):
        self.key_id = key_id
        self._key_secret = key_secret
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount_paise: int, currency: str, receipt: str, notes: dict) -> dict:
        """
        Create a Razorpay order.

        Args:
            amount_paise: Amount in the smallest currency unit
            currency: ISO currency code
            receipt: Human-readable receipt id (the booking number)
            notes: Free-form key/value pairs stored on the order

        Returns:
            dict: Razorpay order object (id, amount, currency, receipt, ...)
        """
        order_data = {
            "amount": amount_paise,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        logger.info("Creating Razorpay order for receipt %s (%s %s)", receipt, amount_paise, currency)
        try:
            order = self.client.order.create(data=order_data)
        except (razorpay.errors.BadRequestError,
                razorpay.errors.GatewayError,
                razorpay.errors.ServerError) as exc:
            raise UpstreamError(f"Razorpay error: {exc or 'Unknown error'}") from exc
        except requests.RequestException as exc:
            raise UpstreamError(f"Razorpay error: {exc}") from exc

        logger.info("Razorpay order created: %s", order.get("id"))
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = compute_signature(self._key_secret, order_id, payment_id)
        is_valid = hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))
        logger.info("Payment signature verification for %s: %s", order_id, is_valid)
        return is_valid
