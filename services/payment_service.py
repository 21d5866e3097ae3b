# backend/services/payment_service.py
import logging
from dataclasses import dataclass

import requests

from services.errors import IntegrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str


class StripePaymentClient:
    """Creates Stripe payment intents over the REST API."""

    def __init__(self, secret_key, base_url="https://api.stripe.com/v1", timeout=10):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def is_configured(self):
        return bool(self.secret_key)

    def create_payment_intent(self, amount, currency, metadata=None):
        """Open an intent for ``amount`` in minor units (agorot for ILS)."""
        url = f"{self.base_url}/payment_intents"
        payload = {"amount": int(amount), "currency": currency}
        for key, value in (metadata or {}).items():
            payload[f"metadata[{key}]"] = value

        try:
            response = requests.post(
                url, auth=(self.secret_key, ""), data=payload, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise IntegrationError("Payment intent creation failed", details=str(e))

        if not data.get("id") or not data.get("client_secret"):
            raise IntegrationError("Payment intent creation failed", details=str(data))

        logger.info("Created payment intent %s for %s %s", data["id"], amount, currency)
        return PaymentIntent(id=data["id"], client_secret=data["client_secret"])
