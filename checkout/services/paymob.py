# checkout/services/paymob.py
"""Minimal Paymob Accept client: auth token -> gateway order -> payment key."""
import logging

import requests

from ..errors import GatewayError, GatewayNotConfigured, GatewayTimeout

logger = logging.getLogger(__name__)


class PaymobClient:
    def __init__(self, api_key, integration_id, iframe_id, base_url="https://accept.paymob.com/api",
                 currency="EGP", timeout=10, session=None):
        self.api_key = api_key
        self.integration_id = integration_id
        self.iframe_id = iframe_id
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        missing = [k for k in ("PAYMOB_API_KEY", "PAYMOB_INTEGRATION_ID", "PAYMOB_IFRAME_ID") if not config.get(k)]
        if missing:
            return None
        return cls(
            api_key=config["PAYMOB_API_KEY"],
            integration_id=int(config["PAYMOB_INTEGRATION_ID"]),
            iframe_id=config["PAYMOB_IFRAME_ID"],
            base_url=config.get("PAYMOB_BASE_URL") or "https://accept.paymob.com/api",
            currency=config.get("PAYMOB_CURRENCY") or "EGP",
            timeout=config.get("GATEWAY_TIMEOUT_SECONDS") or 10,
        )

    def _post(self, path, payload):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error("Paymob request to %s timed out", path)
            raise GatewayTimeout() from e
        except requests.RequestException as e:
            logger.error("Paymob request to %s failed: %s", path, e)
            raise GatewayError() from e
        if not response.ok:
            logger.error("Paymob %s returned %s: %s", path, response.status_code, response.text[:500])
            raise GatewayError(f"Paymob request failed: {response.status_code}")
        return response.json()

    def create_payment(self, amount_cents, merchant_order_id, billing_data, items=None):
        auth = self._post("/auth/tokens", {"api_key": self.api_key})
        order = self._post("/ecommerce/orders", {
            "auth_token": auth["token"],
            "delivery_needed": "false",
            "amount_cents": amount_cents,
            "currency": self.currency,
            "merchant_order_id": merchant_order_id,
            "items": items or [],
        })
        payment_key = self._post("/acceptance/payment_keys", {
            "auth_token": auth["token"],
            "amount_cents": amount_cents,
            "expiration": 3600,
            "order_id": order["id"],
            "billing_data": billing_data,
            "currency": self.currency,
            "integration_id": self.integration_id,
            "lock_order_when_paid": "false",
        })
        return {
            "iframe_url": f"{self.base_url}/acceptance/iframes/{self.iframe_id}?payment_token={payment_key['token']}",
            "gateway_order_id": order["id"],
        }


def require_gateway(gateway):
    if gateway is None:
        raise GatewayNotConfigured()
    return gateway
