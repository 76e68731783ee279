"""
truleado.integrations.payments

Payment gateway boundary for token purchases.

Responsibilities:
- Create gateway orders (amounts in minor currency units).
- Verify checkout signatures: hex HMAC-SHA256 of "order_id|payment_id".
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Any

import httpx

from truleado.settings import Settings


@dataclass(frozen=True, slots=True)
class GatewayOrder:
    order_id: str
    amount_minor: int
    currency: str


def sign_payment(*, secret: str, order_id: str, payment_id: str) -> str:
    return hmac.new(
        secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256
    ).hexdigest()


class PaymentGateway:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    async def create_order(
        self,
        *,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        r = await self._http.post(
            f"{self._settings.payment_gateway_url.rstrip('/')}/orders",
            auth=(self._settings.payment_key_id, self._settings.payment_key_secret),
            json={
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            },
        )
        r.raise_for_status()
        data: dict[str, Any] = r.json()
        return GatewayOrder(
            order_id=str(data["id"]),
            amount_minor=int(data.get("amount", amount_minor)),
            currency=str(data.get("currency", currency)),
        )

    def verify_signature(self, *, order_id: str, payment_id: str, signature: str) -> bool:
        expected = sign_payment(
            secret=self._settings.payment_key_secret, order_id=order_id, payment_id=payment_id
        )
        return hmac.compare_digest(expected, signature)
