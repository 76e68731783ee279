"""
truleado.services.billing_service

Analytics token purchases through the payment gateway.

Responsibilities:
- Create a gateway order plus a pending purchase record (agency admins only).
- Verify the checkout signature and credit tokens exactly once.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import TokenPurchase, TokenPurchaseStatus, utcnow
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.billing import TokenPurchaseRepo
from truleado.errors import (
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
    ValidationFailed,
)
from truleado.integrations.payments import PaymentGateway
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver
from truleado.rbac.types import AgencyRole
from truleado.settings import Settings

log = get_logger(__name__)

MAX_TOKENS_PER_PURCHASE = 100_000


@dataclass(frozen=True, slots=True)
class CheckoutOrder:
    purchase: TokenPurchase
    order_id: str
    amount_minor: int
    currency: str
    key_id: str


class BillingService:
    def __init__(
        self, session: AsyncSession, *, settings: Settings, gateway: PaymentGateway
    ) -> None:
        self._session = session
        self._settings = settings
        self._gateway = gateway
        self._agencies = AgencyRepo(session)
        self._purchases = TokenPurchaseRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    async def token_balance(self, actor: Actor, agency_id: uuid.UUID) -> int:
        await self._rbac.require_agency_membership(actor, agency_id)
        return await self._agencies.token_balance(agency_id)

    async def list_purchases(self, actor: Actor, agency_id: uuid.UUID) -> list[TokenPurchase]:
        await self._rbac.require_agency_role(actor, agency_id, AgencyRole.agency_admin)
        return await self._purchases.list_for_agency(agency_id)

    async def create_token_purchase(
        self, actor: Actor, agency_id: uuid.UUID, *, tokens: int
    ) -> CheckoutOrder:
        await self._rbac.require_agency_role(actor, agency_id, AgencyRole.agency_admin)
        # bool is an int subclass; True must not buy a token.
        whole = isinstance(tokens, int) and not isinstance(tokens, bool)
        if not whole or not 1 <= tokens <= MAX_TOKENS_PER_PURCHASE:
            raise ValidationFailed(
                f"tokens must be an integer between 1 and {MAX_TOKENS_PER_PURCHASE:,}",
                field="tokens",
            )

        amount = self._settings.token_price_minor_units * tokens
        currency = self._settings.default_currency
        try:
            order = await self._gateway.create_order(
                amount_minor=amount,
                currency=currency,
                receipt=f"tp_{uuid.uuid4().hex[:16]}",
                notes={"agency_id": str(agency_id), "tokens": str(tokens)},
            )
        except httpx.HTTPError as e:
            log.warning("payment_order_failed", agency_id=agency_id, error=str(e))
            raise ExternalServiceError("payment gateway") from e

        purchase = await self._purchases.add(
            TokenPurchase(
                agency_id=agency_id,
                tokens=tokens,
                amount_minor=order.amount_minor,
                currency=order.currency,
                status=TokenPurchaseStatus.pending,
                gateway_order_id=order.order_id,
                created_by=actor.user_id,
            )
        )
        await self._activity.add(
            agency_id=agency_id,
            entity_type="token_purchase",
            entity_id=purchase.id,
            action="created",
            actor_id=actor.user_id,
            metadata={"order_id": order.order_id, "tokens": tokens, "amount_minor": amount},
        )
        await self._session.commit()
        log.info("token_purchase_created", agency_id=agency_id, order_id=order.order_id)
        return CheckoutOrder(
            purchase=purchase,
            order_id=order.order_id,
            amount_minor=order.amount_minor,
            currency=order.currency,
            key_id=self._settings.payment_key_id,
        )

    async def verify_token_purchase(
        self, actor: Actor, *, order_id: str, payment_id: str, signature: str
    ) -> TokenPurchase:
        purchase = await self._purchases.get_by_order(order_id, for_update=True)
        if purchase is None:
            raise NotFoundError("TokenPurchase", order_id)
        await self._rbac.require_agency_role(actor, purchase.agency_id, AgencyRole.agency_admin)

        if purchase.status is not TokenPurchaseStatus.pending:
            raise InvalidStateError(
                "Purchase already processed",
                current_state=purchase.status.value,
                attempted_transition=TokenPurchaseStatus.completed.value,
            )

        if not self._gateway.verify_signature(
            order_id=order_id, payment_id=payment_id, signature=signature
        ):
            purchase.status = TokenPurchaseStatus.failed
            purchase.gateway_payment_id = payment_id
            await self._activity.add(
                agency_id=purchase.agency_id,
                entity_type="token_purchase",
                entity_id=purchase.id,
                action="signature_rejected",
                actor_id=actor.user_id,
                metadata={"order_id": order_id},
            )
            await self._session.commit()
            log.warning("token_purchase_signature_invalid", order_id=order_id)
            raise ValidationFailed("Invalid payment signature", field="signature")

        purchase.status = TokenPurchaseStatus.completed
        purchase.gateway_payment_id = payment_id
        purchase.completed_at = utcnow()
        balance = await self._agencies.credit_tokens(purchase.agency_id, purchase.tokens)
        await self._activity.add(
            agency_id=purchase.agency_id,
            entity_type="token_purchase",
            entity_id=purchase.id,
            action="completed",
            actor_id=actor.user_id,
            metadata={"tokens_added": purchase.tokens, "new_balance": balance},
        )
        await self._session.commit()
        log.info(
            "token_purchase_completed",
            agency_id=purchase.agency_id,
            tokens=purchase.tokens,
            balance=balance,
        )
        return purchase
