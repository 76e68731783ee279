"""
truleado.services.payment_service

Creator payments for a campaign engagement. Paid is one-way.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import Payment, PaymentStatus, PaymentType, utcnow
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.billing import PaymentRepo
from truleado.db.repositories.creators import CreatorRepo
from truleado.errors import InvalidStateError, NotFoundError, ValidationFailed
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver
from truleado.rbac.types import Permission
from truleado.services.activity_service import snapshot
from truleado.settings import Settings, get_settings
from truleado.workflow.campaign import ensure_mutable

log = get_logger(__name__)

_FIELDS = ("amount", "currency", "payment_type", "status", "payment_reference", "payment_date")


class PaymentService:
    def __init__(self, session: AsyncSession, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._payments = PaymentRepo(session)
        self._creators = CreatorRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    async def create_payment(
        self,
        actor: Actor,
        campaign_creator_id: uuid.UUID,
        *,
        amount: Decimal,
        payment_type: str,
        currency: str | None = None,
        notes: str | None = None,
    ) -> Payment:
        cc = await self._creators.get_campaign_creator(campaign_creator_id)
        if cc is None:
            raise NotFoundError("CampaignCreator", campaign_creator_id)
        scope = await self._rbac.require_campaign_access(
            actor, cc.campaign_id, Permission.manage_payments
        )
        ensure_mutable(scope.campaign_status)

        if amount is None or amount <= 0:
            raise ValidationFailed("Payment amount must be greater than 0", field="amount")
        try:
            kind = PaymentType(payment_type.lower())
        except ValueError as e:
            raise ValidationFailed(
                "Payment type must be one of: advance, milestone, final", field="payment_type"
            ) from e

        payment = await self._payments.add(
            Payment(
                campaign_creator_id=campaign_creator_id,
                amount=amount,
                currency=(currency or cc.rate_currency or self._settings.default_currency).upper(),
                payment_type=kind,
                status=PaymentStatus.pending,
                notes=notes,
                created_by=actor.user_id,
            )
        )
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="payment",
            entity_id=payment.id,
            action="created",
            actor_id=actor.user_id,
            after_state=snapshot(payment, *_FIELDS),
            metadata={"campaign_creator_id": str(campaign_creator_id)},
        )
        await self._session.commit()
        log.info("payment_created", payment_id=payment.id, amount=str(amount))
        return payment

    async def mark_paid(
        self,
        actor: Actor,
        payment_id: uuid.UUID,
        *,
        payment_reference: str | None = None,
        payment_date: datetime | None = None,
    ) -> Payment:
        payment = await self._payments.get(payment_id, for_update=True)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        cc = await self._creators.get_campaign_creator(payment.campaign_creator_id)
        if cc is None:
            raise NotFoundError("CampaignCreator", payment.campaign_creator_id)
        scope = await self._rbac.require_campaign_access(
            actor, cc.campaign_id, Permission.manage_payments
        )
        ensure_mutable(scope.campaign_status)

        if payment.status is PaymentStatus.paid:
            raise InvalidStateError("Payment is already marked as paid", current_state="paid")
        if payment.status is PaymentStatus.failed:
            raise InvalidStateError(
                "Cannot mark a failed payment as paid. Create a new payment instead.",
                current_state="failed",
                attempted_transition="paid",
            )

        before = snapshot(payment, *_FIELDS)
        payment.status = PaymentStatus.paid
        payment.payment_reference = (payment_reference or "").strip() or None
        payment.payment_date = payment_date or utcnow()
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="payment",
            entity_id=payment.id,
            action="marked_paid",
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(payment, *_FIELDS),
        )
        await self._session.commit()
        log.info("payment_marked_paid", payment_id=payment.id)
        return payment

    async def list_payments(self, actor: Actor, campaign_creator_id: uuid.UUID) -> list[Payment]:
        cc = await self._creators.get_campaign_creator(campaign_creator_id)
        if cc is None:
            raise NotFoundError("CampaignCreator", campaign_creator_id)
        await self._rbac.require_campaign_access(actor, cc.campaign_id, Permission.view_payments)
        return await self._payments.list_for_campaign_creator(campaign_creator_id)
