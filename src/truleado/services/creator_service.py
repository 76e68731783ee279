"""
truleado.services.creator_service

Agency creator roster and campaign invitations.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import CampaignCreator, CampaignCreatorStatus, Creator
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.creators import CreatorRepo
from truleado.errors import NotFoundError, ValidationFailed
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver, CampaignScope
from truleado.rbac.types import Permission
from truleado.services.activity_service import snapshot
from truleado.settings import Settings, get_settings
from truleado.workflow.campaign import ensure_mutable

log = get_logger(__name__)

_CREATOR_FIELDS = (
    "display_name",
    "email",
    "phone",
    "instagram_handle",
    "youtube_handle",
    "tiktok_handle",
    "notes",
)


def _handle(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip().lstrip("@") or None


def validate_rates(rates: dict[str, Any]) -> dict[str, Any]:
    """Normalize {deliverable_type: {"amount": n, "currency": "INR"}} rate cards."""

    out: dict[str, Any] = {}
    for key, entry in (rates or {}).items():
        if not isinstance(entry, dict) or "amount" not in entry:
            raise ValidationFailed(f"Rate for {key} needs an amount", field="rates")
        try:
            amount = Decimal(str(entry["amount"]))
        except ArithmeticError as e:
            raise ValidationFailed(f"Rate for {key} is not a number", field="rates") from e
        if amount < 0:
            raise ValidationFailed(f"Rate for {key} cannot be negative", field="rates")
        out[key] = {"amount": str(amount), "currency": str(entry.get("currency") or "INR").upper()}
    return out


class CreatorService:
    def __init__(self, session: AsyncSession, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._creators = CreatorRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    # --- roster -------------------------------------------------------------

    async def add_creator(
        self,
        actor: Actor,
        agency_id: uuid.UUID,
        *,
        display_name: str,
        email: str | None = None,
        phone: str | None = None,
        instagram_handle: str | None = None,
        youtube_handle: str | None = None,
        tiktok_handle: str | None = None,
        notes: str | None = None,
        rates: dict[str, Any] | None = None,
    ) -> Creator:
        await self._rbac.require_agency_permission(
            actor, agency_id, Permission.manage_creator_roster
        )
        display_name = (display_name or "").strip()
        if len(display_name) < 2:
            raise ValidationFailed(
                "Creator name must be at least 2 characters", field="display_name"
            )

        creator = await self._creators.add(
            Creator(
                agency_id=agency_id,
                display_name=display_name,
                email=(email or "").strip() or None,
                phone=(phone or "").strip() or None,
                instagram_handle=_handle(instagram_handle),
                youtube_handle=_handle(youtube_handle),
                tiktok_handle=_handle(tiktok_handle),
                notes=notes,
                rates=validate_rates(rates or {}),
            )
        )
        await self._activity.add(
            agency_id=agency_id,
            entity_type="creator",
            entity_id=creator.id,
            action="created",
            actor_id=actor.user_id,
            after_state=snapshot(creator, *_CREATOR_FIELDS),
        )
        await self._session.commit()
        log.info("creator_added", agency_id=agency_id, creator_id=creator.id)
        return creator

    async def list_creators(self, actor: Actor, agency_id: uuid.UUID) -> list[Creator]:
        await self._rbac.require_agency_permission(
            actor, agency_id, Permission.view_creator_roster
        )
        return await self._creators.list_for_agency(agency_id)

    async def update_creator_rates(
        self, actor: Actor, creator_id: uuid.UUID, *, rates: dict[str, Any]
    ) -> Creator:
        creator = await self._creators.get(creator_id)
        if creator is None:
            raise NotFoundError("Creator", creator_id)
        await self._rbac.require_agency_permission(
            actor, creator.agency_id, Permission.manage_creator_roster
        )
        before = {"rates": dict(creator.rates or {})}
        creator.rates = validate_rates(rates)
        await self._activity.add(
            agency_id=creator.agency_id,
            entity_type="creator",
            entity_id=creator.id,
            action="rates_updated",
            actor_id=actor.user_id,
            before_state=before,
            after_state={"rates": creator.rates},
        )
        await self._session.commit()
        return creator

    # --- campaign invitations -----------------------------------------------

    async def _campaign_creator(
        self, actor: Actor, campaign_creator_id: uuid.UUID, permission: Permission | None = None
    ) -> tuple[CampaignScope, CampaignCreator]:
        row = await self._creators.get_campaign_creator(campaign_creator_id, for_update=True)
        if row is None:
            raise NotFoundError("CampaignCreator", campaign_creator_id)
        scope = await self._rbac.require_campaign_access(actor, row.campaign_id, permission)
        return scope, row

    async def _log_status(
        self,
        actor: Actor,
        scope: CampaignScope,
        row: CampaignCreator,
        action: str,
        before: CampaignCreatorStatus | None,
    ) -> None:
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="campaign_creator",
            entity_id=row.id,
            action=action,
            actor_id=actor.user_id,
            before_state={"status": before.value} if before is not None else None,
            after_state=snapshot(row, "creator_id", "status", "rate_amount", "rate_currency"),
        )

    async def invite_creator(
        self,
        actor: Actor,
        campaign_id: uuid.UUID,
        *,
        creator_id: uuid.UUID,
        rate_amount: Decimal | None = None,
        rate_currency: str | None = None,
        notes: str | None = None,
    ) -> CampaignCreator:
        scope = await self._rbac.require_campaign_access(
            actor, campaign_id, Permission.invite_creator
        )
        ensure_mutable(scope.campaign_status)
        creator = await self._creators.get(creator_id)
        if creator is None or not creator.is_active:
            raise NotFoundError("Creator", creator_id)
        if creator.agency_id != scope.agency_id:
            raise ValidationFailed(
                "Creator must belong to the same agency as the campaign", field="creator_id"
            )
        if rate_amount is not None and rate_amount < 0:
            raise ValidationFailed("Rate cannot be negative", field="rate_amount")

        currency = (rate_currency or self._settings.default_currency).upper()
        existing = await self._creators.find_campaign_creator(campaign_id, creator_id)
        if existing is not None and existing.status is not CampaignCreatorStatus.removed:
            raise ValidationFailed(
                "Creator is already invited to this campaign", field="creator_id"
            )

        before = existing.status if existing is not None else None
        if existing is not None:
            existing.status = CampaignCreatorStatus.invited
            existing.rate_amount = rate_amount
            existing.rate_currency = currency
            existing.notes = notes
            row = existing
        else:
            row = await self._creators.add_campaign_creator(
                CampaignCreator(
                    campaign_id=campaign_id,
                    creator_id=creator_id,
                    status=CampaignCreatorStatus.invited,
                    rate_amount=rate_amount,
                    rate_currency=currency,
                    notes=notes,
                )
            )
        await self._log_status(actor, scope, row, "invited", before)
        await self._session.commit()
        log.info("creator_invited", campaign_id=campaign_id, creator_id=creator_id)
        return row

    async def _respond(
        self, actor: Actor, campaign_creator_id: uuid.UUID, target: CampaignCreatorStatus
    ) -> CampaignCreator:
        scope, row = await self._campaign_creator(
            actor, campaign_creator_id, Permission.invite_creator
        )
        ensure_mutable(scope.campaign_status)
        if row.status is not CampaignCreatorStatus.invited:
            raise ValidationFailed(
                f"Cannot {'accept' if target is CampaignCreatorStatus.accepted else 'decline'} "
                f"invitation in {row.status.value} status"
            )
        before = row.status
        row.status = target
        await self._log_status(actor, scope, row, target.value, before)
        await self._session.commit()
        return row

    async def accept_invite(self, actor: Actor, campaign_creator_id: uuid.UUID) -> CampaignCreator:
        return await self._respond(actor, campaign_creator_id, CampaignCreatorStatus.accepted)

    async def decline_invite(
        self, actor: Actor, campaign_creator_id: uuid.UUID
    ) -> CampaignCreator:
        return await self._respond(actor, campaign_creator_id, CampaignCreatorStatus.declined)

    async def remove_from_campaign(
        self, actor: Actor, campaign_creator_id: uuid.UUID
    ) -> CampaignCreator:
        scope, row = await self._campaign_creator(
            actor, campaign_creator_id, Permission.invite_creator
        )
        ensure_mutable(scope.campaign_status)
        before = row.status
        row.status = CampaignCreatorStatus.removed
        await self._log_status(actor, scope, row, "removed", before)
        await self._session.commit()
        return row

    async def list_campaign_creators(
        self, actor: Actor, campaign_id: uuid.UUID
    ) -> list[CampaignCreator]:
        await self._rbac.require_campaign_access(actor, campaign_id)
        return await self._creators.campaign_creators(campaign_id)
