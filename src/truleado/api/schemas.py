"""
truleado.api.schemas

Response models shared across routers. Request bodies live next to their routes.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field

from truleado.workflow import campaign as campaign_flow
from truleado.workflow import deliverable as deliverable_flow


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserOut(_Out):
    id: uuid.UUID
    email: str | None
    full_name: str
    is_active: bool


class MembershipOut(_Out):
    agency_id: uuid.UUID
    role: str
    is_active: bool


class MeOut(BaseModel):
    user: UserOut
    memberships: list[MembershipOut]


class AgencyOut(_Out):
    id: uuid.UUID
    name: str
    agency_code: str
    billing_email: str | None
    status: str
    token_balance: int
    currency_code: str
    timezone: str
    language_code: str


class AgencyEmailConfigOut(_Out):
    agency_id: uuid.UUID
    smtp_host: str
    smtp_port: int
    smtp_secure: bool
    smtp_username: str | None
    has_password: bool
    from_email: str
    from_name: str | None
    is_enabled: bool
    integration_identifier: str | None
    updated_at: datetime


class AgencyMemberOut(_Out):
    user_id: uuid.UUID
    role: str
    is_active: bool


class ClientOut(_Out):
    id: uuid.UUID
    agency_id: uuid.UUID
    name: str
    account_manager_id: uuid.UUID
    is_active: bool


class ContactOut(_Out):
    id: uuid.UUID
    client_id: uuid.UUID
    first_name: str
    last_name: str | None
    email: str | None
    phone: str | None
    designation: str | None
    is_client_approver: bool
    user_id: uuid.UUID | None


class ProjectOut(_Out):
    id: uuid.UUID
    client_id: uuid.UUID
    name: str
    description: str | None
    is_archived: bool


class CampaignOut(_Out):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    campaign_type: str
    description: str | None
    brief: str | None
    status: str
    start_date: date | None
    end_date: date | None
    created_by: uuid.UUID

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        return campaign_flow.status_label(self.status)


class CampaignUserOut(_Out):
    user_id: uuid.UUID
    role: str


class AttachmentOut(_Out):
    id: uuid.UUID
    campaign_id: uuid.UUID
    file_name: str
    file_url: str
    file_size: int | None
    mime_type: str | None


class DeliverableOut(_Out):
    id: uuid.UUID
    campaign_id: uuid.UUID
    title: str
    deliverable_type: str
    description: str | None
    due_date: date | None
    status: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        return deliverable_flow.status_label(self.status)


class VersionOut(_Out):
    id: uuid.UUID
    deliverable_id: uuid.UUID
    version_number: int
    file_url: str
    file_name: str | None
    caption: str | None
    submitted_by: uuid.UUID
    created_at: datetime


class ApprovalOut(_Out):
    id: uuid.UUID
    deliverable_id: uuid.UUID
    deliverable_version_id: uuid.UUID
    approval_level: str
    decision: str
    comment: str | None
    decided_by: uuid.UUID
    decided_at: datetime


class TrackingUrlOut(_Out):
    id: uuid.UUID
    url: str
    display_order: int


class CreatorOut(_Out):
    id: uuid.UUID
    agency_id: uuid.UUID
    display_name: str
    email: str | None
    instagram_handle: str | None
    youtube_handle: str | None
    tiktok_handle: str | None
    rates: dict[str, Any]
    is_active: bool


class CampaignCreatorOut(_Out):
    id: uuid.UUID
    campaign_id: uuid.UUID
    creator_id: uuid.UUID
    status: str
    rate_amount: Decimal | None
    rate_currency: str


class SnapshotOut(_Out):
    id: uuid.UUID
    campaign_creator_id: uuid.UUID
    analytics_type: str
    platform: str
    followers: int | None
    engagement_rate: float | None
    avg_views: int | None
    avg_likes: int | None
    avg_comments: int | None
    audience_demographics: dict[str, Any]
    source: str
    tokens_consumed: int
    created_at: datetime


class SocialFetchJobOut(_Out):
    id: uuid.UUID
    creator_id: uuid.UUID
    agency_id: uuid.UUID
    platform: str
    job_type: str
    status: str
    error_message: str | None
    tokens_consumed: int
    result: dict[str, Any] | None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime


class PaymentOut(_Out):
    id: uuid.UUID
    campaign_creator_id: uuid.UUID
    amount: Decimal
    currency: str
    payment_type: str | None
    status: str
    payment_reference: str | None
    payment_date: datetime | None


class TokenPurchaseOut(_Out):
    id: uuid.UUID
    agency_id: uuid.UUID
    tokens: int
    amount_minor: int
    currency: str
    status: str
    gateway_order_id: str | None


class NotificationOut(_Out):
    id: uuid.UUID
    notification_type: str
    title: str
    message: str
    entity_type: str | None
    entity_id: uuid.UUID | None
    is_read: bool
    created_at: datetime


class ActivityOut(_Out):
    id: uuid.UUID
    agency_id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    actor_id: uuid.UUID | None
    actor_type: str
    before_state: dict[str, Any] | None
    after_state: dict[str, Any] | None
    meta: dict[str, Any] | None
    created_at: datetime
