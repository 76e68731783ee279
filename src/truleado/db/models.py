"""
truleado.db.models

Core persistence schema.

Responsibilities:
- Define ORM models for the tenant hierarchy (agency -> client -> project -> campaign).
- Define the assignment tables consulted by the RBAC resolver.
- Define deliverables, versions and the append-only approval/activity records.
- Define creator roster, analytics snapshots, social fetch jobs, payments and token purchases.
- Define notifications and per-agency email delivery settings.
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from truleado.db.base import Base
from truleado.rbac.types import AgencyRole, CampaignRole
from truleado.workflow.campaign import CampaignStatus
from truleado.workflow.deliverable import ApprovalLevel, Decision, DeliverableStatus


def utcnow() -> datetime:
    # Persist naive UTC timestamps; SQLite has no timezone-aware column type.
    return datetime.now(UTC).replace(tzinfo=None)


def _pk() -> Mapped[uuid.UUID]:
    return mapped_column(SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


def _fk(
    target: str, *, nullable: bool = False, index: bool = True, ondelete: str = "CASCADE"
) -> Mapped[Any]:
    return mapped_column(
        SAUuid(as_uuid=True),
        ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
        index=index,
    )


class AgencyStatus(enum.StrEnum):
    active = "active"
    suspended = "suspended"


class CampaignType(enum.StrEnum):
    influencer = "influencer"
    social = "social"


class CampaignCreatorStatus(enum.StrEnum):
    invited = "invited"
    accepted = "accepted"
    declined = "declined"
    removed = "removed"


class PaymentStatus(enum.StrEnum):
    pending = "pending"
    paid = "paid"
    failed = "failed"


class PaymentType(enum.StrEnum):
    advance = "advance"
    milestone = "milestone"
    final = "final"


class TokenPurchaseStatus(enum.StrEnum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class SocialFetchJobType(enum.StrEnum):
    basic_scrape = "basic_scrape"
    enriched_profile = "enriched_profile"


class SocialFetchJobStatus(enum.StrEnum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class ActorType(enum.StrEnum):
    user = "user"
    system = "system"


# --- Identity & tenancy -----------------------------------------------------


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = _pk()
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class AuthIdentity(Base):
    __tablename__ = "auth_identities"

    id: Mapped[uuid.UUID] = _pk()
    user_id: Mapped[uuid.UUID] = _fk("users.id")
    # Provider uid is the `sub` claim of the hosted identity provider's token.
    provider: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_uid: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("provider", "provider_uid", name="uq_auth_provider_uid"),)


class Agency(Base):
    __tablename__ = "agencies"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    agency_code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    billing_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[AgencyStatus] = mapped_column(
        Enum(AgencyStatus), nullable=False, default=AgencyStatus.active
    )
    token_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Display locale: ISO 4217 currency, IANA timezone, BCP 47 language tag.
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    language_code: Mapped[str] = mapped_column(String(16), nullable=False, default="en")

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class AgencyEmailConfig(Base):
    __tablename__ = "agency_email_config"

    id: Mapped[uuid.UUID] = _pk()
    agency_id: Mapped[uuid.UUID] = _fk("agencies.id")
    smtp_host: Mapped[str] = mapped_column(String(255), nullable=False)
    smtp_port: Mapped[int] = mapped_column(Integer, nullable=False, default=587)
    smtp_secure: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    smtp_username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    smtp_password: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_email: Mapped[str] = mapped_column(String(320), nullable=False)
    from_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Identifier of the SMTP integration registered with the delivery provider.
    integration_identifier: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (UniqueConstraint("agency_id", name="uq_agency_email_config"),)

    @property
    def has_password(self) -> bool:
        return bool(self.smtp_password)


class AgencyUser(Base):
    __tablename__ = "agency_users"

    id: Mapped[uuid.UUID] = _pk()
    agency_id: Mapped[uuid.UUID] = _fk("agencies.id")
    user_id: Mapped[uuid.UUID] = _fk("users.id")
    role: Mapped[AgencyRole] = mapped_column(Enum(AgencyRole), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("agency_id", "user_id", name="uq_agency_user"),)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = _pk()
    agency_id: Mapped[uuid.UUID] = _fk("agencies.id")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_manager_id: Mapped[uuid.UUID] = _fk("users.id")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("agency_id", "name", name="uq_client_name"),)


class Contact(Base):
    __tablename__ = "contacts"

    id: Mapped[uuid.UUID] = _pk()
    client_id: Mapped[uuid.UUID] = _fk("clients.id")
    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    designation: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_client_approver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Linked once the contact signs in through the client portal.
    user_id: Mapped[uuid.UUID | None] = _fk("users.id", nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


# --- Projects & campaigns ---------------------------------------------------


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = _pk()
    client_id: Mapped[uuid.UUID] = _fk("clients.id")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class ProjectUser(Base):
    __tablename__ = "project_users"

    id: Mapped[uuid.UUID] = _pk()
    project_id: Mapped[uuid.UUID] = _fk("projects.id")
    user_id: Mapped[uuid.UUID] = _fk("users.id")

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_user"),)


class ProjectApprover(Base):
    __tablename__ = "project_approvers"

    id: Mapped[uuid.UUID] = _pk()
    project_id: Mapped[uuid.UUID] = _fk("projects.id")
    user_id: Mapped[uuid.UUID] = _fk("users.id")

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_approver"),)


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[uuid.UUID] = _pk()
    project_id: Mapped[uuid.UUID] = _fk("projects.id")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    campaign_type: Mapped[CampaignType] = mapped_column(Enum(CampaignType), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    brief: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[CampaignStatus] = mapped_column(
        Enum(CampaignStatus), nullable=False, default=CampaignStatus.draft, index=True
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[uuid.UUID] = _fk("users.id", index=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class CampaignUser(Base):
    __tablename__ = "campaign_users"

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = _fk("campaigns.id")
    user_id: Mapped[uuid.UUID] = _fk("users.id")
    role: Mapped[CampaignRole] = mapped_column(Enum(CampaignRole), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("campaign_id", "user_id", name="uq_campaign_user"),)


class CampaignAttachment(Base):
    __tablename__ = "campaign_attachments"

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = _fk("campaigns.id")
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    uploaded_by: Mapped[uuid.UUID] = _fk("users.id", index=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


# --- Deliverables & approvals -----------------------------------------------


class Deliverable(Base):
    __tablename__ = "deliverables"

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = _fk("campaigns.id")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    deliverable_type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[DeliverableStatus] = mapped_column(
        Enum(DeliverableStatus), nullable=False, default=DeliverableStatus.pending, index=True
    )
    # Highest version number ever issued; deleted numbers are never reused.
    version_counter: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class DeliverableVersion(Base):
    __tablename__ = "deliverable_versions"

    id: Mapped[uuid.UUID] = _pk()
    deliverable_id: Mapped[uuid.UUID] = _fk("deliverables.id")
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_by: Mapped[uuid.UUID] = _fk("users.id", index=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("deliverable_id", "version_number", name="uq_deliverable_version"),
    )


class Approval(Base):
    __tablename__ = "approvals"

    id: Mapped[uuid.UUID] = _pk()
    # Approvals are permanent; rows they point at cannot be deleted underneath them.
    deliverable_id: Mapped[uuid.UUID] = _fk("deliverables.id", ondelete="RESTRICT")
    deliverable_version_id: Mapped[uuid.UUID] = _fk(
        "deliverable_versions.id", ondelete="RESTRICT"
    )
    approval_level: Mapped[ApprovalLevel] = mapped_column(Enum(ApprovalLevel), nullable=False)
    decision: Mapped[Decision] = mapped_column(Enum(Decision), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_by: Mapped[uuid.UUID] = _fk("users.id", index=False)

    decided_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (Index("ix_approvals_deliverable_decided", "deliverable_id", "decided_at"),)


class DeliverableTrackingUrl(Base):
    __tablename__ = "deliverable_tracking_urls"

    id: Mapped[uuid.UUID] = _pk()
    deliverable_id: Mapped[uuid.UUID] = _fk("deliverables.id")
    url: Mapped[str] = mapped_column(Text, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[uuid.UUID] = _fk("users.id", index=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


# --- Creators, analytics & payments -----------------------------------------


class Creator(Base):
    __tablename__ = "creators"

    id: Mapped[uuid.UUID] = _pk()
    agency_id: Mapped[uuid.UUID] = _fk("agencies.id")
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    instagram_handle: Mapped[str | None] = mapped_column(String(128), nullable=True)
    youtube_handle: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tiktok_handle: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # {"instagram_reel": {"amount": 15000, "currency": "INR"}, ...}
    rates: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class CampaignCreator(Base):
    __tablename__ = "campaign_creators"

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = _fk("campaigns.id")
    creator_id: Mapped[uuid.UUID] = _fk("creators.id")
    status: Mapped[CampaignCreatorStatus] = mapped_column(
        Enum(CampaignCreatorStatus), nullable=False, default=CampaignCreatorStatus.invited
    )
    rate_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    rate_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("campaign_id", "creator_id", name="uq_campaign_creator"),
    )


class AnalyticsSnapshot(Base):
    __tablename__ = "creator_analytics_snapshots"

    id: Mapped[uuid.UUID] = _pk()
    campaign_creator_id: Mapped[uuid.UUID] = _fk("campaign_creators.id")
    analytics_type: Mapped[str] = mapped_column(String(32), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    followers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    engagement_rate: Mapped[float | None] = mapped_column(nullable=True)
    avg_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avg_likes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avg_comments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    audience_demographics: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    raw_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    tokens_consumed: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class SocialFetchJob(Base):
    """A token-metered fetch of one creator's public profile on one platform."""

    __tablename__ = "social_fetch_jobs"

    id: Mapped[uuid.UUID] = _pk()
    creator_id: Mapped[uuid.UUID] = _fk("creators.id")
    agency_id: Mapped[uuid.UUID] = _fk("agencies.id")
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    job_type: Mapped[SocialFetchJobType] = mapped_column(Enum(SocialFetchJobType), nullable=False)
    status: Mapped[SocialFetchJobStatus] = mapped_column(
        Enum(SocialFetchJobStatus), nullable=False, default=SocialFetchJobStatus.pending, index=True
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    tokens_consumed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    triggered_by: Mapped[uuid.UUID | None] = _fk("users.id", nullable=True, ondelete="SET NULL")
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = _pk()
    campaign_creator_id: Mapped[uuid.UUID] = _fk("campaign_creators.id")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    payment_type: Mapped[PaymentType | None] = mapped_column(Enum(PaymentType), nullable=True)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), nullable=False, default=PaymentStatus.pending
    )
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID] = _fk("users.id", index=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class TokenPurchase(Base):
    __tablename__ = "token_purchases"

    id: Mapped[uuid.UUID] = _pk()
    agency_id: Mapped[uuid.UUID] = _fk("agencies.id")
    tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[TokenPurchaseStatus] = mapped_column(
        Enum(TokenPurchaseStatus), nullable=False, default=TokenPurchaseStatus.pending
    )
    gateway_order_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_by: Mapped[uuid.UUID] = _fk("users.id", index=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)


# --- Notifications & activity -----------------------------------------------


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = _pk()
    agency_id: Mapped[uuid.UUID] = _fk("agencies.id")
    user_id: Mapped[uuid.UUID] = _fk("users.id")
    notification_type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(SAUuid(as_uuid=True), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_notifications_user_agency", "user_id", "agency_id", "is_read"),)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = _pk()
    agency_id: Mapped[uuid.UUID] = mapped_column(SAUuid(as_uuid=True), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(SAUuid(as_uuid=True), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(SAUuid(as_uuid=True), nullable=True)
    actor_type: Mapped[ActorType] = mapped_column(Enum(ActorType), nullable=False)
    before_state: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    after_state: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    # `metadata` is reserved on declarative classes.
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_activity_entity_created", "entity_type", "entity_id", "created_at"),
    )


# --- Module Notes -----------------------------------------------------------
# Approvals and activity logs are append-only: repositories expose no update/delete for them.
# Relationships are intentionally not declared; repositories join explicitly so async
# sessions never trigger implicit lazy loads.
