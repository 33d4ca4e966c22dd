"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models used by the SLA engine.

Tickets, organizations, memberships, notifications and audit entries are
owned by other parts of the platform; these mappings cover the columns the
engine reads and writes.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import MembershipRole, Priority, TicketStatus
from helpdesk.infrastructure.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class OrganizationModel(Base):
    """
    Database model for organizations.

    Maps to the 'organizations' table.
    """
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # {"timezone", "workingDays", "workingHours": {"start", "end"}, "holidays"}; NULL = 24/7
    business_hours: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Per-priority target overrides in hours; NULL falls back to the defaults
    sla_response_hours_p1: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_response_hours_p2: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_response_hours_p3: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_response_hours_p4: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_resolution_hours_p1: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_resolution_hours_p2: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_resolution_hours_p3: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_resolution_hours_p4: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class MembershipModel(Base):
    """
    Database model for organization memberships.

    Maps to the 'memberships' table.
    """
    __tablename__ = "memberships"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(ForeignKey("organizations.id"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=MembershipRole.AGENT.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TicketModel(Base):
    """
    Database model for tickets.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(ForeignKey("organizations.id"), index=True, nullable=False)
    key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    priority: Mapped[str] = mapped_column(String(8), nullable=False, default=Priority.P3.value)
    status: Mapped[str] = mapped_column(String(32), index=True, nullable=False, default=TicketStatus.NEW.value)
    assignee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    first_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # SLA tracking
    sla_response_target_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_resolution_target_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sla_paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_pause_reason: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class NotificationModel(Base):
    """
    In-app notification row, rendered by the notifications UI.

    Maps to the 'notifications' table.
    """
    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class AuditLogModel(Base):
    """
    Audit trail entry.

    Maps to the 'audit_logs' table. ``details`` holds a JSON document.
    """
    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    ticket_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
