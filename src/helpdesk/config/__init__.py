"""
Configuration Module
====================

Application settings and shared constants using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-sla", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    app_base_url: str = Field(
        default="",
        description="Base URL prefixed to ticket links in notifications"
    )

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Engine ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy YAML file (default targets per priority)"
    )
    sla_scan_interval_seconds: int = Field(
        default=300,
        description="Seconds between SLA warning sweeps (0 disables the scheduler)",
        ge=0
    )
    sla_scan_budget_seconds: Optional[float] = Field(
        default=None,
        description="Wall-clock budget for one sweep; no new ticket starts after it",
        gt=0
    )
    sla_escalate_on_scan: bool = Field(
        default=False,
        description="Also run escalation for tickets that produced warnings during a sweep"
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL mirroring breach-severity notifications"
    )
    slack_channel: str = Field(
        default="#support-sla",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str, Enum):
    """Ticket priority, P1 most urgent."""
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    NEW = "NEW"
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_ON_CUSTOMER = "WAITING_ON_CUSTOMER"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class PauseReason(str, Enum):
    """Why an SLA clock is frozen."""
    WAITING_ON_CUSTOMER = "WAITING_ON_CUSTOMER"


class SLATrack(str, Enum):
    """The two SLA clocks tracked per ticket."""
    RESPONSE = "response"
    RESOLUTION = "resolution"


class SLAStatus(str, Enum):
    """Per-track SLA status."""
    NOT_APPLICABLE = "not_applicable"
    PENDING = "pending"
    MET = "met"
    WARNING = "warning"
    BREACHED = "breached"


class WarningTier(str, Enum):
    """Consumption tiers used by the warning sweep."""
    NOTICE = "NOTICE"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class EscalationActionType(str, Enum):
    """Actions the escalation engine can take."""
    NOTIFY_ASSIGNEE = "NOTIFY_ASSIGNEE"
    NOTIFY_MANAGER = "NOTIFY_MANAGER"
    AUTO_REASSIGN = "AUTO_REASSIGN"  # reserved, never emitted
    INCREASE_PRIORITY = "INCREASE_PRIORITY"


class NotificationType(str, Enum):
    """Notification kinds, distinguishing warning from breach severity."""
    TICKET_SLA_WARNING = "TICKET_SLA_WARNING"
    TICKET_SLA_BREACH = "TICKET_SLA_BREACH"


class AuditAction(str, Enum):
    """Audit actions written by the SLA engine."""
    TICKET_SLA_WARNING = "TICKET_SLA_WARNING"
    TICKET_PRIORITY_CHANGED = "TICKET_PRIORITY_CHANGED"


class MembershipRole(str, Enum):
    """Organization membership roles."""
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    CUSTOMER = "CUSTOMER"


# ========== Lists ==========

# Lowest to highest urgency; escalation moves one step right.
PRIORITY_LADDER = [Priority.P4, Priority.P3, Priority.P2, Priority.P1]

OPEN_STATUSES = [
    TicketStatus.NEW, TicketStatus.OPEN,
    TicketStatus.IN_PROGRESS, TicketStatus.WAITING_ON_CUSTOMER
]
