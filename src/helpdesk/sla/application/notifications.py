"""
SLA Notifications
=================

Builds SLA notifications and hands them to the notification service.

Rendering is owned elsewhere; this module only picks recipients, the
notification kind and the title/message/data payload. Each recipient is
delivered independently: a failed send is logged and the rest still go out.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from helpdesk.config import NotificationType, SLATrack, WarningTier, settings
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.interfaces import INotificationService, IOrganizationRepository
from helpdesk.sla.domain import SLAWarning, Ticket, TrackMetrics

logger = get_logger(__name__)

TRACK_LABELS = {
    SLATrack.RESPONSE: "First Response",
    SLATrack.RESOLUTION: "Resolution",
}

TIER_TITLES = {
    WarningTier.CRITICAL: "🚨 Critical",
    WarningTier.WARNING: "⚠️ Warning",
    WarningTier.NOTICE: "ℹ️ Notice",
}


@dataclass
class DeliveryResult:
    """Outcome of one notification fan-out."""
    sent: int = 0
    failed: int = 0

    @property
    def delivered(self) -> bool:
        """True when something went out, or when nothing failed."""
        return self.sent > 0 or self.failed == 0

    def add(self, ok: bool) -> None:
        if ok:
            self.sent += 1
        else:
            self.failed += 1


class SLANotifier:
    """Sends warning and escalation notifications for tickets."""

    def __init__(
        self,
        notification_service: INotificationService,
        organization_repository: IOrganizationRepository,
        base_url: Optional[str] = None
    ):
        self._notifications = notification_service
        self._org_repo = organization_repository
        self._base_url = settings.app_base_url if base_url is None else base_url

    def ticket_link(self, ticket: Ticket) -> str:
        return f"{self._base_url.rstrip('/')}/app/tickets/{ticket.id}"

    async def notify_warning(self, ticket: Ticket, warning: SLAWarning) -> DeliveryResult:
        """
        Notify about a warning-tier crossing.

        The assignee (if any) is always notified. CRITICAL warnings also go
        to every active organization admin other than the assignee.

        Returns:
            DeliveryResult counting sent and failed notifications
        """
        percentage = round(warning.percentage)
        label = TRACK_LABELS[warning.track]
        result = DeliveryResult()

        if ticket.assignee_id:
            result.add(await self._deliver(
                ticket,
                ticket.assignee_id,
                NotificationType.TICKET_SLA_BREACH
                if warning.tier == WarningTier.CRITICAL else NotificationType.TICKET_SLA_WARNING,
                f"{TIER_TITLES[warning.tier]}: SLA {label} at {percentage}%",
                f"Ticket {ticket.display_key}: {label} SLA is at {percentage}% "
                f"({warning.hours_remaining:.1f}h remaining)",
                {
                    "ticketId": ticket.id,
                    "ticketKey": ticket.key,
                    "slaType": warning.track.value,
                    "percentage": percentage,
                    "hoursRemaining": warning.hours_remaining,
                    "threshold": warning.tier.value,
                },
            ))

        if warning.tier == WarningTier.CRITICAL:
            for admin_id in await self._org_repo.list_admin_ids(ticket.org_id):
                if admin_id == ticket.assignee_id:
                    continue
                result.add(await self._deliver(
                    ticket,
                    admin_id,
                    NotificationType.TICKET_SLA_BREACH,
                    f"🚨 Critical SLA Warning: {ticket.display_key}",
                    f"Ticket {ticket.display_key} is approaching {label} SLA breach ({percentage}%)",
                    {
                        "ticketId": ticket.id,
                        "ticketKey": ticket.key,
                        "slaType": warning.track.value,
                        "percentage": percentage,
                    },
                ))

        return result

    async def notify_assignee_at_risk(self, ticket: Ticket, metrics: TrackMetrics) -> DeliveryResult:
        """Escalation notice to the assignee for a track nearing breach."""
        result = DeliveryResult()
        if not ticket.assignee_id:
            return result

        label = TRACK_LABELS[metrics.track]
        percentage = round(metrics.percentage_consumed or 0)
        result.add(await self._deliver(
            ticket,
            ticket.assignee_id,
            NotificationType.TICKET_SLA_WARNING,
            f"SLA {label} at risk: {ticket.display_key}",
            f"Ticket {ticket.display_key} has used {percentage}% of its {label} SLA",
            self._escalation_data(ticket, metrics),
        ))
        return result

    async def notify_managers_breach(self, ticket: Ticket, metrics: TrackMetrics) -> DeliveryResult:
        """Escalation notice to organization admins for a breached track."""
        label = TRACK_LABELS[metrics.track]
        admin_ids: List[str] = await self._org_repo.list_admin_ids(ticket.org_id)
        if not admin_ids:
            logger.warning(
                "No admins to notify of SLA breach",
                extra={"ticket_id": ticket.id, "org_id": ticket.org_id}
            )

        result = DeliveryResult()
        for admin_id in admin_ids:
            result.add(await self._deliver(
                ticket,
                admin_id,
                NotificationType.TICKET_SLA_BREACH,
                f"🚨 SLA {label} breached: {ticket.display_key}",
                f"Ticket {ticket.display_key} breached its {label} SLA "
                f"({metrics.elapsed_hours:.1f}h of {metrics.target_hours:.1f}h)",
                self._escalation_data(ticket, metrics),
            ))
        return result

    async def _deliver(
        self,
        ticket: Ticket,
        user_id: str,
        kind: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any]
    ) -> bool:
        try:
            await self._notifications.notify_user(
                user_id, kind, title, message, self.ticket_link(ticket), data
            )
        except Exception as e:
            logger.error(
                "SLA notification failed",
                extra={
                    "ticket_id": ticket.id,
                    "user_id": user_id,
                    "kind": kind.value,
                    "error": str(e),
                }
            )
            return False
        return True

    @staticmethod
    def _escalation_data(ticket: Ticket, metrics: TrackMetrics) -> dict:
        return {
            "ticketId": ticket.id,
            "ticketKey": ticket.key,
            "slaType": metrics.track.value,
            "status": metrics.status.value,
            "hoursElapsed": metrics.elapsed_hours,
            "hoursTarget": metrics.target_hours,
            "priority": ticket.priority.value,
        }
