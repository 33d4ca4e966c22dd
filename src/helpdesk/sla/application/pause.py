"""
SLA Pause Controller
====================

Pauses and resumes SLA clocks as tickets move in and out of
customer-caused waiting states.

Pausing models customer-caused delay only. Time outside business hours is
excluded by the business-hours clock itself and never pauses a ticket, so
the two are not double-counted.
"""

from datetime import datetime
from typing import Callable, Optional

from helpdesk.config import PauseReason, TicketStatus
from helpdesk.core import ResourceNotFoundException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.interfaces import IOrganizationRepository, ITicketRepository
from helpdesk.sla.domain import BusinessHoursClock, BusinessHoursConfig, Ticket, utc_now

logger = get_logger(__name__)


class PauseController:
    """Owns every write of a ticket's pause state."""

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        organization_repository: Optional[IOrganizationRepository] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._ticket_repo = ticket_repository
        self._org_repo = organization_repository
        self._clock = clock

    @staticmethod
    def should_pause(status: TicketStatus) -> bool:
        return status == TicketStatus.WAITING_ON_CUSTOMER

    @staticmethod
    def pause_reason(status: TicketStatus) -> Optional[PauseReason]:
        if status == TicketStatus.WAITING_ON_CUSTOMER:
            return PauseReason.WAITING_ON_CUSTOMER
        return None

    async def pause(self, ticket: Ticket, reason: PauseReason) -> bool:
        """
        Pause the ticket's SLA clocks.

        A ticket that is already paused keeps its original pause start.

        Returns:
            True if the ticket was paused by this call
        """
        if ticket.is_paused:
            return False

        paused_since = self._clock()
        await self._ticket_repo.update_pause(ticket.id, paused_since, reason)
        ticket.pause(reason, paused_since)

        logger.info(
            "SLA paused",
            extra={"ticket_id": ticket.id, "reason": reason.value}
        )
        return True

    async def resume(self, ticket: Ticket) -> bool:
        """
        Resume the ticket's SLA clocks. No-op for a ticket that is not paused.

        Returns:
            True if the ticket was resumed by this call
        """
        if not ticket.is_paused:
            return False

        await self._ticket_repo.update_pause(ticket.id, None, None)
        ticket.resume()

        logger.info("SLA resumed", extra={"ticket_id": ticket.id})
        return True

    async def sync_pause_state(
        self,
        ticket: Ticket,
        status: TicketStatus,
        business_hours: Optional[BusinessHoursConfig]
    ) -> None:
        """
        Align the pause state with a ticket's (new) status.

        Called by the status-change handler every time a status changes.
        """
        reason = self.pause_reason(status)
        if self.should_pause(status) and reason is not None:
            await self.pause(ticket, reason)
            return

        # No pause is recorded outside business hours; the clock skips them.
        if business_hours is not None and not BusinessHoursClock.is_business_moment(
            self._clock(), business_hours
        ):
            logger.debug(
                "Status change outside business hours, not pausing",
                extra={"ticket_id": ticket.id, "status": status.value}
            )

        await self.resume(ticket)

    async def sync_pause_state_by_id(self, ticket_id: str, status: TicketStatus) -> Ticket:
        """Load a ticket and its organization's business hours, then sync."""
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        business_hours = None
        if self._org_repo is not None:
            business_hours = await self._org_repo.get_business_hours(ticket.org_id)

        await self.sync_pause_state(ticket, status, business_hours)
        return ticket

    @staticmethod
    def effective_elapsed(
        start: datetime,
        end: datetime,
        paused_since: Optional[datetime],
        config: Optional[BusinessHoursConfig]
    ) -> float:
        """
        Elapsed SLA hours, frozen at the pause boundary.

        While paused the clock stops at ``paused_since`` even if ``end``
        (usually "now") is later.
        """
        if paused_since is None:
            return BusinessHoursClock.elapsed_business_hours(start, end, config)
        return BusinessHoursClock.elapsed_business_hours(start, min(paused_since, end), config)
