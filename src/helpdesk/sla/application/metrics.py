"""
SLA Metrics Calculator
======================

Assembles the read-only ``SLAMetrics`` snapshot for a ticket.

All time arithmetic is delegated to the pause controller and the
business-hours clock; this module only compares elapsed time with targets.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from helpdesk.config import SLAStatus, SLATrack, WarningTier
from helpdesk.core import ResourceNotFoundException
from helpdesk.sla.application.interfaces import (
    IOrganizationRepository, ISLAPolicyProvider, ITicketRepository
)
from helpdesk.sla.application.pause import PauseController
from helpdesk.sla.domain import (
    BusinessHoursConfig, SLAMetrics, SLATargets, ThresholdClassifier,
    Ticket, TrackMetrics, resolve_sla_targets, utc_now
)


def percentage_consumed(elapsed_hours: float, target_hours: float) -> float:
    """Share of the target already used, in percent."""
    if target_hours <= 0:
        return float("inf") if elapsed_hours > 0 else 0.0
    return elapsed_hours / target_hours * 100


class SLAMetricsCalculator:
    """
    Computes SLA metrics for tickets.

    ``compute_metrics`` is a pure function of a ticket, its organization's
    business hours and "now". The instance methods load what it needs.
    """

    def __init__(
        self,
        ticket_repository: Optional[ITicketRepository] = None,
        organization_repository: Optional[IOrganizationRepository] = None,
        policy_provider: Optional[ISLAPolicyProvider] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._ticket_repo = ticket_repository
        self._org_repo = organization_repository
        self._policy_provider = policy_provider
        self._clock = clock

    @classmethod
    def compute_metrics(
        cls,
        ticket: Ticket,
        business_hours: Optional[BusinessHoursConfig],
        now: datetime
    ) -> SLAMetrics:
        # One read of the pause state feeds both tracks.
        paused_since = ticket.paused_since

        response = cls._track_metrics(
            SLATrack.RESPONSE, ticket.response_target_hours, ticket.first_response_at,
            ticket.created_at, now, paused_since, business_hours
        )
        resolution = cls._track_metrics(
            SLATrack.RESOLUTION, ticket.resolution_target_hours, ticket.resolved_at,
            ticket.created_at, now, paused_since, business_hours
        )

        return SLAMetrics(
            ticket_id=ticket.id,
            response=response,
            resolution=resolution,
            computed_at=now,
            paused_since=paused_since,
        )

    @staticmethod
    def _track_metrics(
        track: SLATrack,
        target_hours: Optional[float],
        met_at: Optional[datetime],
        created_at: datetime,
        now: datetime,
        paused_since: Optional[datetime],
        business_hours: Optional[BusinessHoursConfig]
    ) -> TrackMetrics:
        if target_hours is None:
            return TrackMetrics(track=track, status=SLAStatus.NOT_APPLICABLE)

        if met_at is not None:
            elapsed = PauseController.effective_elapsed(created_at, met_at, paused_since, business_hours)
            return TrackMetrics(
                track=track,
                status=SLAStatus.MET,
                elapsed_hours=elapsed,
                target_hours=target_hours,
                met_at=met_at,
            )

        elapsed = PauseController.effective_elapsed(created_at, now, paused_since, business_hours)
        if elapsed > target_hours:
            status = SLAStatus.BREACHED
        elif ThresholdClassifier.classify(percentage_consumed(elapsed, target_hours)) in (
            WarningTier.WARNING, WarningTier.CRITICAL
        ):
            status = SLAStatus.WARNING
        else:
            status = SLAStatus.PENDING

        return TrackMetrics(
            track=track,
            status=status,
            elapsed_hours=elapsed,
            target_hours=target_hours,
        )

    async def resolve_targets(self, ticket: Ticket) -> SLATargets:
        """Targets from the organization policy, falling back to the default table."""
        policy = None
        if self._org_repo is not None:
            policy = await self._org_repo.get_sla_policy(ticket.org_id)
        defaults = self._policy_provider.get_config() if self._policy_provider else None
        return resolve_sla_targets(ticket.priority, policy, defaults)

    async def metrics_for(self, ticket: Ticket) -> SLAMetrics:
        """
        Compute metrics for an already loaded ticket.

        When a policy provider is configured, missing ticket targets are
        filled from the organization policy and default table first.
        """
        business_hours = None
        if self._org_repo is not None:
            business_hours = await self._org_repo.get_business_hours(ticket.org_id)

        if self._policy_provider is not None and (
            ticket.response_target_hours is None or ticket.resolution_target_hours is None
        ):
            targets = await self.resolve_targets(ticket)
            ticket = replace(
                ticket,
                response_target_hours=(
                    ticket.response_target_hours
                    if ticket.response_target_hours is not None else targets.response_hours
                ),
                resolution_target_hours=(
                    ticket.resolution_target_hours
                    if ticket.resolution_target_hours is not None else targets.resolution_hours
                ),
            )

        return self.compute_metrics(ticket, business_hours, self._clock())

    async def calculate(self, ticket_id: str) -> SLAMetrics:
        """
        Load a ticket and compute its metrics.

        Raises:
            ResourceNotFoundException: if the ticket does not exist
        """
        if self._ticket_repo is None:
            raise ValueError("Ticket repository not configured")

        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        return await self.metrics_for(ticket)
