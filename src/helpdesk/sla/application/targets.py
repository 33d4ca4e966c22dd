"""
SLA Target Recalculation
========================

Re-resolves per-ticket SLA targets after an organization changes its policy
or the default target table changes.
"""

from typing import Optional, Sequence

from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.interfaces import (
    IOrganizationRepository, ISLAPolicyProvider, ITicketRepository,
    ITransactionScope, NullTransactionScope
)
from helpdesk.sla.domain import OrganizationSLAPolicy, resolve_sla_targets

logger = get_logger(__name__)


class SLATargetService:
    """Keeps stored ticket targets in line with policy. Idempotent."""

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        organization_repository: IOrganizationRepository,
        policy_provider: ISLAPolicyProvider,
        transaction_scope: Optional[ITransactionScope] = None
    ):
        self._ticket_repo = ticket_repository
        self._org_repo = organization_repository
        self._policy_provider = policy_provider
        self._transactions = transaction_scope or NullTransactionScope()

    async def recalculate(
        self,
        org_id: Optional[str] = None,
        ticket_ids: Optional[Sequence[str]] = None
    ) -> dict:
        """
        Recalculate targets for the selected tickets.

        Args:
            org_id: Restrict to one organization
            ticket_ids: Restrict to these tickets

        Returns:
            Counts of updated, skipped (already correct) and failed tickets
        """
        counts = {"updated": 0, "skipped": 0, "failed": 0}

        def unreadable(ticket_id: str, error: Exception) -> None:
            counts["failed"] += 1
            logger.error(
                "Skipping unreadable ticket row",
                extra={"ticket_id": ticket_id, "error": str(error)}
            )

        tickets = await self._ticket_repo.list_for_recalculation(
            org_id, ticket_ids, on_unreadable=unreadable
        )
        defaults = self._policy_provider.get_config()
        policies: dict[str, Optional[OrganizationSLAPolicy]] = {}

        for ticket in tickets:
            try:
                if ticket.org_id not in policies:
                    policies[ticket.org_id] = await self._org_repo.get_sla_policy(ticket.org_id)

                targets = resolve_sla_targets(ticket.priority, policies[ticket.org_id], defaults)
                if (
                    ticket.response_target_hours == targets.response_hours
                    and ticket.resolution_target_hours == targets.resolution_hours
                ):
                    counts["skipped"] += 1
                    continue

                async with self._transactions.isolated():
                    await self._ticket_repo.update_targets(
                        ticket.id, targets.response_hours, targets.resolution_hours
                    )
                counts["updated"] += 1
            except Exception as e:
                counts["failed"] += 1
                logger.error(
                    "Failed to recalculate SLA targets",
                    extra={"ticket_id": ticket.id, "error": str(e)}
                )

        logger.info(
            "SLA targets recalculated",
            extra={"org_id": org_id, **counts}
        )
        return counts
