"""Tests for warning-tier classification and target resolution."""

import pytest

from helpdesk.config import Priority, WarningTier
from helpdesk.sla.domain import (
    OrganizationSLAPolicy,
    PriorityTargetOverride,
    SLAPolicyConfig,
    SLATargets,
    ThresholdClassifier,
    resolve_sla_targets,
)


class TestThresholdClassifier:
    """Lower tier edges are inclusive."""

    @pytest.mark.parametrize("percentage,expected", [
        (0.0, None),
        (49.9, None),
        (50.0, WarningTier.NOTICE),
        (74.9, WarningTier.NOTICE),
        (75.0, WarningTier.WARNING),
        (89.9, WarningTier.WARNING),
        (90.0, WarningTier.CRITICAL),
        (150.0, WarningTier.CRITICAL),
        (float("inf"), WarningTier.CRITICAL),
    ])
    def test_classify(self, percentage, expected):
        assert ThresholdClassifier.classify(percentage) == expected


class TestTargetResolution:
    """Test SLA target lookup from policy and defaults."""

    def test_builtin_defaults(self):
        assert resolve_sla_targets(Priority.P1) == SLATargets(1, 4)
        assert resolve_sla_targets(Priority.P4) == SLATargets(48, 168)

    def test_policy_file_fills_missing_priorities(self):
        config = SLAPolicyConfig(default_targets={
            Priority.P2: PriorityTargetOverride(response_hours=2),
        })

        assert config.targets_for(Priority.P2) == SLATargets(2, 24)
        assert config.targets_for(Priority.P3) == SLATargets(24, 72)

    def test_policy_file_accepts_plain_mapping(self):
        config = SLAPolicyConfig(**{"default_targets": {"P1": {"response_hours": 0.5}}})
        assert config.targets_for(Priority.P1) == SLATargets(0.5, 4)

    def test_organization_overrides_win_per_cell(self):
        policy = OrganizationSLAPolicy(
            response_hours={Priority.P3: 8},
            resolution_hours={Priority.P3: None},
        )

        assert resolve_sla_targets(Priority.P3, policy) == SLATargets(8, 72)
        assert resolve_sla_targets(Priority.P2, policy) == SLATargets(4, 24)

    def test_rejects_non_positive_targets(self):
        with pytest.raises(ValueError):
            PriorityTargetOverride(response_hours=0)
