"""Scenario drivers for the runtime-component operator.

Scenarios:
    PullPolicyScenario: Default → Always → Never → Default pull policy cycle
    ServiceToggleScenario: Knative Service enabled, then disabled

Example:
    from runtime_e2e.scenarios import PullPolicyScenario

    result = PullPolicyScenario(client, settings).run()
    result.raise_on_failure()
"""

from __future__ import annotations

from runtime_e2e.scenarios.base import (
    Scenario,
    ScenarioOutcome,
    ScenarioResult,
    apply_update,
)
from runtime_e2e.scenarios.pull_policy import PullPolicyScenario
from runtime_e2e.scenarios.service_toggle import ServiceToggleScenario

__all__ = [
    "PullPolicyScenario",
    "Scenario",
    "ScenarioOutcome",
    "ScenarioResult",
    "ServiceToggleScenario",
    "apply_update",
]
