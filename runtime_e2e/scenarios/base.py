"""Scenario driver base class and results.

A scenario is a strictly sequential list of mutate → converge → verify
steps run inside its own TestContext. Every step error is wrapped in a
ScenarioStepError naming the step. On failure the driver logs diagnostics
and tears the namespace down before reporting.

Outcomes:
    PASSED: Every step converged and verified.
    SKIPPED: A capability precondition is not met on this cluster.
    FAILED: A step timed out, failed verification, or errored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

import structlog

from runtime_e2e.client import ResourceClient, SpecMutation
from runtime_e2e.config import HarnessSettings, PollConfig
from runtime_e2e.context import CleanupFailure, TestContext
from runtime_e2e.diagnostics import log_failure_diagnostics
from runtime_e2e.errors import ConflictError, PreconditionUnmetError, ScenarioStepError
from runtime_e2e.fixtures.polling import wait_until
from runtime_e2e.probes import wait_for_operator_deployment

logger = structlog.get_logger(__name__)


class ScenarioOutcome(str, Enum):
    """How a scenario run ended."""

    PASSED = "passed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ScenarioResult:
    """Report of one scenario run.

    Attributes:
        scenario: Scenario name.
        outcome: PASSED, SKIPPED or FAILED.
        namespace: Namespace used, or None if none was created.
        steps_completed: Names of the steps that finished, in order.
        reason: Why the scenario was skipped, if it was.
        error: The failing step's error, if it failed.
        cleanup_failures: Teardown tasks that raised.
    """

    scenario: str
    outcome: ScenarioOutcome = ScenarioOutcome.PASSED
    namespace: str | None = None
    steps_completed: list[str] = field(default_factory=list)
    reason: str = ""
    error: ScenarioStepError | None = None
    cleanup_failures: list[CleanupFailure] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.outcome is ScenarioOutcome.PASSED

    @property
    def skipped(self) -> bool:
        return self.outcome is ScenarioOutcome.SKIPPED

    @property
    def failed(self) -> bool:
        return self.outcome is ScenarioOutcome.FAILED

    def raise_on_failure(self) -> None:
        """Re-raise the step error of a failed run. No-op otherwise."""
        if self.error is not None:
            raise self.error


def apply_update(
    client: ResourceClient,
    name: str,
    mutate: SpecMutation,
    config: PollConfig,
) -> None:
    """Apply a spec mutation, retrying only on write conflicts.

    The client surfaces conflicts and never retries. Each retry re-reads the
    current spec before applying ``mutate`` again. Any other error aborts.

    Raises:
        PollingTimeoutError: If every attempt within the budget conflicted.
    """

    def attempt() -> bool:
        client.update(name, mutate)
        return True

    wait_until(
        attempt,
        config.describe(f"update of {name}"),
        is_fatal=lambda e: not isinstance(e, ConflictError),
    )


class Scenario(ABC):
    """Base class for scenario drivers.

    Subclasses set ``name`` and ``namespace_prefix``, implement execute(),
    and optionally override check_preconditions().

    Usage:
        result = PullPolicyScenario(client, settings).run()
        result.raise_on_failure()
    """

    name: ClassVar[str]
    namespace_prefix: ClassVar[str] = "runtime-e2e"

    def __init__(self, client: ResourceClient, settings: HarnessSettings) -> None:
        self.client = client
        self.settings = settings

    def check_preconditions(self) -> None:
        """Raise PreconditionUnmetError to skip the scenario on this cluster."""

    @abstractmethod
    def execute(self, ctx: TestContext, result: ScenarioResult) -> None:
        """Run the scenario's steps inside ``ctx`` via step()."""

    def step(self, result: ScenarioResult, step: str, action: Callable[[], None]) -> None:
        """Run one step, recording it on success.

        Raises:
            ScenarioStepError: Wrapping whatever the step raised.
        """
        log = logger.bind(scenario=self.name, step=step, namespace=result.namespace)
        log.info("step_started")
        try:
            action()
        except Exception as e:
            log.error("step_failed", error=str(e), error_type=type(e).__name__)
            raise ScenarioStepError(self.name, step, e) from e
        result.steps_completed.append(step)
        log.info("step_completed")

    def _operator_client(self, ctx: TestContext) -> ResourceClient:
        return ctx.client.for_namespace(self.settings.operator_namespace)

    def run(self) -> ScenarioResult:
        """Run the scenario end to end.

        Returns:
            The result. Step errors are reported in the result, not raised.
            Anything escaping a step (e.g. KeyboardInterrupt) still tears the
            namespace down before propagating.
        """
        result = ScenarioResult(scenario=self.name)
        log = logger.bind(scenario=self.name)

        try:
            self.check_preconditions()
        except PreconditionUnmetError as e:
            log.info("scenario_skipped", reason=str(e))
            result.outcome = ScenarioOutcome.SKIPPED
            result.reason = str(e)
            return result
        except Exception as e:
            result.outcome = ScenarioOutcome.FAILED
            result.error = ScenarioStepError(self.name, "precondition", e)
            log.error("scenario_failed", step="precondition", error=str(e))
            return result

        try:
            ctx = TestContext.create(
                self.client,
                prefix=self.namespace_prefix,
                cleanup_config=self.settings.cleanup_poll_config(),
            )
        except Exception as e:
            result.outcome = ScenarioOutcome.FAILED
            result.error = ScenarioStepError(self.name, "setup", e)
            log.error("scenario_failed", step="setup", error=str(e))
            return result

        result.namespace = ctx.namespace
        with ctx:
            try:
                self.step(
                    result,
                    "operator-ready",
                    lambda: wait_for_operator_deployment(
                        self._operator_client(ctx),
                        self.settings.operator_deployment,
                        self.settings.operator_replicas,
                        self.settings.operator_poll_config(),
                    ),
                )
                self.execute(ctx, result)
            except ScenarioStepError as e:
                log_failure_diagnostics(ctx.client, e)
                result.outcome = ScenarioOutcome.FAILED
                result.error = e
            result.cleanup_failures = ctx.cleanup()

        log.info(
            "scenario_finished",
            outcome=result.outcome.value,
            namespace=result.namespace,
            steps=result.steps_completed,
            cleanup_failures=len(result.cleanup_failures),
        )
        return result


__all__ = [
    "Scenario",
    "ScenarioOutcome",
    "ScenarioResult",
    "apply_update",
]
