"""Image pull policy lifecycle scenario.

Walks a RuntimeComponent through Default → Always → Never → Default (unset)
and checks after each transition that the operator applied the policy to the
deployment's container:

    create-default  replicas=1, no policy     expect IfNotPresent
    set-always      pullPolicy=Always         expect Always
    set-never       pullPolicy=Never          expect Never
    unset           pullPolicy removed        expect IfNotPresent

A full cycle leaves the realized policy where it started.
"""

from __future__ import annotations

from functools import partial

from runtime_e2e.client import ResourceClient
from runtime_e2e.context import TestContext
from runtime_e2e.errors import NotConvergedError, NotFoundError, VerificationFailure
from runtime_e2e.fixtures.polling import wait_until
from runtime_e2e.models import (
    DEFAULT_PULL_POLICY,
    PullPolicy,
    RuntimeComponentSpec,
    make_basic_runtime_component,
)
from runtime_e2e.scenarios.base import Scenario, ScenarioResult, apply_update

# (step name, policy to set, policy expected on the deployment)
TRANSITIONS: tuple[tuple[str, PullPolicy | None, PullPolicy], ...] = (
    ("set-always", PullPolicy.ALWAYS, PullPolicy.ALWAYS),
    ("set-never", PullPolicy.NEVER, PullPolicy.NEVER),
    ("unset", None, DEFAULT_PULL_POLICY),
)


class PullPolicyScenario(Scenario):
    """Verifies pull policy changes propagate to the managed deployment."""

    name = "runtime-pull-policy"
    namespace_prefix = "runtime-pullpolicy"
    component_name = "example-runtime-pullpolicy"
    replicas = 1

    def execute(self, ctx: TestContext, result: ScenarioResult) -> None:
        client = ctx.client

        def create_default() -> None:
            ctx.create_component(
                make_basic_runtime_component(
                    self.component_name,
                    ctx.namespace,
                    self.replicas,
                    image=self.settings.application_image,
                )
            )
            self.converge_and_verify(client, DEFAULT_PULL_POLICY)

        self.step(result, "create-default", create_default)

        for step_name, policy, expected in TRANSITIONS:
            self.step(result, step_name, partial(self.transition, client, policy, expected))

    def transition(
        self,
        client: ResourceClient,
        policy: PullPolicy | None,
        expected: PullPolicy,
    ) -> None:
        """Set (or unset) the policy, then wait for and verify the result."""

        def set_policy(spec: RuntimeComponentSpec) -> None:
            spec.pull_policy = policy

        apply_update(client, self.component_name, set_policy, self.settings.update_poll_config())
        self.converge_and_verify(client, expected)

    def converge_and_verify(self, client: ResourceClient, expected: PullPolicy) -> None:
        """Poll until the deployment is rolled out with ``expected``, then re-check.

        While polling, a missing deployment, an unfinished rollout or a
        different policy are all transient, so an operator that ignores the
        policy ends in PollingTimeoutError. VerificationFailure only covers
        drift: convergence was observed, then the fresh read disagrees.

        Raises:
            PollingTimeoutError: If convergence is never observed.
            VerificationFailure: If the policy is wrong after convergence.
        """
        name = self.component_name
        replicas = self.replicas

        def converged() -> bool:
            deployment = client.get(name).deployment
            if deployment is None:
                raise NotFoundError("deployment", name, namespace=client.namespace)
            if not deployment.is_ready(replicas):
                raise NotConvergedError(
                    f"rollout of {deployment.name}",
                    expected=f"{replicas} ready",
                    observed=f"{deployment.ready_replicas} ready, "
                    f"{deployment.updated_replicas} updated",
                )
            if deployment.pull_policy != expected.value:
                raise NotConvergedError(
                    "pull policy",
                    expected=expected.value,
                    observed=deployment.pull_policy,
                )
            return True

        wait_until(converged, self.settings.poll_config(f"pull policy {expected.value}"))

        observed = client.get(name).realized_pull_policy
        if observed != expected.value:
            msg = (
                f"pull policy was not successfully configured: expected "
                f"{expected.value}, observed {observed}"
            )
            raise VerificationFailure(msg)


__all__ = ["TRANSITIONS", "PullPolicyScenario"]
