"""Knative Service toggle scenario.

Creates a RuntimeComponent served through Knative, then turns Knative off
and checks the operator switched back to a plain Deployment and removed the
Knative Service:

    precondition  knative-serving namespace present, else SKIPPED
    enable        createKnativeService=true   expect serving deployment ready
    disable       createKnativeService=false  expect plain deployment ready
                                              and no Knative Service

A Knative Service still present once the plain deployment is ready fails
verification. It is not retried unless ``service_deletion_grace`` is set.
"""

from __future__ import annotations

from runtime_e2e.client import ResourceClient
from runtime_e2e.context import TestContext
from runtime_e2e.errors import (
    NotConvergedError,
    PollingTimeoutError,
    PreconditionUnmetError,
    VerificationFailure,
)
from runtime_e2e.fixtures.polling import wait_until
from runtime_e2e.models import RuntimeComponentSpec, make_basic_runtime_component
from runtime_e2e.probes import is_serving_platform_installed, wait_for_deployment
from runtime_e2e.scenarios.base import Scenario, ScenarioResult, apply_update


class ServiceToggleScenario(Scenario):
    """Verifies toggling createKnativeService off removes the Knative Service."""

    name = "runtime-knative"
    namespace_prefix = "runtime-knative"
    component_name = "example-runtime-knative"
    replicas = 1

    def check_preconditions(self) -> None:
        namespace = self.settings.serving_namespace
        if not is_serving_platform_installed(self.client, namespace):
            msg = f"Knative is not installed on this cluster (no '{namespace}' namespace)"
            raise PreconditionUnmetError(msg)

    def execute(self, ctx: TestContext, result: ScenarioResult) -> None:
        client = ctx.client

        def enable() -> None:
            component = make_basic_runtime_component(
                self.component_name,
                ctx.namespace,
                self.replicas,
                image=self.settings.application_image,
            )
            component.spec.create_knative_service = True
            ctx.create_component(component)
            self.wait_for_serving_deployment(client)

        self.step(result, "enable", enable)
        self.step(result, "disable", lambda: self.disable(client))

    def wait_for_serving_deployment(self, client: ResourceClient) -> None:
        """Wait for the deployment backing the Knative Service to be available."""
        name = self.component_name
        replicas = self.replicas

        def ready() -> bool:
            deployment = client.find_serving_deployment(name)
            if not deployment.is_available(replicas):
                raise NotConvergedError(
                    f"available replicas of {deployment.name}",
                    expected=replicas,
                    observed=deployment.available_replicas,
                )
            return True

        wait_until(ready, self.settings.poll_config(f"knative deployment for {name}"))

    def disable(self, client: ResourceClient) -> None:
        """Turn Knative off, wait for the plain deployment, check the service is gone.

        Raises:
            PollingTimeoutError: If the plain deployment never becomes ready.
            VerificationFailure: If the Knative Service is still present.
        """
        name = self.component_name

        def turn_off(spec: RuntimeComponentSpec) -> None:
            spec.create_knative_service = False

        apply_update(client, name, turn_off, self.settings.update_poll_config())
        wait_for_deployment(client, name, self.replicas, self.settings.poll_config())
        self.verify_service_removed(client)

    def verify_service_removed(self, client: ResourceClient) -> None:
        """Fail unless the Knative Service is absent."""
        name = self.component_name
        grace = self.settings.service_deletion_poll_config()

        if grace is None:
            if client.alternate_service_exists(name):
                raise VerificationFailure("knative service not deleted")
            return

        try:
            wait_until(lambda: not client.alternate_service_exists(name), grace)
        except PollingTimeoutError as e:
            raise VerificationFailure("knative service not deleted") from e


__all__ = ["ServiceToggleScenario"]
