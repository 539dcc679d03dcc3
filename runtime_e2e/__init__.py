"""Convergence-verification harness for the runtime-component operator.

The harness drives RuntimeComponent resources through spec changes against a
live cluster and waits for the operator to reconcile the derived state:
deployments, Knative Services, image pull policies.

Components:
    config: PollConfig and environment-driven HarnessSettings
    fixtures: Convergence poller and namespace naming
    client / k8s_client: ResourceClient protocol and its Kubernetes implementation
    context: Namespace-scoped TestContext with a LIFO cleanup stack
    probes: Operator readiness and capability probes
    scenarios: PullPolicyScenario and ServiceToggleScenario

Usage:
    from runtime_e2e.config import HarnessSettings
    from runtime_e2e.k8s_client import KubernetesResourceClient
    from runtime_e2e.scenarios import PullPolicyScenario

    settings = HarnessSettings()
    client = KubernetesResourceClient.from_settings(settings)
    PullPolicyScenario(client, settings).run().raise_on_failure()
"""

from __future__ import annotations

__version__ = "0.1.0"
