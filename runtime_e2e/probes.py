"""Readiness and capability probes.

These are the boundary checks a scenario runs around its own steps:

    wait_for_operator_deployment: The controller under test is available.
    wait_for_deployment: A deployment has the requested available replicas.
    is_serving_platform_installed: Knative serving exists in the cluster.
"""

from __future__ import annotations

import structlog

from runtime_e2e.client import ResourceClient
from runtime_e2e.config import DEFAULT_SERVING_NAMESPACE, PollConfig
from runtime_e2e.errors import NotConvergedError
from runtime_e2e.fixtures.polling import wait_until

logger = structlog.get_logger(__name__)


def wait_for_deployment(
    client: ResourceClient,
    name: str,
    replicas: int,
    config: PollConfig,
) -> None:
    """Wait until a deployment reports ``replicas`` available replicas.

    A missing deployment is transient: the controller may not have created it
    yet.

    Raises:
        PollingTimeoutError: If the replicas never become available.
    """

    def available() -> bool:
        deployment = client.get_deployment(name)
        if not deployment.is_available(replicas):
            raise NotConvergedError(
                f"available replicas of {name}",
                expected=replicas,
                observed=deployment.available_replicas,
            )
        return True

    wait_until(available, config.describe(f"deployment {name} ({replicas} available)"))
    logger.info("deployment_available", name=name, namespace=client.namespace, replicas=replicas)


def wait_for_operator_deployment(
    client: ResourceClient,
    name: str,
    replicas: int,
    config: PollConfig,
) -> None:
    """Wait for the operator's own deployment before any scenario step.

    Polled with its own (usually longer) budget, independent of per-step
    convergence polling.
    """
    logger.info("waiting_for_operator", name=name, namespace=client.namespace)
    wait_for_deployment(client, name, replicas, config)


def is_serving_platform_installed(
    client: ResourceClient,
    namespace: str = DEFAULT_SERVING_NAMESPACE,
) -> bool:
    """Whether the Knative serving system namespace exists.

    A one-shot capability probe. Errors listing namespaces propagate and are
    never retried.
    """
    installed = namespace in client.list_namespaces()
    logger.debug("serving_platform_probe", namespace=namespace, installed=installed)
    return installed


__all__ = [
    "is_serving_platform_installed",
    "wait_for_deployment",
    "wait_for_operator_deployment",
]
