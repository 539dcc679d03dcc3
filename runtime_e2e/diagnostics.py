"""Failure diagnostics for scenario runs.

When a scenario fails, the namespace is about to be torn down, so whatever
explains the failure has to be captured first: pod phases and container
states, and the status of every RuntimeComponent.
"""

from __future__ import annotations

import structlog

from runtime_e2e.client import ResourceClient

logger = structlog.get_logger(__name__)


def log_failure_diagnostics(client: ResourceClient, error: BaseException) -> None:
    """Log the failure and a snapshot of the namespace.

    Never raises. A diagnostics read that fails with any exception, not only
    a HarnessError, is logged and skipped so the caller still reports the
    original error.

    Args:
        client: Client bound to the failing scenario's namespace.
        error: The error that failed the scenario.
    """
    namespace = client.namespace
    logger.error("scenario_failure", namespace=namespace, error=str(error))

    try:
        pods = client.list_pods()
    except Exception as e:
        logger.warning(
            "diagnostics_pods_unavailable",
            namespace=namespace,
            error=str(e),
            error_type=type(e).__name__,
        )
    else:
        for pod in pods:
            logger.error(
                "pod_status",
                namespace=namespace,
                pod=pod.name,
                phase=pod.phase,
                containers=[c.model_dump() for c in pod.containers],
            )

    try:
        statuses = client.list_component_statuses()
    except Exception as e:
        logger.warning(
            "diagnostics_components_unavailable",
            namespace=namespace,
            error=str(e),
            error_type=type(e).__name__,
        )
    else:
        for name, status in statuses.items():
            logger.error("component_status", namespace=namespace, component=name, status=status)


__all__ = ["log_failure_diagnostics"]
