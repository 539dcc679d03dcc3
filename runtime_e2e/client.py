"""ResourceClient: the harness's only view of the cluster.

Scenarios, contexts and probes depend on this protocol rather than on a
concrete Kubernetes client, so they can be exercised against an in-memory
cluster in unit tests and against a real API server end to end.

A client is bound to one namespace. ``for_namespace()`` returns a client for
another namespace that shares the same underlying connection.

Error contract (see runtime_e2e.errors):
    - Missing objects raise NotFoundError.
    - create() on an existing name raises AlreadyExistsError.
    - update() racing another writer raises ConflictError. Clients never
      retry it.
    - Responses missing required fields raise MalformedResponseError.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from runtime_e2e.models import (
    ObservedDeployment,
    ObservedState,
    RuntimeComponent,
    RuntimeComponentSpec,
)

SpecMutation = Callable[[RuntimeComponentSpec], None]
"""Callback that edits a fetched spec in place."""


class ContainerSummary(BaseModel):
    """Per-container status used in failure diagnostics."""

    model_config = ConfigDict(frozen=True)

    name: str
    ready: bool = False
    restart_count: int = 0
    waiting_reason: str | None = None


class PodSummary(BaseModel):
    """Pod status used in failure diagnostics."""

    model_config = ConfigDict(frozen=True)

    name: str
    phase: str = "Unknown"
    containers: tuple[ContainerSummary, ...] = ()


@runtime_checkable
class ResourceClient(Protocol):
    """Create/get/update/delete for RuntimeComponents and their derived objects."""

    @property
    def namespace(self) -> str:
        """Namespace this client operates on."""
        ...

    def for_namespace(self, namespace: str) -> ResourceClient:
        """Return a client bound to ``namespace``."""
        ...

    # RuntimeComponent

    def create(self, component: RuntimeComponent) -> None:
        """Create a RuntimeComponent. Raises AlreadyExistsError if taken."""
        ...

    def get(self, name: str) -> ObservedState:
        """Read a RuntimeComponent and its derived state. Raises NotFoundError."""
        ...

    def update(self, name: str, mutate: SpecMutation) -> None:
        """Fetch the spec, apply ``mutate`` in place, submit. Raises ConflictError."""
        ...

    def delete(self, name: str) -> None:
        """Delete a RuntimeComponent. Raises NotFoundError if already gone."""
        ...

    # Derived state

    def get_deployment(self, name: str) -> ObservedDeployment:
        """Read a Deployment. Raises NotFoundError."""
        ...

    def find_serving_deployment(self, service_name: str) -> ObservedDeployment:
        """Read the Deployment backing a Knative Service. Raises NotFoundError."""
        ...

    def alternate_service_exists(self, name: str) -> bool:
        """Whether a Knative Service named ``name`` exists."""
        ...

    # Namespaces

    def list_namespaces(self) -> list[str]:
        """Names of all namespaces in the cluster."""
        ...

    def create_namespace(self, namespace: str) -> None:
        """Create a namespace. Raises AlreadyExistsError."""
        ...

    def delete_namespace(self, namespace: str) -> None:
        """Delete a namespace. Raises NotFoundError if already gone."""
        ...

    # Diagnostics

    def list_pods(self) -> list[PodSummary]:
        """Pods in the client's namespace."""
        ...

    def list_component_statuses(self) -> dict[str, dict[str, Any]]:
        """status of every RuntimeComponent in the namespace, keyed by name."""
        ...


__all__ = [
    "ContainerSummary",
    "PodSummary",
    "ResourceClient",
    "SpecMutation",
]
