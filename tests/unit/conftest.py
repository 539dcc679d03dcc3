"""Pytest configuration for runtime_e2e unit tests.

Provides an in-memory cluster that stands in for the API server and the
operator under test. The simulated operator reconciles a RuntimeComponent
only after a few reads, so the harness has to poll exactly as it would
against a real, eventually consistent cluster.

Fixtures:
    - cluster: FakeCluster with default behaviour
    - fake_client: ResourceClient bound to "default" on that cluster
    - fast_settings: HarnessSettings with sub-second budgets
    - fake_clock: Deterministic clock/sleep pair for the poller
"""

from __future__ import annotations

from typing import Any

import pytest

from runtime_e2e.client import ContainerSummary, PodSummary, SpecMutation
from runtime_e2e.config import (
    DEFAULT_OPERATOR_DEPLOYMENT,
    DEFAULT_OPERATOR_NAMESPACE,
    HarnessSettings,
)
from runtime_e2e.errors import (
    AlreadyExistsError,
    ClusterApiError,
    ConflictError,
    NotFoundError,
)
from runtime_e2e.models import (
    ObservedDeployment,
    ObservedState,
    RuntimeComponent,
    RuntimeComponentSpec,
)

Key = tuple[str, str]


class FakeCluster:
    """Shared state of a simulated cluster plus a simulated operator.

    Knobs:
        lag: Reads of a component before the operator reconciles a change.
        policy_override: Pull policy the operator applies regardless of spec.
        leak_services: The operator never deletes Knative Services.
        service_deletion_lag: Reads of a Knative Service that still find it
            after the operator switched back to a plain deployment.
        conflicts_remaining: Number of upcoming updates rejected with a conflict.
        fail_delete: Component names whose deletion fails with an API error.
        operator_ready: Whether the operator deployment reports available.
        operator_namespace: The only namespace the operator deployment exists in.
        list_pods_error: Raised by list_pods, to break failure diagnostics.
    """

    def __init__(self, *, lag: int = 2, namespaces: tuple[str, ...] = ("default",)) -> None:
        self.lag = lag
        self.policy_override: str | None = None
        self.leak_services = False
        self.service_deletion_lag = 0
        self.conflicts_remaining = 0
        self.fail_delete: set[str] = set()
        self.operator_ready = True
        self.operator_namespace = DEFAULT_OPERATOR_NAMESPACE
        self.list_pods_error: Exception | None = None

        self.namespaces: set[str] = set(namespaces)
        self.created_namespaces: list[str] = []
        self.deleted_namespaces: list[str] = []
        self.components: dict[Key, dict[str, Any]] = {}
        self.deployments: dict[Key, ObservedDeployment] = {}
        self.serving_deployments: dict[Key, ObservedDeployment] = {}
        self.services: dict[Key, int] = {}
        self.service_creations = 0
        self.pending: dict[Key, int] = {}
        self.operations: list[tuple[str, str]] = []

    def client(self, namespace: str = "default") -> FakeResourceClient:
        return FakeResourceClient(self, namespace)

    # Simulated operator

    def tick(self, key: Key) -> None:
        if key not in self.pending:
            return
        self.pending[key] -= 1
        if self.pending[key] <= 0:
            del self.pending[key]
            self.reconcile(key)

    def reconcile(self, key: Key) -> None:
        namespace, name = key
        component = self.components[key]
        spec = RuntimeComponentSpec.from_wire(component["spec"])
        policy = self.policy_override or (
            spec.pull_policy.value if spec.pull_policy else "IfNotPresent"
        )
        deployment = ObservedDeployment(
            name=name,
            replicas=spec.replicas,
            ready_replicas=spec.replicas,
            updated_replicas=spec.replicas,
            available_replicas=spec.replicas,
            generation=component["generation"],
            observed_generation=component["generation"],
            pull_policies=(policy,),
        )
        if spec.knative_enabled:
            self.deployments.pop(key, None)
            if key not in self.services:
                self.service_creations += 1
            self.services[key] = 0
            self.serving_deployments[key] = deployment.model_copy(
                update={"name": f"{name}-00001-deployment"}
            )
        else:
            self.deployments[key] = deployment
            self.serving_deployments.pop(key, None)
            if key in self.services and not self.leak_services:
                if self.service_deletion_lag:
                    self.services[key] = self.service_deletion_lag
                else:
                    del self.services[key]

    def mark_changed(self, key: Key) -> None:
        self.pending[key] = self.lag
        if self.lag <= 0:
            self.tick(key)


class FakeResourceClient:
    """ResourceClient over a FakeCluster, bound to one namespace."""

    def __init__(self, cluster: FakeCluster, namespace: str) -> None:
        self.cluster = cluster
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def for_namespace(self, namespace: str) -> FakeResourceClient:
        return FakeResourceClient(self.cluster, namespace)

    def _key(self, name: str) -> Key:
        return (self._namespace, name)

    def create(self, component: RuntimeComponent) -> None:
        key = self._key(component.name)
        if key in self.cluster.components:
            raise AlreadyExistsError("RuntimeComponent", component.name, namespace=self._namespace)
        self.cluster.components[key] = {
            "spec": component.spec.to_wire(),
            "generation": 1,
        }
        self.cluster.operations.append(("create", component.name))
        self.cluster.mark_changed(key)

    def get(self, name: str) -> ObservedState:
        key = self._key(name)
        if key not in self.cluster.components:
            raise NotFoundError("RuntimeComponent", name, namespace=self._namespace)
        self.cluster.tick(key)
        component = self.cluster.components[key]
        spec = RuntimeComponentSpec.from_wire(component["spec"])
        if spec.knative_enabled:
            deployment = self.cluster.serving_deployments.get(key)
        else:
            deployment = self.cluster.deployments.get(key)
        return ObservedState(
            name=name,
            namespace=self._namespace,
            generation=component["generation"],
            spec=spec,
            deployment=deployment,
            service_present=key in self.cluster.services,
        )

    def update(self, name: str, mutate: SpecMutation) -> None:
        key = self._key(name)
        if key not in self.cluster.components:
            raise NotFoundError("RuntimeComponent", name, namespace=self._namespace)
        if self.cluster.conflicts_remaining > 0:
            self.cluster.conflicts_remaining -= 1
            raise ConflictError("RuntimeComponent", name, reason="object has been modified")
        component = self.cluster.components[key]
        spec = RuntimeComponentSpec.from_wire(component["spec"])
        mutate(spec)
        component["spec"] = spec.to_wire()
        component["generation"] += 1
        self.cluster.operations.append(("update", name))
        self.cluster.mark_changed(key)

    def delete(self, name: str) -> None:
        key = self._key(name)
        if name in self.cluster.fail_delete:
            raise ClusterApiError("delete", "RuntimeComponent", status=500, reason="etcd timeout")
        if key not in self.cluster.components:
            raise NotFoundError("RuntimeComponent", name, namespace=self._namespace)
        del self.cluster.components[key]
        self.cluster.deployments.pop(key, None)
        self.cluster.serving_deployments.pop(key, None)
        self.cluster.services.pop(key, None)
        self.cluster.pending.pop(key, None)
        self.cluster.operations.append(("delete", name))

    def get_deployment(self, name: str) -> ObservedDeployment:
        in_operator_namespace = self._namespace == self.cluster.operator_namespace
        if name == DEFAULT_OPERATOR_DEPLOYMENT and in_operator_namespace:
            available = 1 if self.cluster.operator_ready else 0
            return ObservedDeployment(name=name, replicas=1, available_replicas=available)
        key = self._key(name)
        self.cluster.tick(key)
        if key not in self.cluster.deployments:
            raise NotFoundError("deployment", name, namespace=self._namespace)
        return self.cluster.deployments[key]

    def find_serving_deployment(self, service_name: str) -> ObservedDeployment:
        key = self._key(service_name)
        self.cluster.tick(key)
        if key not in self.cluster.serving_deployments:
            raise NotFoundError("deployment", service_name, namespace=self._namespace)
        return self.cluster.serving_deployments[key]

    def alternate_service_exists(self, name: str) -> bool:
        key = self._key(name)
        if key not in self.cluster.services:
            return False
        lingering = self.cluster.services[key]
        if lingering > 0:
            if lingering == 1:
                del self.cluster.services[key]
            else:
                self.cluster.services[key] = lingering - 1
        return True

    def list_namespaces(self) -> list[str]:
        return sorted(self.cluster.namespaces)

    def create_namespace(self, namespace: str) -> None:
        if namespace in self.cluster.namespaces:
            raise AlreadyExistsError("namespace", namespace)
        self.cluster.namespaces.add(namespace)
        self.cluster.created_namespaces.append(namespace)
        self.cluster.operations.append(("create_namespace", namespace))

    def delete_namespace(self, namespace: str) -> None:
        if namespace not in self.cluster.namespaces:
            raise NotFoundError("namespace", namespace)
        self.cluster.namespaces.discard(namespace)
        self.cluster.deleted_namespaces.append(namespace)
        for key in [k for k in self.cluster.components if k[0] == namespace]:
            del self.cluster.components[key]
        self.cluster.operations.append(("delete_namespace", namespace))

    def list_pods(self) -> list[PodSummary]:
        if self.cluster.list_pods_error is not None:
            raise self.cluster.list_pods_error
        return [
            PodSummary(
                name=f"{name}-7d9f-abcde",
                phase="Running",
                containers=(ContainerSummary(name="app", ready=True),),
            )
            for (namespace, name) in self.cluster.components
            if namespace == self._namespace
        ]

    def list_component_statuses(self) -> dict[str, dict[str, Any]]:
        return {
            name: {"conditions": [{"type": "Reconciled", "status": "True"}]}
            for (namespace, name) in self.cluster.components
            if namespace == self._namespace
        }


class FakeClock:
    """Monotonic clock that only advances when slept on."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def cluster() -> FakeCluster:
    """Simulated cluster with a ready operator and no Knative."""
    return FakeCluster()


@pytest.fixture
def knative_cluster() -> FakeCluster:
    """Simulated cluster with Knative serving installed."""
    return FakeCluster(namespaces=("default", "knative-serving"))


@pytest.fixture
def fake_client(cluster: FakeCluster) -> FakeResourceClient:
    """Client bound to the default namespace of ``cluster``."""
    return cluster.client()


@pytest.fixture
def fast_settings() -> HarnessSettings:
    """Settings with budgets small enough for unit tests."""
    return HarnessSettings(
        retry_interval=0.01,
        timeout=1.0,
        operator_timeout=0.2,
        cleanup_retry_interval=0.01,
        cleanup_timeout=0.5,
        update_timeout=0.2,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    """Deterministic clock for poller tests."""
    return FakeClock()
