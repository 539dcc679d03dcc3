"""Pydantic models for RuntimeComponent resources and their observed state.

This module defines the declared side (RuntimeComponentSpec, RuntimeComponent)
that scenarios create and mutate, and the observed side (ObservedDeployment,
ObservedState) read back from the cluster. The harness never mutates
observed models. They are frozen snapshots.

Spec fields use snake_case in Python and the CRD's camelCase on the wire
(``pullPolicy``, ``createKnativeService``). Fields the harness does not model
are preserved when a spec read from the cluster is written back.

Example:
    >>> component = make_basic_runtime_component("example", "rt-1a2b", replicas=1)
    >>> component.spec.pull_policy is None
    True
    >>> component.to_k8s_manifest()["kind"]
    'RuntimeComponent'
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from runtime_e2e.config import DEFAULT_APPLICATION_IMAGE

# RuntimeComponent custom resource
GROUP = "app.stacks"
VERSION = "v1beta1"
PLURAL = "runtimecomponents"
KIND = "RuntimeComponent"

# Knative serving (the alternate serving mode)
KNATIVE_GROUP = "serving.knative.dev"
KNATIVE_VERSION = "v1"
KNATIVE_PLURAL = "services"
KNATIVE_SERVICE_LABEL = "serving.knative.dev/service"


class PullPolicy(str, Enum):
    """Container image pull policy.

    An unset policy (None on the spec) leaves the choice to the platform,
    which realizes it as IF_NOT_PRESENT for tagged images.
    """

    ALWAYS = "Always"
    NEVER = "Never"
    IF_NOT_PRESENT = "IfNotPresent"


DEFAULT_PULL_POLICY = PullPolicy.IF_NOT_PRESENT

_WIRE_CONFIG = ConfigDict(
    populate_by_name=True,
    extra="allow",
    validate_assignment=True,
)


# =============================================================================
# Declared state
# =============================================================================


class ServiceSpec(BaseModel):
    """Service exposure of the component."""

    model_config = _WIRE_CONFIG

    port: int = Field(default=3000, ge=1, le=65535)
    type: str = Field(default="ClusterIP")


class HTTPGetAction(BaseModel):
    """HTTP GET probe target."""

    model_config = _WIRE_CONFIG

    path: str = Field(default="/")
    port: int = Field(default=3000, ge=1, le=65535)


class ProbeSpec(BaseModel):
    """HTTP readiness or liveness probe."""

    model_config = _WIRE_CONFIG

    http_get: Annotated[HTTPGetAction, Field(default_factory=HTTPGetAction, alias="httpGet")]
    initial_delay_seconds: Annotated[int, Field(default=1, ge=0, alias="initialDelaySeconds")]
    timeout_seconds: Annotated[int, Field(default=1, ge=1, alias="timeoutSeconds")]
    period_seconds: Annotated[int, Field(default=5, ge=1, alias="periodSeconds")]
    success_threshold: Annotated[int, Field(default=1, ge=1, alias="successThreshold")]
    failure_threshold: Annotated[int, Field(default=16, ge=1, alias="failureThreshold")]


class RuntimeComponentSpec(BaseModel):
    """Declared intent of a RuntimeComponent.

    Mutable: scenarios edit it in place inside ResourceClient.update()
    mutation callbacks. Assignments are validated.

    Attributes:
        application_image: Container image to run.
        replicas: Desired replica count.
        pull_policy: Image pull policy, or None for the platform default.
        create_knative_service: Serve through a Knative Service instead of a
            plain Deployment. None means the operator default (plain).
        expose: Whether the operator creates a Route/Ingress.
        service: Service port and type.
        readiness_probe: Optional readiness probe.
        liveness_probe: Optional liveness probe.
    """

    model_config = _WIRE_CONFIG

    application_image: Annotated[str, Field(min_length=1, alias="applicationImage")]
    replicas: int = Field(default=1, ge=0)
    pull_policy: Annotated[PullPolicy | None, Field(default=None, alias="pullPolicy")]
    create_knative_service: Annotated[
        bool | None, Field(default=None, alias="createKnativeService")
    ]
    expose: bool | None = Field(default=None)
    service: ServiceSpec | None = Field(default=None)
    readiness_probe: Annotated[ProbeSpec | None, Field(default=None, alias="readinessProbe")]
    liveness_probe: Annotated[ProbeSpec | None, Field(default=None, alias="livenessProbe")]

    @property
    def knative_enabled(self) -> bool:
        """Whether the alternate serving mode is selected."""
        return bool(self.create_knative_service)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the CRD's camelCase spec, dropping unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> RuntimeComponentSpec:
        """Parse a spec as returned by the API server."""
        return cls.model_validate(data)


class RuntimeComponent(BaseModel):
    """A RuntimeComponent resource: identity plus declared spec.

    ``name`` and ``namespace`` are immutable once constructed. ``spec`` is
    mutable.
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(..., min_length=1, max_length=63, frozen=True)
    namespace: str = Field(..., min_length=1, max_length=63, frozen=True)
    spec: RuntimeComponentSpec

    def to_k8s_manifest(self) -> dict[str, Any]:
        """Convert to a RuntimeComponent manifest dict."""
        return {
            "apiVersion": f"{GROUP}/{VERSION}",
            "kind": KIND,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
            },
            "spec": self.spec.to_wire(),
        }


def make_basic_runtime_component(
    name: str,
    namespace: str,
    replicas: int = 1,
    *,
    image: str = DEFAULT_APPLICATION_IMAGE,
) -> RuntimeComponent:
    """Build the minimal component the scenarios start from.

    No pull policy and no Knative Service are set. The component listens on
    port 3000 behind a ClusterIP service, with HTTP probes on ``/``.

    Args:
        name: Resource name.
        namespace: Target namespace.
        replicas: Desired replica count.
        image: Application image.

    Returns:
        RuntimeComponent ready to be created.
    """
    probe = ProbeSpec(http_get=HTTPGetAction(path="/", port=3000))
    return RuntimeComponent(
        name=name,
        namespace=namespace,
        spec=RuntimeComponentSpec(
            application_image=image,
            replicas=replicas,
            expose=False,
            service=ServiceSpec(port=3000, type="ClusterIP"),
            readiness_probe=probe,
            liveness_probe=probe.model_copy(update={"initial_delay_seconds": 4}),
        ),
    )


# =============================================================================
# Observed state
# =============================================================================


class ObservedDeployment(BaseModel):
    """Snapshot of a realized Deployment.

    Attributes:
        name: Deployment name.
        replicas: Desired replicas from the deployment spec.
        ready_replicas: Replicas passing readiness.
        updated_replicas: Replicas running the current pod template.
        available_replicas: Replicas available for at least minReadySeconds.
        generation: metadata.generation.
        observed_generation: status.observedGeneration.
        pull_policies: imagePullPolicy of each container, in order.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    replicas: int = 0
    ready_replicas: int = 0
    updated_replicas: int = 0
    available_replicas: int = 0
    generation: int = 0
    observed_generation: int = 0
    pull_policies: tuple[str, ...] = ()

    @property
    def pull_policy(self) -> str | None:
        """Pull policy of the first (application) container."""
        return self.pull_policies[0] if self.pull_policies else None

    @property
    def rolled_out(self) -> bool:
        """Whether the deployment controller has finished the latest rollout."""
        return (
            self.observed_generation >= self.generation
            and self.updated_replicas == self.replicas
        )

    def is_available(self, replicas: int) -> bool:
        """Whether at least ``replicas`` replicas are available."""
        return self.available_replicas >= replicas

    def is_ready(self, replicas: int) -> bool:
        """Whether the latest rollout completed with ``replicas`` ready replicas."""
        return (
            self.rolled_out
            and self.ready_replicas >= replicas
            and self.is_available(replicas)
        )


class ObservedState(BaseModel):
    """Read-only projection of a RuntimeComponent and what it produced.

    Attributes:
        name: Resource name.
        namespace: Resource namespace.
        generation: metadata.generation of the custom resource.
        spec: Declared spec as currently stored in the cluster.
        deployment: The deployment currently serving the component: the
            Knative-backed one when the alternate mode is enabled, else the
            plain one. None if it does not exist (yet).
        service_present: Whether a Knative Service with the resource name
            exists.
        conditions: status.conditions of the custom resource.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    generation: int = 0
    spec: RuntimeComponentSpec
    deployment: ObservedDeployment | None = None
    service_present: bool = False
    conditions: tuple[dict[str, Any], ...] = ()

    @property
    def realized_pull_policy(self) -> str | None:
        """Pull policy applied to the serving deployment, if any."""
        if self.deployment is None:
            return None
        return self.deployment.pull_policy


__all__ = [
    "DEFAULT_PULL_POLICY",
    "GROUP",
    "HTTPGetAction",
    "KIND",
    "KNATIVE_GROUP",
    "KNATIVE_PLURAL",
    "KNATIVE_SERVICE_LABEL",
    "KNATIVE_VERSION",
    "ObservedDeployment",
    "ObservedState",
    "PLURAL",
    "ProbeSpec",
    "PullPolicy",
    "RuntimeComponent",
    "RuntimeComponentSpec",
    "ServiceSpec",
    "VERSION",
    "make_basic_runtime_component",
]
