"""ResourceClient backed by the official Kubernetes Python client.

RuntimeComponents and Knative Services are custom resources and go through
CustomObjectsApi. Deployments go through AppsV1Api. Namespaces and pods go
through CoreV1Api. Every ApiException is translated into the harness error
hierarchy in exactly one place (_api_error), so callers never see transport
exceptions.

Example:
    >>> client = KubernetesResourceClient.connect(namespace="rt-1a2b")
    >>> client.create(make_basic_runtime_component("example", "rt-1a2b"))
    >>> client.get("example").realized_pull_policy
    'IfNotPresent'
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from kubernetes import client as k8s
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from runtime_e2e.client import ContainerSummary, PodSummary, SpecMutation
from runtime_e2e.config import HarnessSettings
from runtime_e2e.errors import (
    AccessDeniedError,
    AlreadyExistsError,
    ClusterApiError,
    ClusterUnavailableError,
    ConflictError,
    HarnessError,
    MalformedResponseError,
    NotFoundError,
)
from runtime_e2e.models import (
    GROUP,
    KIND,
    KNATIVE_GROUP,
    KNATIVE_PLURAL,
    KNATIVE_SERVICE_LABEL,
    KNATIVE_VERSION,
    PLURAL,
    VERSION,
    ObservedDeployment,
    ObservedState,
    RuntimeComponent,
    RuntimeComponentSpec,
)

logger = structlog.get_logger(__name__)

MANAGED_BY_LABEL = {"app.kubernetes.io/managed-by": "runtime-e2e"}
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _api_error(
    error: ApiException,
    *,
    operation: str,
    kind: str,
    name: str,
    namespace: str = "",
) -> HarnessError:
    """Translate an ApiException into a harness error.

    Args:
        error: Exception raised by the Kubernetes client.
        operation: Verb being performed ("get", "create", "update", ...).
        kind: Kind of object involved.
        name: Object name.
        namespace: Namespace of the object, if namespaced.

    Returns:
        The harness error to raise in its place.
    """
    status = error.status or 0
    reason = error.reason or ""
    if status == 404:
        return NotFoundError(kind, name, namespace=namespace)
    if status == 409:
        if operation == "create":
            return AlreadyExistsError(kind, name, namespace=namespace)
        return ConflictError(kind, name, reason=reason)
    if status == 403:
        return AccessDeniedError(operation, kind, namespace=namespace, reason=reason)
    return ClusterApiError(operation, kind, status=status, reason=reason or str(error))


def _to_observed_deployment(deployment: Any) -> ObservedDeployment:
    """Project a V1Deployment onto ObservedDeployment."""
    name = getattr(deployment.metadata, "name", None) or "<unknown>"
    if deployment.spec is None or deployment.spec.template.spec is None:
        raise MalformedResponseError("deployment", name, reason="missing pod template spec")

    status = deployment.status
    containers = deployment.spec.template.spec.containers or []
    return ObservedDeployment(
        name=name,
        replicas=deployment.spec.replicas if deployment.spec.replicas is not None else 1,
        ready_replicas=(status.ready_replicas or 0) if status else 0,
        updated_replicas=(status.updated_replicas or 0) if status else 0,
        available_replicas=(status.available_replicas or 0) if status else 0,
        generation=deployment.metadata.generation or 0,
        observed_generation=(status.observed_generation or 0) if status else 0,
        pull_policies=tuple(c.image_pull_policy or "" for c in containers),
    )


def _to_pod_summary(pod: Any) -> PodSummary:
    statuses = (pod.status.container_statuses or []) if pod.status else []
    containers = []
    for cs in statuses:
        waiting = cs.state.waiting if cs.state else None
        containers.append(
            ContainerSummary(
                name=cs.name,
                ready=bool(cs.ready),
                restart_count=cs.restart_count or 0,
                waiting_reason=waiting.reason if waiting else None,
            )
        )
    return PodSummary(
        name=pod.metadata.name,
        phase=(pod.status.phase if pod.status else None) or "Unknown",
        containers=tuple(containers),
    )


class KubernetesResourceClient:
    """ResourceClient implementation talking to a real API server.

    Attributes:
        namespace: Namespace this client operates on.
    """

    def __init__(
        self,
        namespace: str,
        *,
        custom_api: Any,
        apps_api: Any,
        core_api: Any,
    ) -> None:
        """Initialize the client from already-configured API objects.

        Use connect() to load cluster configuration and build the APIs.

        Args:
            namespace: Namespace to bind to.
            custom_api: kubernetes.client.CustomObjectsApi instance.
            apps_api: kubernetes.client.AppsV1Api instance.
            core_api: kubernetes.client.CoreV1Api instance.
        """
        self._namespace = namespace
        self._custom = custom_api
        self._apps = apps_api
        self._core = core_api

    @classmethod
    def connect(
        cls,
        namespace: str = "default",
        *,
        kubeconfig_path: str | None = None,
        context: str | None = None,
    ) -> KubernetesResourceClient:
        """Load cluster configuration and build a client.

        Attempts to load configuration in this order:
        1. Explicit kubeconfig path
        2. In-cluster configuration
        3. Default kubeconfig (~/.kube/config)

        Raises:
            ClusterUnavailableError: If no usable configuration is found.
        """
        try:
            if kubeconfig_path:
                k8s_config.load_kube_config(config_file=kubeconfig_path, context=context)
                logger.info("loaded_kubeconfig", kubeconfig_path=kubeconfig_path, context=context)
            else:
                try:
                    k8s_config.load_incluster_config()
                    logger.info("loaded_incluster_config")
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config(context=context)
                    logger.info("loaded_default_kubeconfig", context=context)
        except Exception as e:
            logger.exception("kubernetes_config_failed")
            raise ClusterUnavailableError(reason=str(e)) from e

        api_client = k8s.ApiClient()
        return cls(
            namespace,
            custom_api=k8s.CustomObjectsApi(api_client),
            apps_api=k8s.AppsV1Api(api_client),
            core_api=k8s.CoreV1Api(api_client),
        )

    @classmethod
    def from_settings(
        cls,
        settings: HarnessSettings,
        namespace: str = "default",
    ) -> KubernetesResourceClient:
        """Build a client from harness settings."""
        return cls.connect(
            namespace,
            kubeconfig_path=settings.kubeconfig_path,
            context=settings.context,
        )

    @property
    def namespace(self) -> str:
        """Namespace this client operates on."""
        return self._namespace

    def for_namespace(self, namespace: str) -> KubernetesResourceClient:
        """Return a client bound to another namespace, sharing the connection."""
        return KubernetesResourceClient(
            namespace,
            custom_api=self._custom,
            apps_api=self._apps,
            core_api=self._core,
        )

    # =========================================================================
    # RuntimeComponent
    # =========================================================================

    def create(self, component: RuntimeComponent) -> None:
        """Create a RuntimeComponent in the bound namespace."""
        manifest = component.to_k8s_manifest()
        manifest["metadata"]["namespace"] = self._namespace
        try:
            self._custom.create_namespaced_custom_object(
                GROUP, VERSION, self._namespace, PLURAL, manifest
            )
        except ApiException as e:
            raise _api_error(
                e, operation="create", kind=KIND, name=component.name, namespace=self._namespace
            ) from e
        logger.info("component_created", name=component.name, namespace=self._namespace)

    def _get_component_object(self, name: str) -> dict[str, Any]:
        try:
            obj: dict[str, Any] = self._custom.get_namespaced_custom_object(
                GROUP, VERSION, self._namespace, PLURAL, name
            )
        except ApiException as e:
            raise _api_error(
                e, operation="get", kind=KIND, name=name, namespace=self._namespace
            ) from e
        if not isinstance(obj.get("spec"), dict):
            raise MalformedResponseError(KIND, name, reason="missing spec")
        return obj

    def _parse_spec(self, name: str, obj: dict[str, Any]) -> RuntimeComponentSpec:
        try:
            return RuntimeComponentSpec.from_wire(obj["spec"])
        except ValidationError as e:
            raise MalformedResponseError(KIND, name, reason=str(e)) from e

    def get(self, name: str) -> ObservedState:
        """Read a RuntimeComponent together with its serving deployment."""
        obj = self._get_component_object(name)
        spec = self._parse_spec(name, obj)

        deployment: ObservedDeployment | None
        try:
            if spec.knative_enabled:
                deployment = self.find_serving_deployment(name)
            else:
                deployment = self.get_deployment(name)
        except NotFoundError:
            deployment = None

        metadata = obj.get("metadata", {})
        status = obj.get("status") or {}
        return ObservedState(
            name=name,
            namespace=self._namespace,
            generation=metadata.get("generation", 0),
            spec=spec,
            deployment=deployment,
            service_present=self.alternate_service_exists(name),
            conditions=tuple(status.get("conditions") or ()),
        )

    def update(self, name: str, mutate: SpecMutation) -> None:
        """Read-modify-write a RuntimeComponent's spec.

        The object is submitted with the resourceVersion it was read at, so a
        concurrent write makes the API server reject it with 409.

        Raises:
            NotFoundError: If the resource does not exist.
            ConflictError: If another writer updated it in between.
        """
        obj = self._get_component_object(name)
        spec = self._parse_spec(name, obj)
        mutate(spec)
        obj["spec"] = spec.to_wire()
        try:
            self._custom.replace_namespaced_custom_object(
                GROUP, VERSION, self._namespace, PLURAL, name, obj
            )
        except ApiException as e:
            raise _api_error(
                e, operation="update", kind=KIND, name=name, namespace=self._namespace
            ) from e
        logger.info("component_updated", name=name, namespace=self._namespace)

    def delete(self, name: str) -> None:
        """Delete a RuntimeComponent."""
        try:
            self._custom.delete_namespaced_custom_object(
                GROUP, VERSION, self._namespace, PLURAL, name
            )
        except ApiException as e:
            raise _api_error(
                e, operation="delete", kind=KIND, name=name, namespace=self._namespace
            ) from e
        logger.info("component_deleted", name=name, namespace=self._namespace)

    # =========================================================================
    # Derived state
    # =========================================================================

    def get_deployment(self, name: str) -> ObservedDeployment:
        """Read a Deployment in the bound namespace."""
        try:
            deployment = self._apps.read_namespaced_deployment(name, self._namespace)
        except ApiException as e:
            raise _api_error(
                e, operation="get", kind="deployment", name=name, namespace=self._namespace
            ) from e
        return _to_observed_deployment(deployment)

    def find_serving_deployment(self, service_name: str) -> ObservedDeployment:
        """Read the newest Deployment labelled as backing a Knative Service."""
        selector = f"{KNATIVE_SERVICE_LABEL}={service_name}"
        try:
            result = self._apps.list_namespaced_deployment(
                self._namespace, label_selector=selector
            )
        except ApiException as e:
            raise _api_error(
                e,
                operation="list",
                kind="deployment",
                name=selector,
                namespace=self._namespace,
            ) from e

        items = list(result.items or [])
        if not items:
            raise NotFoundError("deployment", selector, namespace=self._namespace)
        newest = max(items, key=lambda d: d.metadata.creation_timestamp or _EPOCH)
        return _to_observed_deployment(newest)

    def alternate_service_exists(self, name: str) -> bool:
        """Whether a Knative Service named ``name`` exists.

        A missing Knative CRD also answers False.
        """
        try:
            self._custom.get_namespaced_custom_object(
                KNATIVE_GROUP, KNATIVE_VERSION, self._namespace, KNATIVE_PLURAL, name
            )
        except ApiException as e:
            if e.status == 404:
                return False
            raise _api_error(
                e,
                operation="get",
                kind="knative service",
                name=name,
                namespace=self._namespace,
            ) from e
        return True

    # =========================================================================
    # Namespaces
    # =========================================================================

    def list_namespaces(self) -> list[str]:
        """Names of all namespaces."""
        try:
            result = self._core.list_namespace()
        except ApiException as e:
            raise _api_error(e, operation="list", kind="namespace", name="*") from e
        return [ns.metadata.name for ns in result.items or []]

    def create_namespace(self, namespace: str) -> None:
        """Create a namespace labelled as owned by the harness."""
        body = k8s.V1Namespace(
            metadata=k8s.V1ObjectMeta(name=namespace, labels=dict(MANAGED_BY_LABEL))
        )
        try:
            self._core.create_namespace(body)
        except ApiException as e:
            raise _api_error(e, operation="create", kind="namespace", name=namespace) from e
        logger.info("namespace_created", namespace=namespace)

    def delete_namespace(self, namespace: str) -> None:
        """Delete a namespace and everything in it."""
        try:
            self._core.delete_namespace(namespace)
        except ApiException as e:
            raise _api_error(e, operation="delete", kind="namespace", name=namespace) from e
        logger.info("namespace_deleted", namespace=namespace)

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def list_pods(self) -> list[PodSummary]:
        """Pods in the bound namespace."""
        try:
            result = self._core.list_namespaced_pod(self._namespace)
        except ApiException as e:
            raise _api_error(
                e, operation="list", kind="pod", name="*", namespace=self._namespace
            ) from e
        return [_to_pod_summary(pod) for pod in result.items or []]

    def list_component_statuses(self) -> dict[str, dict[str, Any]]:
        """status of every RuntimeComponent in the bound namespace."""
        try:
            result = self._custom.list_namespaced_custom_object(
                GROUP, VERSION, self._namespace, PLURAL
            )
        except ApiException as e:
            raise _api_error(
                e, operation="list", kind=KIND, name="*", namespace=self._namespace
            ) from e
        return {
            item["metadata"]["name"]: item.get("status") or {}
            for item in result.get("items", [])
        }


__all__ = ["KubernetesResourceClient"]
