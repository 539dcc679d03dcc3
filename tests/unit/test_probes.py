"""Unit tests for readiness and capability probes."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from runtime_e2e.config import DEFAULT_OPERATOR_DEPLOYMENT, DEFAULT_OPERATOR_NAMESPACE, PollConfig
from runtime_e2e.errors import (
    AccessDeniedError,
    NotConvergedError,
    NotFoundError,
    PollingTimeoutError,
)
from runtime_e2e.models import ObservedDeployment, make_basic_runtime_component
from runtime_e2e.probes import (
    is_serving_platform_installed,
    wait_for_deployment,
    wait_for_operator_deployment,
)

FAST = PollConfig(retry_interval=0.01, timeout=0.3)


class TestWaitForDeployment:
    """Tests for wait_for_deployment()."""

    def test_waits_for_controller_to_create_deployment(self, cluster, fake_client) -> None:
        """Test a not-yet-created deployment is waited for."""
        fake_client.create(make_basic_runtime_component("r1", "default"))
        assert ("default", "r1") not in cluster.deployments

        wait_for_deployment(fake_client, "r1", 1, FAST)

        assert cluster.deployments[("default", "r1")].available_replicas == 1

    def test_times_out_when_replicas_unavailable(self) -> None:
        """Test unavailable replicas end in a timeout showing the count."""
        client = MagicMock()
        client.get_deployment.return_value = ObservedDeployment(
            name="r1", replicas=2, available_replicas=1
        )

        with pytest.raises(PollingTimeoutError) as exc_info:
            wait_for_deployment(client, "r1", 2, FAST)

        last_error = exc_info.value.last_error
        assert isinstance(last_error, NotConvergedError)
        assert last_error.observed == 1
        assert "deployment r1" in exc_info.value.description


class TestWaitForOperatorDeployment:
    """Tests for the operator readiness precondition."""

    def test_ready_operator(self, cluster) -> None:
        """Test a ready operator in its install namespace passes."""
        client = cluster.client(DEFAULT_OPERATOR_NAMESPACE)
        wait_for_operator_deployment(client, DEFAULT_OPERATOR_DEPLOYMENT, 1, FAST)

    def test_unready_operator_times_out(self, cluster) -> None:
        """Test an unavailable operator is reported as a timeout."""
        cluster.operator_ready = False
        client = cluster.client(DEFAULT_OPERATOR_NAMESPACE)
        with pytest.raises(PollingTimeoutError):
            wait_for_operator_deployment(client, DEFAULT_OPERATOR_DEPLOYMENT, 1, FAST)

    def test_operator_outside_namespace_not_found(self, fake_client) -> None:
        """Test looking in a namespace without the operator times out on NotFound."""
        with pytest.raises(PollingTimeoutError) as exc_info:
            wait_for_operator_deployment(fake_client, DEFAULT_OPERATOR_DEPLOYMENT, 1, FAST)
        assert isinstance(exc_info.value.last_error, NotFoundError)
        assert exc_info.value.last_error.namespace == "default"


class TestIsServingPlatformInstalled:
    """Tests for the Knative capability probe."""

    def test_installed(self, knative_cluster) -> None:
        """Test the knative-serving namespace signals installation."""
        assert is_serving_platform_installed(knative_cluster.client()) is True

    def test_not_installed(self, fake_client) -> None:
        """Test a cluster without the namespace reports not installed."""
        assert is_serving_platform_installed(fake_client) is False

    def test_custom_namespace(self, cluster, fake_client) -> None:
        """Test the system namespace name is configurable."""
        cluster.namespaces.add("serving-system")
        assert is_serving_platform_installed(fake_client, "serving-system") is True

    def test_list_error_propagates(self) -> None:
        """Test errors are not swallowed or retried."""
        client = MagicMock()
        client.list_namespaces.side_effect = AccessDeniedError("list", "namespace")

        with pytest.raises(AccessDeniedError):
            is_serving_platform_installed(client)
        assert client.list_namespaces.call_count == 1
