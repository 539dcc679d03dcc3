"""E2E test configuration and fixtures.

E2E tests drive the scenarios against a live cluster running the
runtime-component operator. Cluster access and timing come from
RUNTIME_E2E_* environment variables (see HarnessSettings).

Run with:
    pytest -m e2e tests/e2e
"""

from __future__ import annotations

import pytest

from runtime_e2e.config import HarnessSettings
from runtime_e2e.k8s_client import KubernetesResourceClient
from runtime_e2e.logging import configure_logging


@pytest.fixture(scope="session")
def settings() -> HarnessSettings:
    """Harness settings loaded from the environment."""
    return HarnessSettings()


@pytest.fixture
def k8s_client(settings: HarnessSettings) -> KubernetesResourceClient:
    """Client for the configured cluster.

    Configures logging per test because the root conftest resets structlog
    after every test.
    """
    configure_logging(log_level=settings.log_level, json_output=settings.json_logs)
    return KubernetesResourceClient.from_settings(settings)
