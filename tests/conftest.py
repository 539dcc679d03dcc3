"""Root-level test configuration for runtime-component-e2e.

Unit tests (tests/unit/) run against an in-memory cluster and need nothing
else. E2E tests (tests/e2e/) need a reachable cluster with the operator
installed and are deselected unless ``-m e2e`` is given.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
import structlog


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "e2e: End-to-end test requiring a cluster running the operator",
    )


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Keep logging configuration from leaking between tests."""
    yield
    structlog.reset_defaults()
