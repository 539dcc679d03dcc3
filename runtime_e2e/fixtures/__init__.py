"""Foundational utilities shared by contexts, probes and scenarios.

Utilities:
    wait_until: Poll a condition until it holds, fails fatally, or times out
    generate_unique_namespace: Create an isolated namespace name
"""

from __future__ import annotations

from runtime_e2e.fixtures.namespaces import (
    InvalidNamespaceError,
    generate_unique_namespace,
    require_valid_namespace,
    validate_namespace,
)
from runtime_e2e.fixtures.polling import is_fatal_error, wait_until

__all__ = [
    # Polling utilities
    "is_fatal_error",
    "wait_until",
    # Namespace utilities
    "InvalidNamespaceError",
    "generate_unique_namespace",
    "require_valid_namespace",
    "validate_namespace",
]
