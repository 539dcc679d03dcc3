"""Namespace naming for isolated harness runs.

Every TestContext owns one namespace for its lifetime, so scenarios running
in parallel never observe each other's resources. Generated names are a
normalized prefix plus a random suffix. Names supplied from outside (the
operator and Knative namespaces in settings, or a namespace handed to
TestContext) are checked against the RFC 1123 label rules before the API
server ever sees them.

Functions:
    generate_unique_namespace: Create a unique namespace name
    validate_namespace: Check a name against the DNS label rules
    require_valid_namespace: Same check, raising InvalidNamespaceError
"""

from __future__ import annotations

import re
import uuid

MAX_NAMESPACE_LENGTH = 63
SUFFIX_LENGTH = 8
DEFAULT_PREFIX = "runtime-e2e"
NAMESPACE_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class InvalidNamespaceError(ValueError):
    """Raised when a namespace name is not a valid DNS label."""

    def __init__(self, namespace: str, reason: str) -> None:
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"Invalid namespace '{namespace}': {reason}")


def _normalize_prefix(prefix: str) -> str:
    normalized = re.sub(r"[^a-z0-9-]", "", prefix.lower().replace("_", "-"))
    normalized = re.sub(r"-{2,}", "-", normalized).strip("-")
    max_prefix_length = MAX_NAMESPACE_LENGTH - SUFFIX_LENGTH - 1
    return normalized[:max_prefix_length].rstrip("-")


def generate_unique_namespace(prefix: str = DEFAULT_PREFIX) -> str:
    """Generate a unique namespace name.

    The prefix is lowercased, underscores become hyphens, other invalid
    characters are dropped, and it is truncated so the result fits in 63
    characters. If nothing valid remains the default prefix is used, so the
    result is always a valid label.

    Example:
        >>> generate_unique_namespace("pull_policy").startswith("pull-policy-")
        True
    """
    normalized_prefix = _normalize_prefix(prefix) or DEFAULT_PREFIX
    return f"{normalized_prefix}-{uuid.uuid4().hex[:SUFFIX_LENGTH]}"


def validate_namespace(namespace: str) -> bool:
    """Check if a namespace name is a valid DNS label.

    Example:
        >>> validate_namespace("runtime-e2e-abc123")
        True
        >>> validate_namespace("Runtime_E2E")
        False
    """
    if not namespace or len(namespace) > MAX_NAMESPACE_LENGTH:
        return False
    return bool(NAMESPACE_PATTERN.match(namespace))


def require_valid_namespace(namespace: str) -> str:
    """Return ``namespace`` unchanged if it is a valid DNS label.

    Raises:
        InvalidNamespaceError: If it is empty, too long, or contains
            characters Kubernetes rejects.
    """
    if len(namespace) > MAX_NAMESPACE_LENGTH:
        raise InvalidNamespaceError(namespace, f"longer than {MAX_NAMESPACE_LENGTH} characters")
    if not validate_namespace(namespace):
        raise InvalidNamespaceError(
            namespace,
            "must be lowercase alphanumerics or '-', starting and ending alphanumeric",
        )
    return namespace


__all__ = [
    "DEFAULT_PREFIX",
    "InvalidNamespaceError",
    "MAX_NAMESPACE_LENGTH",
    "generate_unique_namespace",
    "require_valid_namespace",
    "validate_namespace",
]
