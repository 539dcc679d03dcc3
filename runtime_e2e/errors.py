"""Exception hierarchy for the runtime-component convergence harness.

Every exception raised by the harness inherits from HarnessError, so callers
can catch all harness errors with a single except clause. Each class carries a
``fatal`` flag that the poller uses to decide whether an error raised by a
condition aborts polling immediately or is retried until timeout.

Exception Hierarchy:
    HarnessError (base)
    ├── NotFoundError                  (transient)
    ├── AlreadyExistsError
    ├── ConflictError
    ├── NotConvergedError              (transient)
    ├── VerificationFailure            (fatal)
    ├── PreconditionUnmetError         (fatal)
    ├── MalformedResponseError         (fatal)
    ├── AccessDeniedError              (wraps PermissionError)
    ├── ClusterApiError
    ├── ClusterUnavailableError        (wraps ConnectionError)
    └── ScenarioStepError
    PollingTimeoutError (TimeoutError + HarnessError)

Example:
    >>> from runtime_e2e.errors import NotFoundError
    >>> raise NotFoundError("deployment", "example-runtime", namespace="rt-1a2b")
    NotFoundError: deployment 'example-runtime' not found in namespace 'rt-1a2b'
"""

from __future__ import annotations

from typing import Any


class HarnessError(Exception):
    """Base exception for all harness errors.

    Attributes:
        message: Human-readable error message.
        fatal: Class-level flag. When True, the poller stops retrying as soon
            as a condition raises this error.
    """

    fatal: bool = False

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class NotFoundError(HarnessError):
    """Raised when a resource or derived object does not exist.

    Transient while waiting for the controller to create something, and the
    expected terminal state when waiting for something to disappear.

    Attributes:
        kind: Kind of the missing object (e.g. "deployment").
        name: Name of the missing object.
        namespace: Namespace that was searched.
    """

    def __init__(self, kind: str, name: str, *, namespace: str = "") -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        message = f"{kind} '{name}' not found"
        if namespace:
            message = f"{message} in namespace '{namespace}'"
        super().__init__(message)


class AlreadyExistsError(HarnessError):
    """Raised when creating a resource whose name is already taken."""

    def __init__(self, kind: str, name: str, *, namespace: str = "") -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        message = f"{kind} '{name}' already exists"
        if namespace:
            message = f"{message} in namespace '{namespace}'"
        super().__init__(message)


class ConflictError(HarnessError):
    """Raised when a read-modify-write loses a race with another writer.

    The client surfaces this and never retries. Retrying is a caller
    decision.
    """

    def __init__(self, kind: str, name: str, *, reason: str = "") -> None:
        self.kind = kind
        self.name = name
        self.reason = reason
        message = f"Conflict updating {kind} '{name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NotConvergedError(HarnessError):
    """Raised by conditions whose observed value does not match yet.

    Always transient. When polling times out, it ends up as the timeout's
    ``last_error`` and shows what was last observed.

    Attributes:
        subject: What was being observed (e.g. "pull policy").
        expected: Value the condition waits for.
        observed: Value seen on the last read.
    """

    def __init__(self, subject: str, *, expected: Any, observed: Any) -> None:
        self.subject = subject
        self.expected = expected
        self.observed = observed
        super().__init__(f"{subject}: expected {expected!r}, observed {observed!r}")


class VerificationFailure(HarnessError):
    """Raised when state converged but the observed value is wrong.

    Always fatal to the scenario.
    """

    fatal = True


class PreconditionUnmetError(HarnessError):
    """Raised when a required platform capability is absent.

    Scenarios report this as a skip, not a failure.
    """

    fatal = True


class MalformedResponseError(HarnessError):
    """Raised when the API server returns an object missing required fields."""

    fatal = True

    def __init__(self, kind: str, name: str, *, reason: str) -> None:
        self.kind = kind
        self.name = name
        self.reason = reason
        super().__init__(f"Malformed {kind} '{name}': {reason}")


class AccessDeniedError(HarnessError, PermissionError):
    """Raised when the service account lacks permission for an operation."""

    fatal = True

    def __init__(self, operation: str, kind: str, *, namespace: str = "", reason: str = "") -> None:
        self.operation = operation
        self.kind = kind
        self.namespace = namespace
        self.reason = reason
        message = f"Access denied to {operation} {kind}"
        if namespace:
            message = f"{message} in namespace '{namespace}'"
        if reason:
            message = f"{message}: {reason}"
        HarnessError.__init__(self, message)


class ClusterApiError(HarnessError):
    """Raised for unexpected Kubernetes API responses.

    Attributes:
        status: HTTP status returned by the API server (0 if unknown).
    """

    def __init__(self, operation: str, kind: str, *, status: int = 0, reason: str = "") -> None:
        self.operation = operation
        self.kind = kind
        self.status = status
        self.reason = reason
        message = f"Kubernetes API error during {operation} {kind}"
        if status:
            message = f"{message} (HTTP {status})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ClusterUnavailableError(HarnessError, ConnectionError):
    """Raised when the Kubernetes API server cannot be reached or configured."""

    fatal = True

    def __init__(self, *, reason: str = "") -> None:
        self.reason = reason
        message = "Kubernetes API server unavailable"
        if reason:
            message = f"{message}: {reason}"
        HarnessError.__init__(self, message)


class PollingTimeoutError(HarnessError, TimeoutError):
    """Raised when a condition is not met within the polling budget.

    Attributes:
        description: What was being waited for.
        timeout: How long we waited.
        attempts: Number of times the condition was evaluated.
        last_error: Last exception raised by the condition (if any).
    """

    fatal = True

    def __init__(
        self,
        description: str,
        timeout: float,
        last_error: Exception | None = None,
        *,
        attempts: int = 0,
    ) -> None:
        self.description = description
        self.timeout = timeout
        self.last_error = last_error
        self.attempts = attempts
        message = f"Timeout waiting for {description} after {timeout:.1f}s"
        if last_error:
            message += f" (last error: {last_error})"
        HarnessError.__init__(self, message)


class ScenarioStepError(HarnessError):
    """Raised when a scenario step fails, naming the step.

    Attributes:
        scenario: Scenario name.
        step: Name of the step that failed.
        cause: The underlying error (timeout, verification failure, ...).
    """

    fatal = True

    def __init__(self, scenario: str, step: str, cause: Exception) -> None:
        self.scenario = scenario
        self.step = step
        self.cause = cause
        super().__init__(f"{scenario} failed at step '{step}': {cause}")

    @property
    def timed_out(self) -> bool:
        """Whether the step failed because convergence was never observed."""
        return isinstance(self.cause, PollingTimeoutError)


__all__ = [
    "AccessDeniedError",
    "AlreadyExistsError",
    "ClusterApiError",
    "ClusterUnavailableError",
    "ConflictError",
    "HarnessError",
    "MalformedResponseError",
    "NotConvergedError",
    "NotFoundError",
    "PollingTimeoutError",
    "PreconditionUnmetError",
    "ScenarioStepError",
    "VerificationFailure",
]
