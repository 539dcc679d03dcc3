"""Configuration models for the convergence harness.

This module provides:
    PollConfig: Frozen timing parameters consumed by the poller.
    HarnessSettings: Environment-driven settings (prefix ``RUNTIME_E2E_``)
        from which each component receives an explicit PollConfig.

Settings are passed into components explicitly rather than read from
process-wide state, so scenarios can run in parallel and the poller can be
unit tested in isolation.

Example:
    >>> settings = HarnessSettings(retry_interval=1.0, timeout=30.0)
    >>> settings.poll_config("deployment ready").timeout
    30.0
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self

from runtime_e2e.fixtures.namespaces import require_valid_namespace

DEFAULT_OPERATOR_DEPLOYMENT = "runtime-component-operator"
DEFAULT_OPERATOR_NAMESPACE = "runtime-component-operator"
DEFAULT_SERVING_NAMESPACE = "knative-serving"
DEFAULT_APPLICATION_IMAGE = "navidsh/demo-day"


class PollConfig(BaseModel):
    """Timing parameters for a polling operation.

    Attributes:
        retry_interval: Seconds between condition evaluations.
        timeout: Maximum wait time in seconds. Must exceed retry_interval so
            that more than one evaluation fits in the budget.
        description: Description for log events and error messages.

    Example:
        >>> config = PollConfig(retry_interval=0.5, timeout=10.0)
        >>> config.description
        'condition'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    retry_interval: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds between condition evaluations",
    )
    timeout: float = Field(
        default=240.0,
        gt=0.0,
        description="Maximum wait time in seconds",
    )
    description: str = Field(
        default="condition",
        min_length=1,
        description="Description for error messages",
    )

    @model_validator(mode="after")
    def check_timeout_exceeds_interval(self) -> Self:
        """Reject configurations where the timeout cannot fit a retry.

        Returns:
            The validated config.

        Raises:
            ValueError: If timeout <= retry_interval.
        """
        if self.timeout <= self.retry_interval:
            msg = (
                f"timeout ({self.timeout}s) must be greater than "
                f"retry_interval ({self.retry_interval}s)"
            )
            raise ValueError(msg)
        return self

    def describe(self, description: str) -> PollConfig:
        """Return a copy of this config with a different description."""
        return self.model_copy(update={"description": description})


class HarnessSettings(BaseSettings):
    """Settings for a harness run.

    Loads from environment variables prefixed with ``RUNTIME_E2E_`` (for
    example ``RUNTIME_E2E_TIMEOUT=300``) and from a local ``.env`` file.

    Timing defaults follow the operator's own end-to-end suite: five second
    retries, a four minute budget per convergence, three minutes for the
    operator itself to come up.
    """

    model_config = SettingsConfigDict(
        env_prefix="RUNTIME_E2E_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # Polling
    retry_interval: float = Field(default=5.0, gt=0.0, description="Seconds between polls")
    timeout: float = Field(default=240.0, gt=0.0, description="Per-step convergence budget")
    operator_timeout: float = Field(
        default=180.0,
        gt=0.0,
        description="Budget for the operator deployment to become available",
    )
    cleanup_retry_interval: float = Field(default=1.0, gt=0.0)
    cleanup_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Budget for a deleted resource to disappear during cleanup",
    )
    update_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Budget for retrying conflicting spec updates",
    )
    service_deletion_grace: float = Field(
        default=0.0,
        ge=0.0,
        description=(
            "Seconds to poll for Knative Service removal after the plain "
            "deployment is ready. 0 checks exactly once."
        ),
    )

    # Operator under test
    operator_deployment: str = Field(default=DEFAULT_OPERATOR_DEPLOYMENT, min_length=1)
    operator_namespace: str = Field(
        default=DEFAULT_OPERATOR_NAMESPACE,
        description="Namespace the operator is installed in",
    )
    operator_replicas: int = Field(default=1, ge=1)

    # Cluster
    serving_namespace: str = Field(default=DEFAULT_SERVING_NAMESPACE)
    application_image: str = Field(default=DEFAULT_APPLICATION_IMAGE, min_length=1)
    kubeconfig_path: str | None = Field(default=None)
    context: str | None = Field(default=None)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logs: bool = False

    @field_validator("operator_namespace", "serving_namespace")
    @classmethod
    def check_namespace(cls, v: str) -> str:
        """Reject names the API server would refuse."""
        return require_valid_namespace(v)

    @field_validator("kubeconfig_path")
    @classmethod
    def expand_kubeconfig_path(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        if v is None:
            return None
        return str(Path(v).expanduser())

    def poll_config(self, description: str = "condition") -> PollConfig:
        """Per-step convergence polling."""
        return PollConfig(
            retry_interval=self.retry_interval,
            timeout=self.timeout,
            description=description,
        )

    def operator_poll_config(self) -> PollConfig:
        """Polling for the operator readiness precondition."""
        return PollConfig(
            retry_interval=self.retry_interval,
            timeout=self.operator_timeout,
            description=f"operator deployment {self.operator_deployment}",
        )

    def cleanup_poll_config(self) -> PollConfig:
        """Polling used by cleanup tasks waiting for deletion."""
        return PollConfig(
            retry_interval=self.cleanup_retry_interval,
            timeout=self.cleanup_timeout,
            description="resource deletion",
        )

    def update_poll_config(self) -> PollConfig:
        """Polling used to retry conflicting updates."""
        return PollConfig(
            retry_interval=min(self.retry_interval, self.update_timeout / 2),
            timeout=self.update_timeout,
            description="spec update",
        )

    def service_deletion_poll_config(self) -> PollConfig | None:
        """Polling for Knative Service removal, or None for a single check."""
        if self.service_deletion_grace <= 0:
            return None
        return PollConfig(
            retry_interval=min(self.retry_interval, self.service_deletion_grace / 2),
            timeout=self.service_deletion_grace,
            description="knative service removal",
        )


__all__ = [
    "DEFAULT_APPLICATION_IMAGE",
    "DEFAULT_OPERATOR_DEPLOYMENT",
    "DEFAULT_OPERATOR_NAMESPACE",
    "DEFAULT_SERVING_NAMESPACE",
    "HarnessSettings",
    "PollConfig",
]
