"""Namespace-scoped test context with a LIFO cleanup stack.

A TestContext owns exactly one namespace for its lifetime and the stack of
cleanup tasks that reclaim everything created through it. The namespace is
created when the context is, and its deletion is the first task registered,
so it runs last.

Teardown is best-effort. Tasks run in strict reverse registration order,
each failure is logged and collected, and no failure stops earlier tasks
from running. ``cleanup()`` never raises and is safe to call more than once.
Using the context as a context manager guarantees cleanup on every exit path.

Example:
    with TestContext.create(client, prefix="pull-policy") as ctx:
        ctx.create_component(make_basic_runtime_component("r1", ctx.namespace))
        ...
    # r1 deleted, then the namespace deleted
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from types import TracebackType

import structlog

from runtime_e2e.client import ResourceClient
from runtime_e2e.config import PollConfig
from runtime_e2e.errors import NotFoundError
from runtime_e2e.fixtures.namespaces import generate_unique_namespace, require_valid_namespace
from runtime_e2e.fixtures.polling import wait_until
from runtime_e2e.models import RuntimeComponent

logger = structlog.get_logger(__name__)

DEFAULT_CLEANUP_CONFIG = PollConfig(
    retry_interval=1.0,
    timeout=60.0,
    description="resource deletion",
)


@dataclass(frozen=True)
class CleanupTask:
    """A registered teardown action.

    Attributes:
        index: Registration order, starting at 0.
        description: What the task reclaims, for logs.
        action: Idempotent no-argument callable.
    """

    index: int
    description: str
    action: Callable[[], None] = field(repr=False)


@dataclass(frozen=True)
class CleanupFailure:
    """A cleanup task that raised."""

    task: CleanupTask
    error: Exception


class TestContext:
    """Owns a test namespace and the cleanup stack for it.

    Only the context pushes and pops its stack. Resources that need
    teardown are created through the context (create_component) or
    registered explicitly (register_cleanup).

    Attributes:
        namespace: The namespace owned by this context.
        client: ResourceClient bound to that namespace.
    """

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        client: ResourceClient,
        namespace: str,
        *,
        cleanup_config: PollConfig = DEFAULT_CLEANUP_CONFIG,
    ) -> None:
        """Wrap an existing namespace. Prefer create().

        The namespace is not created here. The caller that created it is
        expected to register its deletion.

        Raises:
            InvalidNamespaceError: If ``namespace`` is not a valid DNS label.
        """
        require_valid_namespace(namespace)
        self._client = client.for_namespace(namespace)
        self._namespace = namespace
        self._cleanup_config = cleanup_config
        self._tasks: list[CleanupTask] = []
        self._registered = 0

    @classmethod
    def create(
        cls,
        client: ResourceClient,
        *,
        prefix: str = "runtime-e2e",
        cleanup_config: PollConfig = DEFAULT_CLEANUP_CONFIG,
    ) -> TestContext:
        """Provision a fresh namespace and an empty cleanup stack.

        The namespace's deletion is registered as the first task.

        Args:
            client: Any ResourceClient; it is rebound to the new namespace.
            prefix: Namespace name prefix.
            cleanup_config: Polling used by tasks that wait for deletion.

        Returns:
            The new context.
        """
        namespace = generate_unique_namespace(prefix)
        client.create_namespace(namespace)
        ctx = cls(client, namespace, cleanup_config=cleanup_config)
        ctx.register_cleanup(
            lambda: _ignore_not_found(client.delete_namespace, namespace),
            f"namespace {namespace}",
        )
        logger.info("context_created", namespace=namespace)
        return ctx

    @property
    def namespace(self) -> str:
        """Namespace owned by this context."""
        return self._namespace

    @property
    def client(self) -> ResourceClient:
        """ResourceClient bound to this context's namespace."""
        return self._client

    @property
    def pending_tasks(self) -> tuple[CleanupTask, ...]:
        """Registered tasks not yet run, in registration order."""
        return tuple(self._tasks)

    def register_cleanup(self, action: Callable[[], None], description: str) -> CleanupTask:
        """Push a cleanup task.

        Args:
            action: Idempotent no-argument callable.
            description: What it reclaims, for logs.

        Returns:
            The registered task.
        """
        task = CleanupTask(index=self._registered, description=description, action=action)
        self._registered += 1
        self._tasks.append(task)
        return task

    def create_component(self, component: RuntimeComponent) -> None:
        """Create a RuntimeComponent and register its teardown.

        The teardown deletes the resource (already gone counts as success) and
        then waits until the API server no longer returns it.

        Raises:
            AlreadyExistsError: If the name is taken. Nothing is registered.
        """
        self._client.create(component)
        name = component.name
        self.register_cleanup(
            lambda: self._delete_and_wait(name),
            f"runtimecomponent {name}",
        )

    def _delete_and_wait(self, name: str) -> None:
        _ignore_not_found(self._client.delete, name)

        def gone() -> bool:
            try:
                self._client.get(name)
            except NotFoundError:
                return True
            return False

        wait_until(gone, self._cleanup_config.describe(f"deletion of {name}"))

    def cleanup(self) -> list[CleanupFailure]:
        """Run every pending task in reverse registration order.

        Never raises. Failures are logged and returned so callers can report
        them. A second call finds the stack empty and returns [].

        Returns:
            The tasks that raised, in execution order.
        """
        failures: list[CleanupFailure] = []
        while self._tasks:
            task = self._tasks.pop()
            try:
                task.action()
            except Exception as e:
                logger.warning(
                    "cleanup_task_failed",
                    namespace=self._namespace,
                    task=task.description,
                    index=task.index,
                    error=str(e),
                )
                failures.append(CleanupFailure(task=task, error=e))
            else:
                logger.debug(
                    "cleanup_task_done",
                    namespace=self._namespace,
                    task=task.description,
                    index=task.index,
                )
        return failures

    def __enter__(self) -> TestContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()


def _ignore_not_found(delete: Callable[[str], None], name: str) -> None:
    try:
        delete(name)
    except NotFoundError:
        logger.debug("already_deleted", name=name)


__all__ = [
    "CleanupFailure",
    "CleanupTask",
    "TestContext",
]
