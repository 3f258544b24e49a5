from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from dibox.exceptions import DIBoxCircularDependencyError
from dibox.service_key import ServiceKey

# Stores (task_id, stack) to detect when the stack needs cloning for a new async task
_resolution_stack: ContextVar[tuple[int | None, list[ServiceKey]] | None] = ContextVar(
    "dibox_resolution_stack",
    default=None,
)


def _get_context_id() -> int | None:
    """Get an identifier for the current execution context.

    Returns the id of the current async task if running in an async context,
    or None if running in a sync context.
    """
    try:
        task = asyncio.current_task()
        return id(task) if task is not None else None
    except RuntimeError:
        return None


def _get_resolution_stack() -> list[ServiceKey]:
    """Get the current context's resolution stack.

    When called from a different async task than the one that created the stack,
    returns a cloned copy to ensure task isolation during parallel resolution.
    """
    current_task_id = _get_context_id()
    stored = _resolution_stack.get()

    if stored is None:
        stack: list[ServiceKey] = []
        _resolution_stack.set((current_task_id, stack))
        return stack

    owner_task_id, stack = stored

    if current_task_id is not None and owner_task_id != current_task_id:
        cloned_stack = list(stack)
        _resolution_stack.set((current_task_id, cloned_stack))
        return cloned_stack

    return stack


@contextmanager
def resolving(service_key: ServiceKey) -> Iterator[None]:
    """Push ``service_key`` for the duration of the block, rejecting cycles."""
    stack = _get_resolution_stack()
    if service_key in stack:
        start = stack.index(service_key)
        raise DIBoxCircularDependencyError(service_key, [*stack[start:], service_key])
    stack.append(service_key)
    try:
        yield
    finally:
        stack.pop()
