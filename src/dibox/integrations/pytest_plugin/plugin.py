from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, cast

import pytest

from dibox.container import Container
from dibox.injection import (
    InjectedCallableInspection,
    InjectedCallableInspector,
    InjectedFunction,
)

_CONTAINER_ATTR = "_dibox_container"
_SCOPE_ATTR = "_dibox_scope"
_INSPECTION_ATTR = "__dibox_inspection__"
_INSPECTOR = InjectedCallableInspector()


@pytest.fixture()
def dibox_container() -> Iterator[Container]:
    """Create a per-test container used by the plugin.

    Tests that use ``Injected[...]`` parameters resolve them from this
    container. Override the fixture to add registrations. The container is
    closed after the test, so singleton teardowns run.

    Yields:
        A new ``Container`` instance.

    """
    container = Container()
    yield container
    container.close()


@pytest.fixture()
def dibox_scope() -> str | None:
    """Name of the scope each injected test runs in; ``None`` disables the scope."""
    return "test"


@pytest.fixture(autouse=True)
def _dibox_state(
    request: pytest.FixtureRequest,
    dibox_container: Container,
    dibox_scope: str | None,
) -> None:
    """Store plugin state on the test node for hook access."""
    node = cast("Any", request.node)
    setattr(node, _CONTAINER_ATTR, dibox_container)
    setattr(node, _SCOPE_ATTR, dibox_scope)


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Show pytest only the parameters it should treat as fixtures.

    The inspection is kept on the test function, and ``__signature__`` is
    replaced with the public signature without ``Injected[...]`` parameters.
    Returns ``None`` so pytest collects the item as usual.
    """
    if not callable(obj) or not collector.istestfunction(obj, name):
        return None

    inspection = _INSPECTOR.inspect_callable(cast("Callable[..., Any]", obj))
    if not inspection.injected_parameters:
        return None

    test_function = cast("Any", obj)
    test_function.__dict__[_INSPECTION_ATTR] = inspection
    test_function.__signature__ = inspection.public_signature
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Run the test through an ``InjectedFunction`` bound to the test's container."""
    test_function = cast("Callable[..., Any]", pyfuncitem.obj)
    container = cast("Container | None", getattr(pyfuncitem, _CONTAINER_ATTR, None))
    inspection = _collected_inspection(test_function)
    if container is None or not inspection.injected_parameters:
        yield
        return

    pyfuncitem.obj = InjectedFunction(
        test_function,
        container=container,
        inspector=_INSPECTOR,
        scope=cast("str | None", getattr(pyfuncitem, _SCOPE_ATTR, None)),
        inspection=inspection,
    )
    try:
        yield
    finally:
        pyfuncitem.obj = test_function


def _collected_inspection(test_function: Callable[..., Any]) -> InjectedCallableInspection:
    # Bound methods forward attribute lookups to the collected function.
    inspection = getattr(test_function, _INSPECTION_ATTR, None)
    if inspection is None:
        return _INSPECTOR.inspect_callable(test_function)
    return cast("InjectedCallableInspection", inspection)
