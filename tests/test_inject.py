"""Tests for function injection with ``Injected[...]`` parameters."""

import inspect
from collections.abc import Generator
from typing import Annotated

import pytest

from dibox.container import Container
from dibox.injection import InjectedCallableInspector, InjectedFunction
from dibox.markers import Component, Injected, InjectedMarker, Named
from dibox.types import Lifetime


class Clock:
    def now(self) -> str:
        return "12:00"


class Greeter:
    def __init__(self, clock: Clock) -> None:
        self.clock = clock

    def greet(self, name: str) -> str:
        return f"Hello, {name} at {self.clock.now()}"


class TestInjectedMarker:
    def test_injected_is_annotated_with_marker(self) -> None:
        hint = Injected[Clock]

        assert hint.__origin__ is Clock
        assert any(isinstance(item, InjectedMarker) for item in hint.__metadata__)

    def test_injected_keeps_existing_metadata(self) -> None:
        hint = Injected[Annotated[Clock, Component("utc")]]

        assert hint.__metadata__[0] == Component("utc")
        assert isinstance(hint.__metadata__[-1], InjectedMarker)


class TestInject:
    def test_resolves_injected_parameters(self, container: Container) -> None:
        @container.inject
        def greet(name: str, greeter: Injected[Greeter]) -> str:
            return greeter.greet(name)

        assert greet("Ada") == "Hello, Ada at 12:00"
        assert isinstance(greet, InjectedFunction)

    def test_public_signature_hides_injected_parameters(self, container: Container) -> None:
        @container.inject
        def greet(name: str, greeter: Injected[Greeter]) -> str:
            return greeter.greet(name)

        assert tuple(inspect.signature(greet).parameters) == ("name",)
        assert greet.__name__ == "greet"
        assert greet.__wrapped__.__name__ == "greet"

    def test_explicit_keyword_overrides_injection(self, container: Container) -> None:
        class FixedClock(Clock):
            def now(self) -> str:
                return "00:00"

        @container.inject
        def now(clock: Injected[Clock]) -> str:
            return clock.now()

        assert now(clock=FixedClock()) == "00:00"

    def test_positional_arguments_skip_leading_injected_parameters(
        self,
        container: Container,
    ) -> None:
        @container.inject
        def stamp(clock: Injected[Clock], label: str, suffix: str = "!") -> str:
            return f"{label} {clock.now()}{suffix}"

        assert stamp("lunch") == "lunch 12:00!"
        assert stamp("lunch", "?") == "lunch 12:00?"
        assert stamp("lunch", suffix=".") == "lunch 12:00."

    def test_positional_arguments_with_var_args(self, container: Container) -> None:
        @container.inject
        def join(clock: Injected[Clock], *parts: str, sep: str = "-") -> str:
            return sep.join((*parts, clock.now()))

        assert join("a", "b") == "a-b-12:00"
        assert join("a", sep="+") == "a+12:00"

    def test_too_many_positional_arguments_raise_type_error(
        self,
        container: Container,
    ) -> None:
        @container.inject
        def stamp(clock: Injected[Clock], label: str) -> str:
            return label

        with pytest.raises(TypeError):
            stamp("lunch", "extra")

    def test_transient_dependencies_are_fresh_per_call(self, container: Container) -> None:
        @container.inject
        def get_clock(clock: Injected[Clock]) -> Clock:
            return clock

        assert get_clock() is not get_clock()

    def test_named_injection(self, container: Container) -> None:
        container.set("clock", lambda c: Clock(), lifetime=Lifetime.SINGLETON)

        @container.inject
        def get_clock(clock: Injected[Annotated[Clock, Named("clock")]]) -> Clock:
            return clock

        assert get_clock() is container.get("clock")

    def test_scope_per_call(self, container: Container) -> None:
        events: list[str] = []

        class Session:
            pass

        def open_session() -> Generator[Session, None, None]:
            events.append("open")
            yield Session()
            events.append("close")

        container.register(
            Session,
            factory=open_session,
            lifetime=Lifetime.SCOPED,
            scope="request",
        )

        @container.inject(scope="request")
        def handle(first: Injected[Session], second: Injected[Session]) -> bool:
            return first is second

        assert handle() is True
        assert events == ["open", "close"]
        assert container.current_scope is None

    def test_method_injection(self, container: Container) -> None:
        class Controller:
            @container.inject
            def handle(self, name: str, greeter: Injected[Greeter]) -> str:
                return greeter.greet(name)

        assert Controller().handle("Bob") == "Hello, Bob at 12:00"

    def test_repr(self, container: Container) -> None:
        def handle(clock: Injected[Clock]) -> None:
            pass

        assert repr(container.inject(handle)).startswith("InjectedFunction(")
        assert "scope='request'" in repr(container.inject(scope="request")(handle))


class TestInjectedCallableInspector:
    def test_finds_only_injected_parameters(self) -> None:
        def handler(value: int, clock: Injected[Clock], other: Clock) -> None:
            pass

        inspection = InjectedCallableInspector().inspect_callable(handler)

        assert [parameter.name for parameter in inspection.injected_parameters] == ["clock"]
        assert inspection.injected_parameters[0].dependency is Clock
        assert tuple(inspection.public_signature.parameters) == ("value", "other")

    @pytest.mark.parametrize("annotation", [int, "Injected[Clock]", inspect.Signature.empty])
    def test_non_injected_annotations(self, annotation: object) -> None:
        inspector = InjectedCallableInspector()

        assert inspector.resolve_injected_dependency(annotation=annotation) is None

    def test_keeps_component_metadata(self) -> None:
        inspector = InjectedCallableInspector()
        annotation = Injected[Annotated[Clock, Component("utc")]]

        dependency = inspector.resolve_injected_dependency(annotation=annotation)

        assert dependency == Annotated[Clock, Component("utc")]
