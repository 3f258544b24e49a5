from __future__ import annotations

import inspect
import types
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, Any, Generic, TypeVar, get_type_hints

from dibox.markers import InjectedMarker, annotated_metadata, build_annotated

if TYPE_CHECKING:
    from dibox.container import Container

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class InjectedParameter:
    """Injected parameter metadata for callable wrapper generation."""

    name: str
    dependency: Any


@dataclass(frozen=True, slots=True)
class InjectedCallableInspection:
    """Injection metadata derived from a callable signature and annotations."""

    signature: inspect.Signature
    injected_parameters: tuple[InjectedParameter, ...]
    public_signature: inspect.Signature


@dataclass(slots=True)
class InjectedCallableInspector:
    """Inspect callables for Injected[...] parameters and public signature filtering."""

    def inspect_callable(self, callable_obj: Callable[..., Any]) -> InjectedCallableInspection:
        """Build injection metadata and a public signature for a callable."""
        signature = inspect.signature(callable_obj)
        injected_parameters = self.extract_injected_parameters(callable_obj=callable_obj)
        public_signature = self.build_public_injected_signature(
            signature=signature,
            hidden_parameter_names={parameter.name for parameter in injected_parameters},
        )
        return InjectedCallableInspection(
            signature=signature,
            injected_parameters=injected_parameters,
            public_signature=public_signature,
        )

    def extract_injected_parameters(
        self,
        *,
        callable_obj: Callable[..., Any],
    ) -> tuple[InjectedParameter, ...]:
        """Extract injected parameter metadata from a callable."""
        signature = inspect.signature(callable_obj)
        resolved_annotations = self.resolved_annotations_for_injection(callable_obj=callable_obj)
        injected_parameters: list[InjectedParameter] = []
        for parameter in signature.parameters.values():
            annotation = resolved_annotations.get(parameter.name, parameter.annotation)
            dependency = self.resolve_injected_dependency(annotation=annotation)
            if dependency is None:
                continue
            injected_parameters.append(
                InjectedParameter(
                    name=parameter.name,
                    dependency=dependency,
                ),
            )

        return tuple(injected_parameters)

    def resolved_annotations_for_injection(
        self,
        *,
        callable_obj: Callable[..., Any],
    ) -> dict[str, Any]:
        """Resolve callable annotations with extras, falling back to an empty mapping."""
        try:
            return get_type_hints(callable_obj, include_extras=True)
        except (AttributeError, NameError, TypeError):
            return {}

    def resolve_injected_dependency(self, *, annotation: Any) -> Any | None:
        """Resolve Injected[...] annotations to dependency keys."""
        if annotation is inspect.Signature.empty or isinstance(annotation, str):
            return None
        split = annotated_metadata(annotation)
        if split is None:
            return None

        parameter_type, metadata = split
        if not any(isinstance(item, InjectedMarker) for item in metadata):
            return None

        filtered_metadata = tuple(item for item in metadata if not isinstance(item, InjectedMarker))
        if not filtered_metadata:
            return parameter_type
        return build_annotated((parameter_type, *filtered_metadata))

    def build_public_injected_signature(
        self,
        *,
        signature: inspect.Signature,
        hidden_parameter_names: set[str],
    ) -> inspect.Signature:
        """Build a signature that hides injected parameters."""
        filtered_parameters = [
            parameter
            for parameter in signature.parameters.values()
            if parameter.name not in hidden_parameter_names
        ]
        return signature.replace(parameters=filtered_parameters)


class InjectedFunction(Generic[T]):
    """A callable wrapper that resolves ``Injected[...]`` parameters on each call.

    This ensures transient dependencies are created fresh on every invocation,
    while singletons are still shared as expected. With ``scope`` set, each
    call runs inside a new scope of that name, so scoped dependencies are
    shared within one call and torn down after it.

    Annotations are inspected lazily on the first call to support
    ``from __future__ import annotations`` with names defined later.
    """

    def __init__(
        self,
        func: Callable[..., T],
        container: Container,
        inspector: InjectedCallableInspector,
        scope: str | None = None,
        inspection: InjectedCallableInspection | None = None,
    ) -> None:
        self._func = func
        self._container = container
        self._inspector = inspector
        self._scope = scope
        self._injected_parameters: tuple[InjectedParameter, ...] | None = None

        wraps(func)(self)
        self.__name__: str = getattr(func, "__name__", repr(func))
        self.__wrapped__: Callable[..., T] = func
        if inspection is None:
            self._signature = inspect.signature(func)
            self.__signature__ = self._build_public_signature(func)
        else:
            self._signature = inspection.signature
            self._injected_parameters = inspection.injected_parameters
            self.__signature__ = inspection.public_signature

    def _build_public_signature(self, func: Callable[..., Any]) -> inspect.Signature:
        hidden = {
            name
            for name, parameter in self._signature.parameters.items()
            if _looks_injected(parameter.annotation)
        }
        hidden.update(
            parameter.name
            for parameter in self._inspector.extract_injected_parameters(callable_obj=func)
        )
        return self._inspector.build_public_injected_signature(
            signature=self._signature,
            hidden_parameter_names=hidden,
        )

    @property
    def injected_parameters(self) -> tuple[InjectedParameter, ...]:
        if self._injected_parameters is None:
            self._injected_parameters = self._inspector.extract_injected_parameters(
                callable_obj=self._func,
            )
        return self._injected_parameters

    def __call__(self, *args: Any, **kwargs: Any) -> T:
        """Call the wrapped function, resolving injected dependencies fresh each time.

        Positional arguments bind against the public signature, so they fill the
        visible parameters even when injected ones come first.
        """
        injected_names = {parameter.name for parameter in self.injected_parameters}
        explicit = {name: kwargs.pop(name) for name in injected_names & kwargs.keys()}
        bound = self.__signature__.bind_partial(*args, **kwargs)
        if self._scope is None:
            return self._call_bound(bound.arguments, explicit)
        with self._container.enter_scope(self._scope):
            return self._call_bound(bound.arguments, explicit)

    def _call_bound(self, arguments: dict[str, Any], explicit: dict[str, Any]) -> T:
        arguments = {**arguments, **explicit}
        for parameter in self.injected_parameters:
            if parameter.name not in arguments:
                arguments[parameter.name] = self._container.resolve(parameter.dependency)
        call = inspect.BoundArguments(self._signature, arguments)
        return self._func(*call.args, **call.kwargs)

    def __repr__(self) -> str:
        if self._scope is None:
            return f"InjectedFunction({self._func!r})"
        return f"InjectedFunction({self._func!r}, scope={self._scope!r})"

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        """Descriptor protocol to bind this callable to an instance when used as a method."""
        if obj is None:
            return self
        return types.MethodType(self, obj)


def _looks_injected(annotation: Any) -> bool:
    """Detect ``Injected[...]`` in string annotations (PEP 563) before names resolve."""
    if isinstance(annotation, str):
        return annotation.startswith("Injected[")
    return False
