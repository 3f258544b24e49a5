import inspect
from dataclasses import dataclass
from types import FunctionType, MethodType
from typing import Any, get_type_hints

from dibox.exceptions import DIBoxDependencyExtractionError
from dibox.service_key import ServiceKey

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


@dataclass(frozen=True, slots=True)
class ParameterInfo:
    """Information about a constructor/function parameter.

    ``service_key`` is None for parameters without a type annotation.
    """

    name: str
    service_key: ServiceKey | None
    has_default: bool


class DependenciesExtractor:
    """Extract type-hinted dependencies from classes and functions."""

    def __init__(self) -> None:
        self._cache: dict[Any, tuple[ParameterInfo, ...]] = {}

    def get_parameters(self, target: Any) -> tuple[ParameterInfo, ...]:
        """Return every injectable parameter of ``target`` in declaration order.

        ``target`` is a class (its ``__init__`` is inspected) or any other
        callable. ``*args``/``**kwargs`` and ``self`` are never included.
        """
        try:
            cached = self._cache.get(target)
        except TypeError:
            cached = None
        if cached is not None:
            return cached

        service_key = ServiceKey.from_value(target)
        try:
            type_hints = get_type_hints(self._get_init_func(target), include_extras=True)
        except (TypeError, NameError) as e:
            raise DIBoxDependencyExtractionError(service_key, e) from e

        try:
            signature = inspect.signature(target)
        except (ValueError, TypeError):
            return ()

        result = tuple(
            ParameterInfo(
                name=name,
                service_key=(
                    ServiceKey.from_value(type_hints[name]) if name in type_hints else None
                ),
                has_default=parameter.default is not inspect.Parameter.empty,
            )
            for name, parameter in signature.parameters.items()
            if parameter.kind not in _SKIPPED_KINDS and name != "self"
        )
        try:
            self._cache[target] = result
        except TypeError:  # pragma: no cover - unhashable callables are not cached
            pass
        return result

    def get_dependencies(self, target: Any) -> dict[str, ServiceKey]:
        """Get all type-hinted dependencies keyed by parameter name."""
        return {
            info.name: info.service_key
            for info in self.get_parameters(target)
            if info.service_key is not None
        }

    def get_parameter_names(self, target: Any) -> list[str]:
        """Get parameter names in order, used to map positional arguments."""
        return [info.name for info in self.get_parameters(target)]

    def _get_init_func(self, target: Any) -> Any:
        if isinstance(target, FunctionType | MethodType):
            return target
        if isinstance(target, type):
            return target.__init__
        return getattr(target, "__call__", target)  # noqa: B004
