from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dibox.markers import Component, InjectedMarker, Named, annotated_metadata, build_annotated


@dataclass(frozen=True, slots=True)
class ServiceKey:
    """Normalized registry key.

    ``value`` is a service name (``str``), a class, or any other hashable
    object such as a function. ``component`` tells apart several
    registrations of the same type.
    """

    value: Any
    component: Component | None = None

    @classmethod
    def from_value(cls, value: Any) -> ServiceKey:
        """Build a key from a name, a type, or an ``Annotated`` hint."""
        if isinstance(value, ServiceKey):
            return value

        split = annotated_metadata(value)
        if split is None:
            return cls(value=value)

        inner, metadata = split
        component: Component | None = None
        passthrough: list[Any] = []
        for item in metadata:
            if isinstance(item, Named):
                return cls(value=item.name)
            if isinstance(item, Component):
                component = item
            elif not isinstance(item, InjectedMarker):
                passthrough.append(item)

        if passthrough:
            # Unknown metadata stays part of the key, as in Annotated[int, "x"].
            inner = build_annotated((inner, *passthrough))
        return cls(value=inner, component=component)

    @property
    def is_named(self) -> bool:
        return isinstance(self.value, str)

    def __str__(self) -> str:
        if isinstance(self.value, str):
            base = repr(self.value)
        else:
            base = getattr(self.value, "__qualname__", None) or repr(self.value)
        if self.component is not None:
            return f"{base}[component={self.component.value}]"
        return base
