from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dibox.service_key import ServiceKey
from dibox.types import Factory, Lifetime


@dataclass(frozen=True, slots=True)
class Reference:
    """An explicit argument resolved from the container at build time.

    Use inside ``arguments=`` to point a parameter at a specific service,
    typically a named one: ``arguments={"transport": Reference("smtp")}``.
    """

    key: Any


@dataclass(kw_only=True, slots=True)
class Registration:
    """A single entry in the container registry.

    Exactly one way of producing the service applies, checked in this order:
    ``instance``, ``factory``, ``concrete_type``, then ``service_key.value``
    itself when it is a class.
    """

    service_key: ServiceKey
    factory: Factory | None = None
    instance: Any | None = None
    lifetime: Lifetime = Lifetime.TRANSIENT
    scope: str | None = None
    concrete_type: type | None = None
    pass_container: bool = False
    arguments: dict[str, Any] = field(default_factory=dict)
    autowire: bool = True
    has_instance: bool = False

    @property
    def instantiation_target(self) -> Any:
        """Return the callable that builds the service."""
        if self.factory is not None:
            return self.factory
        if self.concrete_type is not None:
            return self.concrete_type
        return self.service_key.value
