from collections.abc import Callable, Generator
from enum import Enum
from typing import Any, TypeAlias


class Lifetime(str, Enum):
    """Defines the lifetime of a service in the container."""

    TRANSIENT = "transient"
    """A new instance is created every time the service is requested."""

    SINGLETON = "singleton"
    """A single instance is created and shared for the lifetime of the container."""

    SCOPED = "scoped"
    """Instance is shared within a scope, different instances across scopes."""


FactoryReturn: TypeAlias = Any | Generator[Any, None, None]
"""Return type for factories, including generator factories."""

Factory: TypeAlias = Callable[..., FactoryReturn]
"""A class or callable that produces service instances."""

Resolver: TypeAlias = Callable[[Any], Any]
"""A callable that receives the container and returns a service."""
