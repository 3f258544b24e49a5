from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dibox.service_key import ServiceKey


class DIBoxError(Exception):
    """Represent a base class for all dibox-specific failures.

    Catch this type when you want to handle any dibox error path without
    matching each concrete exception class individually.
    """


class DIBoxInvalidRegistrationError(DIBoxError):
    """Signal invalid registration arguments.

    Raised by ``Container.set``, ``Container.register``, ``Container.alias``
    and ``Container.factory`` when a key, resolver or lifetime combination
    cannot be stored.
    """


class DIBoxProvidesRequiresClassError(DIBoxInvalidRegistrationError):
    """Signal ``provides=...`` used with a key that cannot be instantiated."""

    def __init__(self, key: object, provides: object) -> None:
        self.key = key
        self.provides = provides
        super().__init__(
            f"Cannot register {key!r} as a provider of {provides!r}: "
            "the key must be a class when no factory or instance is given",
        )


class DIBoxServiceNotFoundError(DIBoxError):
    """Signal that a key has no registration and cannot be autowired.

    Raised by ``Container.get``/``Container.resolve``. The failing key is kept
    on ``service_key``.

    Typical fixes include registering the service explicitly (``set`` for
    named services, ``register`` for typed ones) or enabling autoregistration.
    """

    def __init__(self, service_key: ServiceKey) -> None:
        self.service_key = service_key
        super().__init__(f"Service {service_key} is not registered")


class DIBoxAutoRegistrationError(DIBoxServiceNotFoundError):
    """Base for keys that autowiring refuses to build."""

    reason = "cannot be autoregistered"

    def __init__(self, service_key: ServiceKey) -> None:
        self.service_key = service_key
        DIBoxError.__init__(self, f"Service {service_key} {self.reason}")


class DIBoxNotAClassError(DIBoxAutoRegistrationError):
    """Signal an autowiring attempt on a value that is not a class."""

    reason = "is not a class and is not registered"


class DIBoxIgnoredServiceError(DIBoxAutoRegistrationError):
    """Signal an autowiring attempt on a type from the ignore list."""

    reason = "is in the autoregister ignore list"


class DIBoxComponentSpecifiedError(DIBoxAutoRegistrationError):
    """Signal an autowiring attempt on a key that carries a component."""

    reason = "has a component specified and must be registered explicitly"


class DIBoxMissingDependenciesError(DIBoxError):
    """Signal that some constructor or factory dependencies could not be resolved."""

    def __init__(self, service_key: ServiceKey, missing: list[ServiceKey]) -> None:
        self.service_key = service_key
        self.missing = missing
        missing_repr = ", ".join(str(key) for key in missing)
        super().__init__(f"Cannot resolve {service_key}: missing dependencies {missing_repr}")


class DIBoxCircularDependencyError(DIBoxError):
    """Signal a dependency cycle.

    ``chain`` holds every key from the first occurrence of ``service_key`` on
    the resolution stack up to and including its repeated lookup.
    """

    def __init__(self, service_key: ServiceKey, chain: list[ServiceKey]) -> None:
        self.service_key = service_key
        self.chain = chain
        chain_repr = " -> ".join(str(key) for key in chain)
        super().__init__(f"Circular dependency detected: {chain_repr}")


class DIBoxDependencyExtractionError(DIBoxError):
    """Signal that type hints of a class or factory cannot be evaluated.

    Usually caused by forward references to names that are not importable
    from the module where the class is defined.
    """

    def __init__(self, service_key: ServiceKey, error: Exception) -> None:
        self.service_key = service_key
        self.error = error
        super().__init__(f"Failed to extract dependencies for {service_key}: {error}")


class DIBoxScopeMismatchError(DIBoxError):
    """Signal resolution outside the scope a service requires.

    Raised when a ``SCOPED`` service is requested with no matching active
    scope, or when a ``ScopedContainer`` is used after its block exited.

    Typical fix is wrapping the lookup in ``with container.enter_scope(...)``.
    """


class DIBoxGeneratorFactoryWithoutScopeError(DIBoxError):
    """Signal a non-singleton generator factory resolved outside any scope."""

    def __init__(self, service_key: ServiceKey) -> None:
        self.service_key = service_key
        super().__init__(
            f"Generator factory for {service_key} needs an active scope to run its teardown",
        )


class DIBoxGeneratorFactoryDidNotYieldError(DIBoxError):
    """Signal a generator factory that finished without yielding a value."""

    def __init__(self, service_key: ServiceKey) -> None:
        self.service_key = service_key
        super().__init__(f"Generator factory for {service_key} did not yield a value")


class DIBoxGeneratorFactoryYieldedMoreThanOnceError(DIBoxError):
    """Signal a generator factory that yielded again during teardown."""

    def __init__(self, service_key: ServiceKey) -> None:
        self.service_key = service_key
        super().__init__(f"Generator factory for {service_key} yielded more than once")


class DIBoxConfigurationError(DIBoxError):
    """Signal an invalid service definition document.

    Raised by ``dibox.config.load_services`` for unreadable YAML, unknown
    fields, unimportable targets and references to undefined parameters.
    """
