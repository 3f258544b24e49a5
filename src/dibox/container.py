from __future__ import annotations

import inspect
import itertools
import logging
import threading
import types
from collections.abc import Callable, Generator, Iterator, Mapping
from contextlib import ExitStack, contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    TypeVar,
    get_args,
    get_origin,
    get_type_hints,
    overload,
)

if TYPE_CHECKING:
    from typing_extensions import Self

from dibox.config import load_services
from dibox.defaults import (
    DEFAULT_AUTOREGISTER_IGNORES,
    DEFAULT_AUTOREGISTER_LIFETIME,
    DEFAULT_AUTOREGISTER_REGISTRATION_FACTORIES,
)
from dibox.dependencies import DependenciesExtractor
from dibox.exceptions import (
    DIBoxCircularDependencyError,
    DIBoxComponentSpecifiedError,
    DIBoxError,
    DIBoxGeneratorFactoryDidNotYieldError,
    DIBoxGeneratorFactoryWithoutScopeError,
    DIBoxGeneratorFactoryYieldedMoreThanOnceError,
    DIBoxIgnoredServiceError,
    DIBoxInvalidRegistrationError,
    DIBoxMissingDependenciesError,
    DIBoxNotAClassError,
    DIBoxProvidesRequiresClassError,
    DIBoxScopeMismatchError,
    DIBoxServiceNotFoundError,
)
from dibox.injection import InjectedCallableInspector, InjectedFunction
from dibox.registry import Reference, Registration
from dibox.resolution_stack import resolving
from dibox.scope import ScopeId, ScopeSegments
from dibox.service_key import ServiceKey
from dibox.settings import ContainerSettings
from dibox.types import Factory, Lifetime, Resolver

T = TypeVar("T", bound=Any)
F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)

_MISSING = object()
# Teardown owner for singletons: the container itself rather than a scope
_CONTAINER_OWNER: ScopeSegments = ()


def _finish_generator(generator: Generator[Any, None, None], service_key: ServiceKey) -> None:
    """Run the code after the single ``yield`` of a generator factory."""
    try:
        next(generator)
    except StopIteration:
        return
    generator.close()
    raise DIBoxGeneratorFactoryYieldedMoreThanOnceError(service_key)


@dataclass
class ScopedContainer:
    """A context manager for scoped dependency resolution.

    Returned by ``Container.enter_scope``. Lookups made through it, or through
    the container while the block is active, share ``SCOPED`` instances.
    """

    _container: Container
    _scope_id: ScopeId
    _token: Token[ScopeId | None] | None = field(default=None, init=False)
    _exited: bool = field(default=False, init=False)

    @property
    def scope_id(self) -> ScopeId:
        return self._scope_id

    def get(self, key: Any) -> Any:
        """Resolve a service within this scope."""
        if self._exited:
            msg = f"Scope {self._scope_id.path} has already exited; cannot resolve {key!r}"
            raise DIBoxScopeMismatchError(msg)
        return self._container.get(key)

    resolve = get

    def has(self, key: Any) -> bool:
        return self._container.has(key)

    def enter_scope(self, name: str | None = None) -> ScopedContainer:
        """Start a nested scope."""
        return self._container.enter_scope(name)

    def __enter__(self) -> Self:
        self._token = self._container._activate_scope(self._scope_id)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        if self._token is not None:
            self._container._deactivate_scope(self._token)
        self._exited = True
        self._container._clear_scope(self._scope_id)


class Container:
    """Dependency injection container for registering and resolving services.

    Services are keyed by name (``container.set("mailer", ...)``) or by type
    (``container.register(Mailer)``). Classes that are not registered are
    autowired from their constructor type hints unless ``autoregister`` is
    disabled.
    """

    # Class-level counter for generating unique scope IDs
    _scope_counter: ClassVar[itertools.count[int]] = itertools.count()

    __slots__ = (
        "_aliases",
        "_autoregister",
        "_autoregister_default_lifetime",
        "_autoregister_ignores",
        "_autoregister_registration_factories",
        "_current_scope",
        "_dependencies_extractor",
        "_exit_stack",
        "_injected_callable_inspector",
        "_instance_locks",
        "_instance_locks_lock",
        "_lock",
        "_lock_owners",
        "_lock_waiters",
        "_parameters",
        "_registry",
        "_scope_exit_stacks",
        "_scoped_instances",
        "_singletons",
    )

    def __init__(
        self,
        *,
        autoregister: bool = True,
        autoregister_ignores: set[Any] | None = None,
        autoregister_registration_factories: dict[type[Any], Callable[[Any], Registration]]
        | None = None,
        autoregister_default_lifetime: Lifetime = DEFAULT_AUTOREGISTER_LIFETIME,
    ) -> None:
        self._autoregister = autoregister
        self._autoregister_ignores = (
            set(DEFAULT_AUTOREGISTER_IGNORES)
            if autoregister_ignores is None
            else set(autoregister_ignores)
        )
        self._autoregister_registration_factories = (
            autoregister_registration_factories or DEFAULT_AUTOREGISTER_REGISTRATION_FACTORIES
        )
        self._autoregister_default_lifetime = Lifetime(autoregister_default_lifetime)

        self._registry: dict[ServiceKey, Registration] = {}
        self._aliases: dict[ServiceKey, ServiceKey] = {}
        self._parameters: dict[str, Any] = {}
        self._singletons: dict[ServiceKey, Any] = {}
        # (scope cache key, service key) -> instance
        self._scoped_instances: dict[tuple[ScopeSegments, ServiceKey], Any] = {}
        self._scope_exit_stacks: dict[ScopeSegments, ExitStack] = {}
        # Teardown of singleton generator factories, closed by close()
        self._exit_stack = ExitStack()
        self._current_scope: ContextVar[ScopeId | None] = ContextVar(
            f"dibox_current_scope_{id(self)}",
            default=None,
        )

        self._lock = threading.RLock()
        # Per-cache-key locks so concurrent first lookups build one instance
        self._instance_locks: dict[Any, threading.RLock] = {}
        self._instance_locks_lock = threading.Lock()
        # Wait-for graph over those locks: lock key -> owner thread, thread -> awaited lock
        self._lock_owners: dict[Any, int] = {}
        self._lock_waiters: dict[int, tuple[Any, ServiceKey]] = {}

        self._dependencies_extractor = DependenciesExtractor()
        self._injected_callable_inspector = InjectedCallableInspector()

        self.register(Container, instance=self)
        if type(self) is not Container:
            self.register(type(self), instance=self)

    @classmethod
    def from_settings(cls, settings: ContainerSettings | None = None) -> Self:
        """Build a container from ``ContainerSettings`` (``DIBOX_*`` environment).

        The settings object is registered as an instance, and
        ``services_file`` is loaded when set.
        """
        settings = settings if settings is not None else ContainerSettings()
        container = cls(
            autoregister=settings.autoregister,
            autoregister_default_lifetime=settings.default_lifetime,
        )
        container.add_instance(settings)
        if settings.services_file is not None:
            load_services(container, settings.services_file)
        return container

    # Registration

    def set(
        self,
        name: str,
        resolver: Resolver,
        *,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> None:
        """Register ``resolver`` under ``name``.

        On lookup the resolver is called with the container as its only
        argument, so it can fetch its own collaborators:

        .. code-block:: python

            container.set("mailer", lambda c: Mailer(c.get("transport")))

        Raises:
            DIBoxInvalidRegistrationError: If ``name`` is not a non-empty string
                or ``resolver`` is not callable.

        """
        if not isinstance(name, str) or not name:
            msg = f"Service name must be a non-empty string, got {name!r}"
            raise DIBoxInvalidRegistrationError(msg)
        if not callable(resolver):
            msg = f"Resolver for service {name!r} must be callable, got {resolver!r}"
            raise DIBoxInvalidRegistrationError(msg)

        self.add_registration(
            Registration(
                service_key=ServiceKey(value=name),
                factory=resolver,
                lifetime=self._coerce_lifetime(lifetime),
                pass_container=True,
            ),
        )

    def register(
        self,
        key: Any,
        /,
        factory: Factory | None = None,
        instance: Any | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        scope: str | None = None,
        provides: Any | None = None,
        arguments: Mapping[str, Any] | None = None,
        autowire: bool = True,
    ) -> None:
        """Register a service with the container.

        Args:
            key: The service key. When used with ``provides``, this is the
                concrete implementation class.
            factory: Optional callable that builds the service. Its type-hinted
                parameters are autowired. A generator factory yields the
                service once and tears it down after the yield.
            instance: Optional pre-created instance.
            lifetime: How long a built service is reused.
            scope: Scope name for ``SCOPED`` services. Without it the service is
                cached in the innermost active scope.
            provides: Optional interface/abstract type that this registration
                provides. The service is registered under this type instead of
                ``key``.
            arguments: Explicit keyword arguments that take precedence over
                autowiring. ``Reference`` values are resolved from the container.
            autowire: When False, only ``arguments`` are passed to the target and
                unlisted required parameters are reported as missing.

        Raises:
            DIBoxInvalidRegistrationError: If the combination of arguments cannot
                produce a service.
            DIBoxProvidesRequiresClassError: If ``provides`` is used but ``key`` is
                not a class (when no factory/instance is given).

        """
        self.add_registration(
            self.build_registration(
                key,
                factory=factory,
                instance=instance,
                lifetime=lifetime,
                scope=scope,
                provides=provides,
                arguments=arguments,
                autowire=autowire,
            ),
        )

    def build_registration(
        self,
        key: Any,
        /,
        factory: Factory | None = None,
        instance: Any | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        scope: str | None = None,
        provides: Any | None = None,
        arguments: Mapping[str, Any] | None = None,
        autowire: bool = True,
    ) -> Registration:
        """Check ``register`` arguments and return the registration without storing it."""
        lifetime = self._coerce_lifetime(lifetime)
        if factory is not None and instance is not None:
            msg = f"Cannot register {key!r} with both a factory and an instance"
            raise DIBoxInvalidRegistrationError(msg)
        if factory is not None and not callable(factory):
            msg = f"Factory for {key!r} must be callable, got {factory!r}"
            raise DIBoxInvalidRegistrationError(msg)
        if scope is not None and lifetime is not Lifetime.SCOPED:
            msg = (
                f"Scope {scope!r} given for {key!r} requires lifetime SCOPED, "
                f"got {lifetime.value}"
            )
            raise DIBoxInvalidRegistrationError(msg)

        concrete_type: type | None = None
        if provides is not None:
            service_key = ServiceKey.from_value(provides)
            if instance is None and factory is None:
                if not isinstance(key, type):
                    raise DIBoxProvidesRequiresClassError(key, provides)
                concrete_type = key
        else:
            service_key = ServiceKey.from_value(key)

        if instance is None and factory is None:
            target = concrete_type or service_key.value
            if not isinstance(target, type):
                msg = f"Cannot register {key!r} without a factory or instance: it is not a class"
                raise DIBoxInvalidRegistrationError(msg)
            if inspect.isabstract(target):
                msg = f"Cannot register abstract class {target.__qualname__!r} without a factory"
                raise DIBoxInvalidRegistrationError(msg)

        return Registration(
            service_key=service_key,
            factory=factory,
            instance=instance,
            has_instance=instance is not None,
            lifetime=Lifetime.SINGLETON if instance is not None else lifetime,
            scope=scope,
            concrete_type=concrete_type,
            arguments=dict(arguments or {}),
            autowire=autowire,
        )

    def add_instance(self, instance: Any, provides: Any | None = None) -> None:
        """Register an existing object under ``provides`` or its own type."""
        if instance is None:
            msg = "Cannot register None as an instance; use set_parameter for optional values"
            raise DIBoxInvalidRegistrationError(msg)
        self.register(provides if provides is not None else type(instance), instance=instance)

    def alias(self, alias: Any, target: Any) -> None:
        """Make ``alias`` resolve exactly like ``target``."""
        alias_key = ServiceKey.from_value(alias)
        target_key = ServiceKey.from_value(target)
        if alias_key == target_key:
            msg = f"Service {alias_key} cannot be an alias of itself"
            raise DIBoxInvalidRegistrationError(msg)
        with self._lock:
            self._registry.pop(alias_key, None)
            self._singletons.pop(alias_key, None)
            self._aliases[alias_key] = target_key
        logger.debug("Aliased %s to %s", alias_key, target_key)

    def set_parameter(self, name: str, value: Any) -> None:
        """Store a configuration value, also resolvable as a named service."""
        if not isinstance(name, str) or not name:
            msg = f"Parameter name must be a non-empty string, got {name!r}"
            raise DIBoxInvalidRegistrationError(msg)
        self._parameters[name] = value
        self.add_registration(
            Registration(
                service_key=ServiceKey(value=name),
                instance=value,
                has_instance=True,
                lifetime=Lifetime.SINGLETON,
            ),
        )

    @property
    def parameters(self) -> Mapping[str, Any]:
        return types.MappingProxyType(self._parameters)

    @overload
    def factory(self, key: F, /) -> F: ...

    @overload
    def factory(
        self,
        key: Any = None,
        /,
        *,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        scope: str | None = None,
    ) -> Callable[[F], F]: ...

    def factory(
        self,
        key: Any = None,
        /,
        *,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        scope: str | None = None,
    ) -> Any:
        """Register the decorated function as the factory of its return type.

        Use bare (``@container.factory``) or with options
        (``@container.factory(lifetime=Lifetime.SINGLETON)``). Pass a key to
        register under a name or a type other than the return annotation.
        """

        def decorator(func: F) -> F:
            target = key if key is not None else self._factory_return_key(func)
            self.register(target, factory=func, lifetime=lifetime, scope=scope)
            return func

        if isinstance(key, types.FunctionType):
            func, key = key, None
            return decorator(func)
        return decorator

    def _factory_return_key(self, func: Callable[..., Any]) -> Any:
        try:
            return_hint = get_type_hints(func, include_extras=True).get("return")
        except (NameError, TypeError) as e:
            msg = f"Cannot read the return annotation of factory {func!r}: {e}"
            raise DIBoxInvalidRegistrationError(msg) from e
        if return_hint is None:
            msg = f"Factory {func!r} has no return annotation; pass the key explicitly"
            raise DIBoxInvalidRegistrationError(msg)
        if get_origin(return_hint) in (Generator, Iterator):
            return get_args(return_hint)[0]
        return return_hint

    def add_registration(self, registration: Registration) -> None:
        """Store a prepared registration, replacing any entry or alias under its key."""
        service_key = registration.service_key
        with self._lock:
            self._aliases.pop(service_key, None)
            self._registry[service_key] = registration
            if registration.has_instance:
                self._singletons[service_key] = registration.instance
            else:
                self._singletons.pop(service_key, None)
        logger.debug(
            "Registered %s with lifetime %s",
            service_key,
            registration.lifetime.value,
        )

    def _coerce_lifetime(self, lifetime: Any) -> Lifetime:
        try:
            return Lifetime(lifetime)
        except ValueError as e:
            msg = f"Unknown lifetime {lifetime!r}"
            raise DIBoxInvalidRegistrationError(msg) from e

    # Lookup

    def get(self, key: Any) -> Any:
        """Return the service registered under ``key``.

        Raises:
            DIBoxServiceNotFoundError: If nothing is registered under ``key`` and
                it cannot be autowired.
            DIBoxMissingDependenciesError: If the service exists but some of its
                dependencies cannot be resolved.
            DIBoxCircularDependencyError: If building the service requires itself.

        """
        service_key = self._canonical_key(ServiceKey.from_value(key))
        with resolving(service_key):
            return self._resolve_service_key(service_key)

    @overload
    def resolve(self, key: type[T]) -> T: ...

    @overload
    def resolve(self, key: Any) -> Any: ...

    def resolve(self, key: Any) -> Any:
        """Resolve ``key``; same as ``get``, typed for class keys."""
        return self.get(key)

    def has(self, key: Any) -> bool:
        """Return True when ``get(key)`` can find or autowire an entry.

        Never raises. A True result does not guarantee that the dependencies
        of the service resolve.
        """
        try:
            service_key = self._canonical_key(ServiceKey.from_value(key))
            if service_key in self._registry:
                return True
        except (DIBoxError, TypeError):
            return False
        return self._can_autoregister(service_key)

    def _canonical_key(self, service_key: ServiceKey) -> ServiceKey:
        if service_key not in self._aliases:
            return service_key
        chain = [service_key]
        while service_key in self._aliases:
            service_key = self._aliases[service_key]
            if service_key in chain:
                raise DIBoxCircularDependencyError(service_key, [*chain, service_key])
            chain.append(service_key)
        return service_key

    def _resolve_service_key(self, service_key: ServiceKey) -> Any:
        instance = self._singletons.get(service_key, _MISSING)
        if instance is not _MISSING:
            return instance

        registration = self._registry.get(service_key)
        if registration is None:
            registration = self._get_auto_registration(service_key)

        if registration.has_instance:
            return registration.instance
        if registration.lifetime is Lifetime.SINGLETON:
            return self._resolve_singleton(registration)
        if registration.lifetime is Lifetime.SCOPED:
            return self._resolve_scoped(registration)

        current = self._current_scope.get()
        return self._build(registration, current.segments if current is not None else None)

    def _resolve_singleton(self, registration: Registration) -> Any:
        service_key = registration.service_key
        with self._hold_instance_lock(service_key, service_key):
            instance = self._singletons.get(service_key, _MISSING)
            if instance is _MISSING:
                instance = self._build(registration, _CONTAINER_OWNER)
                self._singletons[service_key] = instance
                logger.debug("Created singleton %s", service_key)
            return instance

    def _resolve_scoped(self, registration: Registration) -> Any:
        service_key = registration.service_key
        current = self._current_scope.get()
        cache_scope = current.get_cache_key_for_scope(registration.scope) if current else None
        if cache_scope is None:
            wanted = repr(registration.scope) if registration.scope else "an active scope"
            where = current.path if current is not None else "no scope"
            msg = f"Service {service_key} requires {wanted}, but resolution happened in {where}"
            raise DIBoxScopeMismatchError(msg)

        cache_key = (cache_scope, service_key)
        with self._hold_instance_lock(cache_key, service_key):
            instance = self._scoped_instances.get(cache_key, _MISSING)
            if instance is _MISSING:
                instance = self._build(registration, cache_scope)
                self._scoped_instances[cache_key] = instance
            return instance

    @contextmanager
    def _hold_instance_lock(self, lock_key: Any, service_key: ServiceKey) -> Iterator[None]:
        """Hold the build lock for ``lock_key``.

        Waiting on a lock whose owner is itself waiting, directly or through
        other threads, on a lock this thread holds would never end. That wait
        is refused with ``DIBoxCircularDependencyError``.
        """
        lock = self._instance_lock(lock_key)
        thread_id = threading.get_ident()
        if not lock.acquire(blocking=False):
            self._wait_for_instance_lock(lock, lock_key, service_key, thread_id)
        with self._instance_locks_lock:
            reentered = self._lock_owners.get(lock_key) == thread_id
            self._lock_owners[lock_key] = thread_id
        try:
            yield
        finally:
            if not reentered:
                with self._instance_locks_lock:
                    del self._lock_owners[lock_key]
            lock.release()

    def _wait_for_instance_lock(
        self,
        lock: threading.RLock,
        lock_key: Any,
        service_key: ServiceKey,
        thread_id: int,
    ) -> None:
        with self._instance_locks_lock:
            chain = [service_key]
            seen: set[int] = set()
            owner = self._lock_owners.get(lock_key)
            while owner is not None and owner != thread_id and owner not in seen:
                seen.add(owner)
                waited = self._lock_waiters.get(owner)
                if waited is None:
                    break
                chain.append(waited[1])
                owner = self._lock_owners.get(waited[0])
            if owner == thread_id:
                raise DIBoxCircularDependencyError(service_key, [*chain, service_key])
            self._lock_waiters[thread_id] = (lock_key, service_key)
        try:
            lock.acquire()
        finally:
            with self._instance_locks_lock:
                del self._lock_waiters[thread_id]

    def _instance_lock(self, lock_key: Any) -> threading.RLock:
        with self._instance_locks_lock:
            lock = self._instance_locks.get(lock_key)
            if lock is None:
                lock = threading.RLock()
                self._instance_locks[lock_key] = lock
            return lock

    def _build(self, registration: Registration, owner: ScopeSegments | None) -> Any:
        """Call the registration target; ``owner`` receives generator teardown."""
        target = registration.instantiation_target
        if registration.pass_container:
            result = target(self)
        else:
            result = target(**self._build_arguments(registration, target))

        if not isinstance(result, Generator):
            return result

        if owner is None:
            result.close()
            raise DIBoxGeneratorFactoryWithoutScopeError(registration.service_key)
        try:
            instance = next(result)
        except StopIteration as exc:
            raise DIBoxGeneratorFactoryDidNotYieldError(registration.service_key) from exc
        exit_stack = (
            self._exit_stack if owner == _CONTAINER_OWNER else self._get_scope_exit_stack(owner)
        )
        exit_stack.callback(_finish_generator, result, registration.service_key)
        return instance

    def _build_arguments(self, registration: Registration, target: Any) -> dict[str, Any]:
        explicit = registration.arguments
        kwargs: dict[str, Any] = {}
        missing: list[ServiceKey] = []

        for info in self._dependencies_extractor.get_parameters(target):
            if info.name in explicit:
                continue
            if not registration.autowire or info.service_key is None:
                if not info.has_default:
                    missing.append(info.service_key or ServiceKey(value=info.name))
                continue
            if info.has_default and not self.has(info.service_key):
                continue
            try:
                kwargs[info.name] = self.get(info.service_key)
            except DIBoxServiceNotFoundError as e:
                if e.service_key != info.service_key:
                    raise
                if not info.has_default:
                    missing.append(info.service_key)

        if missing:
            raise DIBoxMissingDependenciesError(registration.service_key, missing)

        for name, value in explicit.items():
            kwargs[name] = self._materialize(value)
        return kwargs

    def _materialize(self, value: Any) -> Any:
        if isinstance(value, Reference):
            return self.get(value.key)
        if isinstance(value, list):
            return [self._materialize(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self._materialize(item) for item in value)
        if isinstance(value, dict):
            return {name: self._materialize(item) for name, item in value.items()}
        return value

    # Autoregistration

    def _can_autoregister(self, service_key: ServiceKey) -> bool:
        value = service_key.value
        return (
            self._autoregister
            and service_key.component is None
            and isinstance(value, type)
            and value not in self._autoregister_ignores
            and not inspect.isabstract(value)
        )

    def _get_auto_registration(self, service_key: ServiceKey) -> Registration:
        if not self._autoregister or isinstance(service_key.value, str):
            raise DIBoxServiceNotFoundError(service_key)
        if service_key.component is not None:
            raise DIBoxComponentSpecifiedError(service_key)
        value = service_key.value
        if not isinstance(value, type):
            raise DIBoxNotAClassError(service_key)
        if value in self._autoregister_ignores:
            raise DIBoxIgnoredServiceError(service_key)
        if inspect.isabstract(value):
            raise DIBoxServiceNotFoundError(service_key)

        for base, registration_factory in self._autoregister_registration_factories.items():
            if issubclass(value, base):
                registration = registration_factory(value)
                break
        else:
            registration = Registration(
                service_key=service_key,
                lifetime=self._autoregister_default_lifetime,
            )

        with self._lock:
            registration = self._registry.setdefault(service_key, registration)
        logger.debug(
            "Autoregistered %s with lifetime %s",
            service_key,
            registration.lifetime.value,
        )
        return registration

    # Function injection

    @overload
    def inject(self, func: Callable[..., T], /) -> InjectedFunction[T]: ...

    @overload
    def inject(
        self,
        func: None = None,
        /,
        *,
        scope: str | None = None,
    ) -> Callable[[Callable[..., T]], InjectedFunction[T]]: ...

    def inject(self, func: Callable[..., Any] | None = None, /, *, scope: str | None = None) -> Any:
        """Wrap ``func`` so its ``Injected[...]`` parameters come from the container.

        With ``scope`` set, every call runs inside a fresh scope of that name.
        """

        def decorator(target: Callable[..., Any]) -> InjectedFunction[Any]:
            return InjectedFunction(
                target,
                container=self,
                inspector=self._injected_callable_inspector,
                scope=scope,
            )

        if func is not None:
            return decorator(func)
        return decorator

    # Scopes and teardown

    def enter_scope(self, name: str | None = None) -> ScopedContainer:
        """Start a new scope for resolving ``SCOPED`` dependencies.

        Nested scopes see the instances cached by their parents. Use the result
        as a context manager: leaving the block runs generator teardowns of the
        scope in reverse order.
        """
        instance_id = next(self._scope_counter)
        new_segment = (name, instance_id)
        current = self._current_scope.get()
        segments = (*current.segments, new_segment) if current is not None else (new_segment,)
        return ScopedContainer(_container=self, _scope_id=ScopeId(segments=segments))

    @property
    def current_scope(self) -> ScopeId | None:
        return self._current_scope.get()

    def _activate_scope(self, scope_id: ScopeId) -> Token[ScopeId | None]:
        return self._current_scope.set(scope_id)

    def _deactivate_scope(self, token: Token[ScopeId | None]) -> None:
        self._current_scope.reset(token)

    def _get_scope_exit_stack(self, scope_key: ScopeSegments) -> ExitStack:
        with self._lock:
            scope_exit_stack = self._scope_exit_stacks.get(scope_key)
            if scope_exit_stack is None:
                scope_exit_stack = ExitStack()
                self._scope_exit_stacks[scope_key] = scope_exit_stack
            return scope_exit_stack

    def _clear_scope(self, scope_id: ScopeId) -> None:
        scope_key = scope_id.segments
        with self._lock:
            scope_exit_stack = self._scope_exit_stacks.pop(scope_key, None)
            stale_keys = [key for key in self._scoped_instances if key[0] == scope_key]
            for key in stale_keys:
                del self._scoped_instances[key]
            with self._instance_locks_lock:
                for key in stale_keys:
                    self._instance_locks.pop(key, None)
        logger.debug("Closing scope %s (%d cached services)", scope_id.path, len(stale_keys))
        if scope_exit_stack is not None:
            scope_exit_stack.close()

    def close(self) -> None:
        """Run singleton teardowns in reverse order and forget built singletons.

        Registered instances survive; built singletons are created again on the
        next lookup.
        """
        with self._lock:
            built = [key for key in self._singletons if not self._has_instance_registration(key)]
            for key in built:
                del self._singletons[key]
        logger.debug("Closing container (%d built singletons)", len(built))
        self._exit_stack.close()

    def _has_instance_registration(self, service_key: ServiceKey) -> bool:
        registration = self._registry.get(service_key)
        return registration is not None and registration.has_instance

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()
