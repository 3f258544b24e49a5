"""Service definitions loaded from YAML documents or plain mappings.

A document has two optional sections::

    parameters:
      mailer.transport: smtp
    services:
      mailer:
        class: app.mail:Mailer
        arguments: ["%mailer.transport%"]
        lifetime: singleton
      app.users:UserRepository: {}
      newsletter:
        factory: app.news:build_newsletter
        arguments: {mailer: "@mailer"}
      mail:
        alias: mailer

Service ids containing ``:`` are import paths and register typed services;
any other id registers a named service. In argument values ``@id`` refers to
another service and ``%name%`` to a parameter.
"""

from __future__ import annotations

import importlib
import io
import logging
import os
import re
from collections.abc import Callable, Mapping
from functools import partial
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from dibox.dependencies import DependenciesExtractor
from dibox.exceptions import DIBoxConfigurationError, DIBoxError
from dibox.registry import Reference
from dibox.service_key import ServiceKey
from dibox.types import Lifetime

if TYPE_CHECKING:
    from dibox.container import Container

logger = logging.getLogger(__name__)

_PARAMETER_PATTERN = re.compile(r"%%|%([^%\s]+)%")
_REFERENCE_PREFIX = "@"

ServicesSource = str | os.PathLike[str] | IO[str] | Mapping[str, Any]


class ServiceDefinition(BaseModel):
    """One entry of the ``services`` section."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    class_: str | None = Field(default=None, alias="class")
    factory: str | None = None
    alias: str | None = None
    arguments: list[Any] | dict[str, Any] = Field(default_factory=list)
    lifetime: Lifetime = Lifetime.TRANSIENT
    scope: str | None = None
    autowire: bool = True

    @model_validator(mode="after")
    def _check_single_source(self) -> ServiceDefinition:
        sources = [name for name in ("class_", "factory", "alias") if getattr(self, name)]
        if len(sources) > 1:
            names = ", ".join(name.rstrip("_") for name in sources)
            msg = f"only one of 'class', 'factory' and 'alias' may be set (got {names})"
            raise ValueError(msg)
        if self.alias and self.arguments:
            msg = "an alias cannot declare arguments"
            raise ValueError(msg)
        return self


class ServicesDocument(BaseModel):
    """Top-level shape of a service definition document."""

    model_config = ConfigDict(extra="forbid")

    parameters: dict[str, Any] = Field(default_factory=dict)
    services: dict[str, ServiceDefinition | None] = Field(default_factory=dict)


def load_services(container: Container, source: ServicesSource) -> list[ServiceKey]:
    """Register every parameter and service of ``source`` on ``container``.

    Every definition is imported and checked before the first one is
    registered, so a document that fails leaves ``container`` unchanged.

    Args:
        container: Target container.
        source: A path to a YAML file, an open text stream, or an already
            parsed mapping.

    Returns:
        Keys of the registered services, in document order.

    Raises:
        DIBoxConfigurationError: If the document cannot be read or validated,
            or a definition cannot be registered. Errors of a single
            definition name its service id.

    """
    raw, origin = _read_source(source)
    try:
        document = ServicesDocument.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid service definitions in {origin}: {e}"
        raise DIBoxConfigurationError(msg) from e
    if "" in document.parameters:
        msg = f"Invalid service definitions in {origin}: empty parameter name"
        raise DIBoxConfigurationError(msg)

    parameters = {**container.parameters, **document.parameters}
    prepared: list[tuple[ServiceKey, Callable[[], None]]] = []
    for service_id, definition in document.services.items():
        try:
            prepared.append(
                _prepare_definition(
                    container,
                    service_id,
                    definition or ServiceDefinition(),
                    parameters,
                ),
            )
        except DIBoxError as e:
            msg = f"Service {service_id!r} in {origin}: {e}"
            raise DIBoxConfigurationError(msg) from e

    for name, value in document.parameters.items():
        container.set_parameter(name, value)
    for _, apply in prepared:
        apply()

    logger.info("Loaded %d service definitions from %s", len(prepared), origin)
    return [key for key, _ in prepared]


def import_string(path: str) -> Any:
    """Import ``module:attr`` or ``module.attr`` and return the attribute."""
    if ":" in path:
        module_name, _, attribute_path = path.partition(":")
    else:
        module_name, _, attribute_path = path.rpartition(".")
    if not module_name or not attribute_path:
        msg = f"{path!r} is not an import path"
        raise DIBoxConfigurationError(msg)

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"Cannot import module {module_name!r} for {path!r}: {e}"
        raise DIBoxConfigurationError(msg) from e
    for attribute in attribute_path.split("."):
        try:
            target = getattr(target, attribute)
        except AttributeError as e:
            msg = f"{path!r} does not exist: {e}"
            raise DIBoxConfigurationError(msg) from e
    return target


def _read_source(source: ServicesSource) -> tuple[Any, str]:
    if isinstance(source, Mapping):
        return source, "<mapping>"
    if isinstance(source, io.IOBase) or hasattr(source, "read"):
        return _parse_yaml(source, getattr(source, "name", "<stream>"))

    path = Path(source)
    try:
        with path.open(encoding="utf-8") as stream:
            return _parse_yaml(stream, str(path))
    except OSError as e:
        msg = f"Cannot read service definitions from {path}: {e}"
        raise DIBoxConfigurationError(msg) from e


def _parse_yaml(stream: Any, origin: str) -> tuple[Any, str]:
    try:
        raw = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {origin}: {e}"
        raise DIBoxConfigurationError(msg) from e
    return ({} if raw is None else raw), origin


def _prepare_definition(
    container: Container,
    service_id: str,
    definition: ServiceDefinition,
    parameters: Mapping[str, Any],
) -> tuple[ServiceKey, Callable[[], None]]:
    """Import and check one definition; the returned callable registers it."""
    key = _resolve_id(service_id)
    service_key = ServiceKey.from_value(key)

    if definition.alias is not None:
        target_key = ServiceKey.from_value(_resolve_id(definition.alias))
        if target_key == service_key:
            msg = "cannot be an alias of itself"
            raise DIBoxConfigurationError(msg)
        return service_key, partial(container.alias, service_key, target_key)

    if definition.factory is not None:
        target = import_string(definition.factory)
    elif definition.class_ is not None:
        target = import_string(definition.class_)
    elif isinstance(key, type):
        target = key
    else:
        msg = "needs one of 'class', 'factory' or 'alias'"
        raise DIBoxConfigurationError(msg)

    arguments = _convert_arguments(target, _convert_value(definition.arguments, parameters))
    options: dict[str, Any] = {
        "lifetime": definition.lifetime,
        "scope": definition.scope,
        "arguments": arguments,
        "autowire": definition.autowire,
    }
    if definition.factory is not None:
        registration = container.build_registration(key, factory=target, **options)
    elif target is key:
        registration = container.build_registration(key, **options)
    else:
        registration = container.build_registration(target, provides=key, **options)
    return registration.service_key, partial(container.add_registration, registration)


def _resolve_id(service_id: str) -> Any:
    if ":" in service_id:
        return import_string(service_id)
    return service_id


def _convert_arguments(target: Any, arguments: list[Any] | dict[str, Any]) -> dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments

    names = _extractor.get_parameter_names(target)
    if len(arguments) > len(names):
        msg = f"passes {len(arguments)} positional arguments but {target!r} accepts {len(names)}"
        raise DIBoxConfigurationError(msg)
    return dict(zip(names, arguments))


def _convert_value(value: Any, parameters: Mapping[str, Any]) -> Any:
    if isinstance(value, list):
        return [_convert_value(item, parameters) for item in value]
    if isinstance(value, dict):
        return {name: _convert_value(item, parameters) for name, item in value.items()}
    if not isinstance(value, str):
        return value

    if value.startswith(_REFERENCE_PREFIX * 2):
        return value[1:]
    if value.startswith(_REFERENCE_PREFIX):
        return Reference(_resolve_id(value[1:]))
    return _interpolate(value, parameters)


def _interpolate(value: str, parameters: Mapping[str, Any]) -> Any:
    whole = _PARAMETER_PATTERN.fullmatch(value)
    if whole is not None and whole.group(1) is not None:
        # A lone placeholder keeps the parameter's own type.
        return _lookup_parameter(whole.group(1), parameters)

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name is None:
            return "%"
        return str(_lookup_parameter(name, parameters))

    return _PARAMETER_PATTERN.sub(replace, value)


def _lookup_parameter(name: str, parameters: Mapping[str, Any]) -> Any:
    try:
        return parameters[name]
    except KeyError:
        msg = f"refers to undefined parameter {name!r}"
        raise DIBoxConfigurationError(msg) from None


_extractor = DependenciesExtractor()
