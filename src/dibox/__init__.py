from dibox.config import load_services
from dibox.container import Container, ScopedContainer
from dibox.exceptions import (
    DIBoxAutoRegistrationError,
    DIBoxCircularDependencyError,
    DIBoxComponentSpecifiedError,
    DIBoxConfigurationError,
    DIBoxDependencyExtractionError,
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
from dibox.markers import Component, Injected, Named
from dibox.registry import Reference
from dibox.service_key import ServiceKey
from dibox.settings import ContainerSettings
from dibox.types import Lifetime

__all__ = [
    "Component",
    "Container",
    "ContainerSettings",
    "DIBoxAutoRegistrationError",
    "DIBoxCircularDependencyError",
    "DIBoxComponentSpecifiedError",
    "DIBoxConfigurationError",
    "DIBoxDependencyExtractionError",
    "DIBoxError",
    "DIBoxGeneratorFactoryDidNotYieldError",
    "DIBoxGeneratorFactoryWithoutScopeError",
    "DIBoxGeneratorFactoryYieldedMoreThanOnceError",
    "DIBoxIgnoredServiceError",
    "DIBoxInvalidRegistrationError",
    "DIBoxMissingDependenciesError",
    "DIBoxNotAClassError",
    "DIBoxProvidesRequiresClassError",
    "DIBoxScopeMismatchError",
    "DIBoxServiceNotFoundError",
    "Injected",
    "Lifetime",
    "Named",
    "Reference",
    "ScopedContainer",
    "ServiceKey",
    "load_services",
]
