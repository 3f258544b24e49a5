"""Shared pytest fixtures for dibox tests."""

import pytest

from dibox.container import Container
from dibox.dependencies import DependenciesExtractor
from dibox.types import Lifetime


@pytest.fixture()
def container() -> Container:
    """Default container with autoregistration enabled."""
    return Container(autoregister=True)


@pytest.fixture()
def container_no_autoregister() -> Container:
    """Container with autoregister=False."""
    return Container(autoregister=False)


@pytest.fixture()
def container_singleton() -> Container:
    """Container with lifetime singleton as default."""
    return Container(
        autoregister=True,
        autoregister_default_lifetime=Lifetime.SINGLETON,
    )


@pytest.fixture()
def dependencies_extractor() -> DependenciesExtractor:
    """DependenciesExtractor instance."""
    return DependenciesExtractor()
