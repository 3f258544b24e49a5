from collections.abc import Callable
from typing import Any

from pydantic_settings import BaseSettings

from dibox.registry import Registration
from dibox.service_key import ServiceKey
from dibox.types import Lifetime

DEFAULT_AUTOREGISTER_IGNORES: set[Any] = {
    int,
    str,
    float,
    bool,
    bytes,
    list,
    dict,
    set,
    tuple,
    object,
}


def _settings_registration(cls: type[BaseSettings]) -> Registration:
    # Settings read the environment on construction, so one instance is enough.
    return Registration(
        service_key=ServiceKey.from_value(cls),
        factory=lambda: cls(),
        lifetime=Lifetime.SINGLETON,
        autowire=False,
    )


DEFAULT_AUTOREGISTER_REGISTRATION_FACTORIES: dict[type[Any], Callable[[Any], Registration]] = {
    BaseSettings: _settings_registration,
}

DEFAULT_AUTOREGISTER_LIFETIME = Lifetime.TRANSIENT
