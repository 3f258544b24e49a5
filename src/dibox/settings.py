from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from dibox.types import Lifetime


class ContainerSettings(BaseSettings):
    """Container options read from ``DIBOX_*`` environment variables.

    ``DIBOX_AUTOREGISTER=false`` disables autowiring of unregistered classes,
    ``DIBOX_DEFAULT_LIFETIME=singleton`` changes the lifetime given to
    autowired classes, and ``DIBOX_SERVICES_FILE`` points at a YAML service
    definition file loaded by ``Container.from_settings``.
    """

    model_config = SettingsConfigDict(env_prefix="DIBOX_", extra="ignore")

    autoregister: bool = True
    default_lifetime: Lifetime = Lifetime.TRANSIENT
    services_file: Path | None = None
