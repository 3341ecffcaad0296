from __future__ import annotations

from dataclasses import replace
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import AppConfig
from .constraint import DEFAULT_CONFIG_PATH, ENV_PREFIX


class Settings(BaseSettings):
    """Application runtime settings sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    config_path: Path = DEFAULT_CONFIG_PATH
    temp_root: Path | None = None
    libreoffice_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices(f"{ENV_PREFIX}LIBREOFFICE_PATH", "LIBREOFFICE_PATH"),
    )
    force_bundled_libreoffice: bool | None = Field(
        default=None,
        validation_alias=AliasChoices(
            f"{ENV_PREFIX}FORCE_BUNDLED_LIBREOFFICE", "FORCE_BUNDLED_LIBREOFFICE"
        ),
    )

    def apply(self, config: AppConfig) -> AppConfig:
        """Return a copy of *config* with environment overrides layered on top."""

        runtime = config.runtime
        if self.temp_root is not None:
            runtime = replace(runtime, temp_root=self.temp_root)
        libreoffice = config.libreoffice
        if self.libreoffice_path is not None:
            libreoffice = replace(libreoffice, executable_path=self.libreoffice_path)
        if self.force_bundled_libreoffice is not None:
            libreoffice = replace(libreoffice, force_bundled=self.force_bundled_libreoffice)
        return replace(config, runtime=runtime, libreoffice=libreoffice)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
