"""Configuration management for m98.

Loads configuration from YAML files and environment variables using Pydantic.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from m98.macros.paths import MacroPaths


class AppConfig(BaseModel):
    """Application settings."""

    name: str = "m98"
    version: str = "0.1.0"
    log_level: str = "INFO"
    json_logs: bool = False
    data_dir: str = "data"


class MacrosConfig(BaseModel):
    """Macro store layout, relative to ``app.data_dir``."""

    directory: str = "macros"
    legacy_file: str = "macros.json"
    settings_file: str = "settings.json"


class ServerConfig(BaseModel):
    """HTTP API settings."""

    host: str = "127.0.0.1"
    port: int = 8765


class ExecutionConfig(BaseModel):
    """Macro execution settings."""

    source_id: str = "macro"


class Settings(BaseSettings):
    """Main settings class that loads from YAML and environment."""

    model_config = SettingsConfigDict(
        env_prefix="M98_",
        env_nested_delimiter="__",
    )

    app: AppConfig = Field(default_factory=AppConfig)
    macros: MacrosConfig = Field(default_factory=MacrosConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from a YAML file.

        Args:
            config_path: Path to config file. If None, uses default paths.

        Returns:
            Settings instance with loaded configuration.
        """
        default_paths = [
            Path("config/config.yaml"),
            Path("config/default_config.yaml"),
            Path.home() / ".config" / "m98" / "config.yaml",
        ]

        if config_path and config_path.exists():
            yaml_path = config_path
        else:
            yaml_path = None
            for path in default_paths:
                if path.exists():
                    yaml_path = path
                    break

        if yaml_path:
            with open(yaml_path) as f:
                yaml_config = yaml.safe_load(f) or {}
        else:
            yaml_config = {}

        return cls(**yaml_config)

    def get_macro_paths(self) -> MacroPaths:
        """Get the macro store layout under the data directory."""
        return MacroPaths.from_root(
            Path(self.app.data_dir).expanduser(),
            directory=self.macros.directory,
            legacy_file=self.macros.legacy_file,
            settings_file=self.macros.settings_file,
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns:
        Settings instance (creates one if not exists).
    """
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    """Reload settings from disk.

    Args:
        config_path: Optional path to config file.

    Returns:
        New settings instance.
    """
    global _settings
    _settings = Settings.load(config_path)
    return _settings
