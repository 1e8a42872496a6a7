"""
Configuration management for the file ledger.

Uses pydantic-settings to validate configuration read from a YAML file,
with environment variables as a fallback for keys the file omits.
"""

from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import PositiveFloat, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.errors import ConfigLoadError

DEFAULT_CONFIG_PATH = Path("configuration.yaml")


class Settings(BaseSettings):
    """Application settings."""

    # Pipeline Configuration
    target_directory: Path
    storage_location: Path
    concurrency_level: PositiveInt = 1

    # Watch Configuration
    recursive: bool = False
    use_polling: bool = False
    poll_interval: PositiveFloat = 1.0  # seconds

    # Logging Configuration
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FILE_LEDGER_",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("target_directory", "storage_location")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


def _key(name: Any) -> str:
    return str(name).lower().replace("_", "").replace("-", "")


_FIELD_KEYS = {_key(name): name for name in Settings.model_fields}


def normalise_keys(data: Dict[Any, Any]) -> Dict[str, Any]:
    """
    Map configuration keys onto Settings field names.

    ``TargetDirectory``, ``target_directory`` and ``targetdirectory`` all
    resolve to ``target_directory``. Unknown keys are dropped.
    """
    return {
        _FIELD_KEYS[_key(name)]: value
        for name, value in data.items()
        if _key(name) in _FIELD_KEYS
    }


def load_settings(config_path: Path = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Validated settings

    Raises:
        ConfigLoadError: If the file cannot be read, parsed or validated
    """
    try:
        raw = Path(config_path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(f"Error reading config file {config_path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Error parsing config file {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Error parsing config file {config_path}: expected a mapping, "
            f"got {type(data).__name__}"
        )

    try:
        return Settings(**normalise_keys(data))
    except ValidationError as e:
        raise ConfigLoadError(f"Error parsing config file {config_path}: {e}") from e
