"""Configuration for tabroom.

Values come from defaults, then a TOML file, then ``TABROOM_<SECTION>_<FIELD>``
environment variables.
"""
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import tomli_w
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "TABROOM"
DEFAULT_CONFIG_PATH = "~/.config/tabroom/tabroom.toml"


class StorageConfig(BaseModel):
    """Shared storage area settings."""

    path: str = Field("~/.local/state/tabroom/storage.json", description="Storage area file")
    key: str = Field("rooms", description="Key holding the tab to room mapping")
    write_retries: int = Field(5, description="Compare-and-swap attempts before overwriting")


class ServerConfig(BaseModel):
    """Background server settings."""

    host: str = Field("127.0.0.1", description="Loopback address to bind")
    port: int = Field(21591, description="Port to bind")
    auto_start: bool = Field(True, description="Start the server when a command needs it")


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field("INFO", description="Log level")
    client_log_file: Optional[str] = Field(None, description="Log file for client commands")


class Config(BaseModel):
    """Top level configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


_config: Optional[Config] = None


def generate_env_var_name(section: str, field: str) -> str:
    """Build the environment variable name for a config field."""
    return f"{ENV_PREFIX}_{section.upper()}_{field.upper()}"


def get_all_env_mappings() -> Dict[str, Tuple[str, str]]:
    """Map every environment variable name to its (section, field)."""
    mappings = {}
    for section, section_field in Config.model_fields.items():
        for field in section_field.annotation.model_fields:
            mappings[generate_env_var_name(section, field)] = (section, field)
    return mappings


def _convert_env_value(value: str) -> Any:
    """Convert an environment string to bool, int, or leave it as a string."""
    lowered = value.lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        return value


def load_all_env_overrides() -> Dict[str, Dict[str, Any]]:
    """Collect every TABROOM_* variable that maps to a config field."""
    overrides: Dict[str, Dict[str, Any]] = {}
    for env_var, (section, field) in get_all_env_mappings().items():
        value = os.environ.get(env_var)
        if value is None:
            continue

        section_model = Config.model_fields[section].annotation
        if section_model.model_fields[field].annotation in (str, Optional[str]):
            converted = value
        else:
            converted = _convert_env_value(value)
        overrides.setdefault(section, {})[field] = converted
    return overrides


def load_config(config_file: Optional[str] = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_file: TOML file to read. Defaults to $TABROOM_CONFIG_FILE, then
            ~/.config/tabroom/tabroom.toml

    Returns:
        The merged configuration
    """
    path = Path(config_file or os.getenv(f"{ENV_PREFIX}_CONFIG_FILE") or DEFAULT_CONFIG_PATH).expanduser()

    data: Dict[str, Dict[str, Any]] = {}
    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            logger.debug(f"Loaded config from {path}")
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Failed to read config file {path}: {e}")

    for section, values in load_all_env_overrides().items():
        data.setdefault(section, {}).update(values)

    return Config(**data)


def get_config() -> Config:
    """Return the global config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global config. ``None`` forces a reload on next access."""
    global _config
    _config = config


def dump_config_toml(config: Config) -> str:
    """Render a config as TOML."""
    return tomli_w.dumps(config.model_dump(exclude_none=True))


def _format_env_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def dump_config_env(config: Config) -> str:
    """Render a config as KEY=value lines."""
    lines = []
    data = config.model_dump()
    for env_var, (section, field) in get_all_env_mappings().items():
        value = data[section][field]
        if value is None:
            continue
        lines.append(f"{env_var}={_format_env_value(value)}")
    return "\n".join(lines)
