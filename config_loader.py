import logging
import os

import toml
from pydantic import ValidationError

from errors import ConfigError
from models import Config, ProviderConfig, ServerConfig, StorageConfig

logger = logging.getLogger(__name__)


def load_config(config_path: str = "config.toml") -> Config:
    """Load configuration from TOML file, falling back to defaults if absent."""
    if not os.path.exists(config_path):
        logger.warning(f"Config file {config_path} not found, using defaults")
        return Config()

    try:
        with open(config_path, "r") as f:
            config_data = toml.load(f)

        server_config = ServerConfig(**config_data.get("server", {}))
        provider_config = ProviderConfig(**config_data.get("provider", {}))
        storage_config = StorageConfig(**config_data.get("storage", {}))

        return Config(
            server=server_config,
            provider=provider_config,
            storage=storage_config,
            default_location=config_data.get("default_location", "London"),
        )

    except (OSError, toml.TomlDecodeError, ValidationError, TypeError) as e:
        raise ConfigError(f"Failed to load config: {e}") from e
