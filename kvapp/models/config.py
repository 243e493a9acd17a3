"""
StoreConfig and the JSON configuration loader.

The configuration file names exactly one database:

    {"database": {"name": "<nickname>", "path": "<store directory>"}}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from kvapp.models.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "cfg-kvapp.json"


@dataclass(frozen=True)
class StoreConfig:
    """
    On-disk location and external nickname of the store.

    Attributes:
        name: Nickname reported by the index endpoint.
        path: Directory holding the store files.
    """

    name: str
    path: str

    @classmethod
    def from_dict(cls, data: dict) -> "StoreConfig":
        """
        Build a StoreConfig from the parsed JSON document.

        Raises:
            ConfigError: If the document does not hold a single database object
                with non-empty string name and path.
        """
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a JSON object")

        if "databases" in data:
            raise ConfigError(
                "'databases' list is no longer supported; "
                "declare a single 'database' object instead"
            )

        db = data.get("database")
        if db is None:
            raise ConfigError("missing 'database' object")
        if isinstance(db, list):
            raise ConfigError(
                "'database' must be a single object, not a list"
            )
        if not isinstance(db, dict):
            raise ConfigError("'database' must be an object")

        fields = {}
        for field_name in ("name", "path"):
            value = db.get(field_name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"'database.{field_name}' must be a non-empty string")
            fields[field_name] = value

        return cls(**fields)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> StoreConfig:
    """
    Read and validate the configuration file.

    Args:
        path: Location of the JSON configuration file.

    Returns:
        The parsed StoreConfig.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    try:
        with open(path, "rb") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read configuration file {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"invalid JSON in configuration file {path}: {e}") from e

    config = StoreConfig.from_dict(data)
    logger.debug(f"Loaded configuration from {path}: {config}")
    return config
