"""Load and save the JSON configuration file."""

import json
from pathlib import Path

from loguru import logger

from cadence.config.schema import Config


def get_config_path() -> Path:
    return Path.home() / ".cadence" / "config.json"


def load_config(path: Path | None = None) -> Config:
    """
    Load configuration from disk, falling back to defaults.

    File values take precedence over ``CADENCE_*`` environment variables,
    which fill in anything the file leaves out.
    """
    path = path or get_config_path()
    if not path.exists():
        return Config()

    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read config at {path}: {e}; using defaults")
        return Config()
    return Config(**data)


def save_config(config: Config, path: Path | None = None) -> None:
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(), indent=2))
