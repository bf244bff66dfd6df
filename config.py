"""Settings file under the user's home directory."""

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Optional

from models import SessionConfig

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".keys2midi"
CONFIG_PATH = CONFIG_DIR / "config.json"


def load_config(path: Optional[Path] = None) -> SessionConfig:
    """Read settings, falling back to defaults for missing keys or an unreadable file."""
    path = Path(path) if path else CONFIG_PATH
    defaults = SessionConfig()
    if not path.exists():
        return defaults
    try:
        with open(path, 'r') as f: config = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring settings file %s: %s", path, e)
        return defaults
    if not isinstance(config, dict):
        logger.warning("Ignoring settings file %s: expected an object", path)
        return defaults
    values = {f.name: config.get(f.name, getattr(defaults, f.name)) for f in fields(SessionConfig)}
    return SessionConfig(**values)


def save_config(config: SessionConfig, path: Optional[Path] = None):
    path = Path(path) if path else CONFIG_PATH
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f: json.dump(asdict(config), f, indent=4)
    except OSError as e:
        logger.warning("Error saving config: %s", e)
