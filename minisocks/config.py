"""Loading and saving the proxy configuration file."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .ciphers import generate_cipher_table

DEFAULT_CONFIG_PATH = "./minisocks.json"
DEFAULT_LISTEN_ADDR = ":7448"
DEFAULT_REMOTE_ADDR = "ip:7448"

_JSON_FIELDS = {"listen": "listen_addr", "remote": "remote_addr", "password": "password"}

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Addresses and shared secret used by both ends of the proxy."""

    listen_addr: str = DEFAULT_LISTEN_ADDR
    remote_addr: str = DEFAULT_REMOTE_ADDR
    password: str = field(default_factory=generate_cipher_table)

    def to_json(self) -> str:
        """Return the configuration as indented JSON."""
        document = {key: getattr(self, attr) for key, attr in _JSON_FIELDS.items()}
        return json.dumps(document, indent=4, ensure_ascii=False)

    def save(self, path: str | Path = DEFAULT_CONFIG_PATH) -> None:
        """Write the configuration to ``path``."""
        try:
            Path(path).write_text(self.to_json(), encoding="utf-8")
        except OSError:
            logger.error("saving config file %s failed", path)
            raise
        logger.info("config file %s saved", path)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> Config:
    """Read the configuration at ``path``, creating it with defaults if missing."""
    path = Path(path)
    config = Config()
    if not path.exists():
        logger.info("config file %s not found, using defaults", path)
        config.save(path)
        return config

    text = path.read_text(encoding="utf-8")
    try:
        document = json.loads(text)
    except json.JSONDecodeError as err:
        logger.error("parsing config file %s failed", path)
        raise ValueError(f"failed to parse config file {path}: {err}") from err
    if not isinstance(document, dict):
        raise ValueError(f"failed to parse config file {path}: expected a JSON object")

    for key, attr in _JSON_FIELDS.items():
        if key not in document:
            continue
        value = document[key]
        if not isinstance(value, str):
            raise ValueError(
                f"failed to parse config file {path}: {key!r} must be a string"
            )
        setattr(config, attr, value)

    logger.info("config file %s loaded", path)
    return config