"""Configuration loading and logging setup."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_ROOT = ".knecht"
ROOT_ENV_VAR = "KNECHT_DIR"
CONFIG_FILE = "config.yaml"
SECTIONS = ("logging", "friction")


class ConfigError(Exception):
    """Config file exists but could not be used."""


def resolve_root(root: Optional[Path] = None) -> Path:
    """
    Find the knecht data directory.

    Precedence: explicit argument, then ``KNECHT_DIR``, then ``./.knecht``.
    """
    if root is not None:
        return Path(root)
    env_root = os.environ.get(ROOT_ENV_VAR)
    if env_root:
        return Path(env_root)
    return Path(DEFAULT_ROOT)


def load_config(root: Path) -> dict[str, Any]:
    """
    Load ``<root>/config.yaml``.

    Returns:
        Parsed config, or an empty dict if the file does not exist

    Raises:
        ConfigError: If the file cannot be read, is not a YAML mapping, or
            a known section is not a mapping
    """
    config_path = Path(root) / CONFIG_FILE
    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must be a mapping")

    for section in SECTIONS:
        # A section with every key commented out parses as None
        if data.get(section) is None:
            data[section] = {}
        elif not isinstance(data[section], dict):
            raise ConfigError(f"Config {config_path}: '{section}' must be a mapping")
    return data


class KnechtConfig:
    """Typed accessors over the raw config dict."""

    def __init__(self, root: Path, data: Optional[dict[str, Any]] = None):
        self.root = Path(root)
        self.data = data or {}

    def _section(self, name: str) -> dict[str, Any]:
        section = self.data.get(name)
        return section if isinstance(section, dict) else {}

    @property
    def log_level(self) -> str:
        return str(self._section("logging").get("level", "WARNING")).upper()

    @property
    def log_file(self) -> Optional[Path]:
        log_file = self._section("logging").get("file")
        return Path(log_file) if log_file else None

    @property
    def friction_enabled(self) -> bool:
        return bool(self._section("friction").get("enabled", True))

    @property
    def friction_log_file(self) -> Path:
        log_file = self._section("friction").get("log_file")
        return Path(log_file) if log_file else self.root / "friction.jsonl"


def setup_logging(config: KnechtConfig) -> None:
    """Configure the root logger from config."""
    level = getattr(logging, config.log_level, logging.WARNING)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
