"""Configuration manager for persistent relay settings."""

from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError
from .printers import PrinterRegistry
from .transport import DEFAULT_TIMEOUT_SECONDS

log = logging.getLogger(__name__)

# Default configuration directory
CONFIG_DIR = Path.home() / ".printrelay"
CONFIG_FILE = CONFIG_DIR / "config.json"
DEFAULT_STAGING_DIR = CONFIG_DIR / "staging"

ENV_PREFIX = "PRINTRELAY_"


def _optionalFloat(value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return float(value)


@dataclass
class RelaySettings:
    """Settings for the print relay.

    Store:
        bucket: Bucket polled for print documents.
        project: GCP project for the storage client (None = environment default).
        prefix: Only objects below this prefix are considered.
        store_timeout: Per-request store timeout in seconds (None = library default).

    Dispatch:
        printers: Printer entries, each ``{"name", "host", "port"}``.
        poll_interval: Seconds between poll cycles.
        staging_dir: Directory for downloaded documents.
        job_suffix: Object keys must end with this suffix to become jobs.
        printer_timeout: Seconds allowed for one printer transmission.
    """

    bucket: str = ""
    project: Optional[str] = None
    prefix: str = ""
    printers: List[Dict[str, Any]] = field(default_factory=list)
    poll_interval: float = 5.0
    staging_dir: str = str(DEFAULT_STAGING_DIR)
    job_suffix: str = ".ps"
    printer_timeout: float = DEFAULT_TIMEOUT_SECONDS
    store_timeout: Optional[float] = None
    log_level: str = "INFO"
    log_folder: Optional[str] = None

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If the settings cannot drive a relay.
        """
        if not self.bucket.strip():
            raise ConfigurationError("no bucket configured (set PRINTRELAY_BUCKET or 'bucket')")
        if not self.printers:
            raise ConfigurationError("no printers configured")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.printer_timeout <= 0:
            raise ConfigurationError("printer_timeout must be positive")
        if self.store_timeout is not None and self.store_timeout <= 0:
            raise ConfigurationError("store_timeout must be positive when set")
        if not self.job_suffix:
            raise ConfigurationError("job_suffix must not be empty")
        self.printer_registry()

    def printer_registry(self) -> PrinterRegistry:
        return PrinterRegistry.from_entries(self.printers)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RelaySettings":
        settings = cls()
        try:
            for key, value in data.items():
                if key == "printers":
                    if not isinstance(value, list):
                        raise ConfigurationError("'printers' must be a list")
                    settings.printers = [dict(entry) for entry in value]
                elif key in _CONVERTERS:
                    setattr(settings, key, _CONVERTERS[key](value))
                else:
                    log.debug("Ignoring unknown configuration key %r", key)
        except (TypeError, ValueError) as error:
            raise ConfigurationError(str(error)) from error
        return settings


_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "bucket": str,
    "project": lambda value: str(value) if value else None,
    "prefix": str,
    "poll_interval": float,
    "staging_dir": str,
    "job_suffix": str,
    "printer_timeout": float,
    "store_timeout": _optionalFloat,
    "log_level": lambda value: str(value).upper(),
    "log_folder": lambda value: str(value) if value else None,
}


class ConfigManager:
    """Manages the persistent relay configuration file."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path to the config file. Defaults to ~/.printrelay/config.json
        """
        self.config_path = Path(config_path) if config_path else CONFIG_FILE
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from disk."""
        if not self.config_path.exists():
            log.info("Configuration file %s does not exist, using defaults", self.config_path)
            self._config = {}
            return

        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as error:
            raise ConfigurationError(f"cannot read {self.config_path}: {error}") from error

        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{self.config_path} must contain a JSON object")
        self._config = loaded
        log.info("Configuration loaded from %s", self.config_path)

    def save(self) -> bool:
        """
        Save configuration to disk with owner-only permissions.

        Returns:
            True if save was successful, False otherwise
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open("w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2, sort_keys=True)

            if os.name != "nt":
                os.chmod(self.config_path, stat.S_IRUSR | stat.S_IWUSR)

            log.info("Configuration saved to %s", self.config_path)
            return True
        except OSError as error:
            log.error("Failed to save configuration: %s", error)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._config[key] = value

    def load_settings(
        self,
        environ: Optional[Mapping[str, str]] = None,
        *,
        use_dotenv: bool = True,
    ) -> RelaySettings:
        """
        Build settings from the config file, overlaid with environment variables.

        ``PRINTRELAY_<FIELD>`` overrides the matching field; printers can only
        come from the file. A ``.env`` file in the working directory is read
        first when *use_dotenv* is set.
        """
        if environ is None:
            if use_dotenv:
                load_dotenv(find_dotenv(usecwd=True))
            environ = os.environ

        merged: Dict[str, Any] = dict(self._config)
        for key in _CONVERTERS:
            envValue = environ.get(f"{ENV_PREFIX}{key.upper()}")
            if envValue is not None and envValue.strip():
                merged[key] = envValue.strip()
        return RelaySettings.from_mapping(merged)


__all__ = ["CONFIG_DIR", "CONFIG_FILE", "ConfigManager", "RelaySettings"]
