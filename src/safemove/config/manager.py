"""Reading and writing SafeMove configuration files."""

from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import ZONE_NAMES, SafeMoveConfig

DEFAULT_PATH = Path("config/safemove.yaml")


class ConfigManager:
    """
    Loads a SafeMoveConfig from YAML and checks the zones it points at.

    An explicit path must exist. Without one, the first file found in
    ``SEARCH_PATHS`` is used, and the built-in defaults apply when there is
    none.
    """

    SEARCH_PATHS = (
        DEFAULT_PATH,
        Path.home() / ".config" / "safemove" / "config.yaml",
        Path.home() / ".safemove" / "config.yaml",
    )

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path
        self.loaded_from: Path | None = None

    def locate(self) -> Path | None:
        """
        Find the file to load.

        Raises:
            ConfigurationError: If an explicit path does not exist.
        """
        if self.config_path is not None:
            if not self.config_path.is_file():
                raise ConfigurationError(f"Configuration file not found: {self.config_path.name}")
            return self.config_path

        for candidate in self.SEARCH_PATHS:
            if candidate.is_file():
                return candidate
        return None

    def load(self, require_zones: Iterable[str] = ()) -> SafeMoveConfig:
        """
        Load and validate the configuration.

        Args:
            require_zones: Zone names whose roots must resolve to an existing
                directory (environment first, then the file)

        Raises:
            ConfigurationError: If the file is unreadable or invalid, or a
                required zone root is unset or missing.
        """
        path = self.locate()
        if path is None:
            config = SafeMoveConfig()
        else:
            config = self._read(path)
        self.loaded_from = path

        for zone in require_zones:
            if zone not in ZONE_NAMES:
                raise ConfigurationError(f"Unknown zone: {zone}")
            if not config.zones.root_for(zone).is_dir():
                raise ConfigurationError(f"The {zone} zone root is not an existing directory")

        return config

    def save(self, config: SafeMoveConfig, path: Path | None = None) -> Path:
        """Write ``config`` as YAML, leaving unset zone roots out. Returns the path written."""
        target = path or self.config_path or DEFAULT_PATH
        target.parent.mkdir(parents=True, exist_ok=True)

        with open(target, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                config.model_dump(mode="json", exclude_none=True),
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )

        self.config_path = target
        return target

    def _read(self, path: Path) -> SafeMoveConfig:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path.name}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read {path.name}: {e.strerror}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {path.name} must be a mapping")

        try:
            return SafeMoveConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {path.name}: {e}") from e
