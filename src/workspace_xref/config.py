# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the workspace cross-reference server."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from workspace_xref.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variable consulted when --workspace-root is not given
WORKSPACE_ROOT_ENV = "WORKSPACE_XREF_ROOT"

# Container default, used when neither the CLI nor the environment name a root
DEFAULT_WORKSPACE_ROOT = "/app/workspace"

DEFAULT_CONFIG_FILENAME = ".workspace_xref.yml"

PROJECT_FILE_NAMES = ("pyproject.toml", "setup.py")


class Config:
    """Configuration for the workspace cross-reference server.

    Loads configuration from .workspace_xref.yml with validation and defaults.
    Invalid values are logged and replaced by defaults; a broken config file
    never prevents start-up.
    """

    DEFAULTS: Dict[str, Any] = {
        "ignore_patterns": [],
        "max_file_size_bytes": 10 * 1024 * 1024,
        "max_file_lines": 20000,
        "resolver_max_workers": 8,
        "load_timeout_seconds": 600,
        "json_indent": 2,
        "preload_on_startup": True,
        "watch_workspace": False,
        "watch_debounce_seconds": 1.0,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = copy.deepcopy(self.DEFAULTS)
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = copy.deepcopy(self.DEFAULTS)
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = copy.deepcopy(self.DEFAULTS)
                return

            self._config = copy.deepcopy(self.DEFAULTS)
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = copy.deepcopy(self.DEFAULTS)
        except OSError as e:
            logger.warning(
                f"Unable to read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = copy.deepcopy(self.DEFAULTS)

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            if isinstance(self.DEFAULTS[key], float):
                value = float(value)
            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        default = self.DEFAULTS[key]

        # bool is a subclass of int; never accept it for numeric settings
        if isinstance(default, bool):
            return isinstance(value, bool)
        if isinstance(value, bool):
            return False

        if isinstance(default, float):
            return isinstance(value, (int, float)) and value > 0

        if not isinstance(value, type(default)):
            return False

        if key == "json_indent":
            return bool(0 <= value <= 8)
        elif key in (
            "max_file_size_bytes",
            "max_file_lines",
            "resolver_max_workers",
            "load_timeout_seconds",
        ):
            return bool(value > 0)
        elif key == "ignore_patterns":
            return all(isinstance(p, str) for p in value)

        return True

    @property
    def ignore_patterns(self) -> List[str]:
        """Glob patterns excluded from workspace loading and watching."""
        value = self._config["ignore_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def max_file_size_bytes(self) -> int:
        """Source files larger than this are skipped during load."""
        value = self._config["max_file_size_bytes"]
        assert isinstance(value, int)
        return value

    @property
    def max_file_lines(self) -> int:
        """Source files with more lines than this are skipped during load."""
        value = self._config["max_file_lines"]
        assert isinstance(value, int)
        return value

    @property
    def resolver_max_workers(self) -> int:
        """Worker threads used for per-project declaration lookups."""
        value = self._config["resolver_max_workers"]
        assert isinstance(value, int)
        return value

    @property
    def load_timeout_seconds(self) -> int:
        """Upper bound on a single workspace load before it is cancelled."""
        value = self._config["load_timeout_seconds"]
        assert isinstance(value, int)
        return value

    @property
    def json_indent(self) -> Optional[int]:
        """Indentation of JSON responses; None means compact output."""
        value = self._config["json_indent"]
        assert isinstance(value, int)
        return value or None

    @property
    def preload_on_startup(self) -> bool:
        """Whether the workspace is loaded as soon as the server starts."""
        value = self._config["preload_on_startup"]
        assert isinstance(value, bool)
        return value

    @property
    def watch_workspace(self) -> bool:
        """Whether file changes trigger an automatic refresh."""
        value = self._config["watch_workspace"]
        assert isinstance(value, bool)
        return value

    @property
    def watch_debounce_seconds(self) -> float:
        """Quiet period after the last file change before refreshing."""
        value = self._config["watch_debounce_seconds"]
        assert isinstance(value, float)
        return value


def resolve_workspace_root(
    cli_value: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Determine the workspace root supplied at process start.

    Precedence: command line, then WORKSPACE_XREF_ROOT, then /app/workspace.
    A project file (pyproject.toml, setup.py) is accepted and kept as given;
    the engine loads its directory.

    Args:
        cli_value: Value of --workspace-root, if any.
        environ: Environment mapping (default: os.environ).

    Returns:
        Absolute path of the workspace root.

    Raises:
        ConfigurationError: If the root is blank or does not exist.
    """
    env = os.environ if environ is None else environ
    raw = cli_value or env.get(WORKSPACE_ROOT_ENV) or DEFAULT_WORKSPACE_ROOT

    if not raw.strip():
        raise ConfigurationError("Workspace root must not be blank")

    root = Path(raw).expanduser().resolve()
    if not root.exists():
        raise ConfigurationError(f"Workspace root does not exist: {root}")
    if root.is_file() and root.name not in PROJECT_FILE_NAMES:
        raise ConfigurationError(
            f"Workspace root must be a directory or one of {', '.join(PROJECT_FILE_NAMES)}: {root}"
        )

    return root
