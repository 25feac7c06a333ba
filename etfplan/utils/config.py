"""Configuration management for ETF Planner.

Settings come from three layers, later ones winning: the built-in
DEFAULT_CONFIG, a YAML file (``config/default.yaml`` unless another is
given) and ``ETFPLAN_*`` variables from the environment or a ``.env`` file.
"""

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from etfplan.utils.exceptions import ConfigurationError

DEFAULT_CONFIG: dict[str, Any] = {
    "project": {"name": "etf-planner"},
    "logging": {"level": "INFO"},
    "database": {"path": "data/etfplan.db"},
    "prices": {
        "provider": "yfinance",
        "timeout_seconds": 10.0,
        "max_workers": 8,
        "unit_multiplier": 1.0,
    },
    "planner": {
        "strategy": "proportional",
        "min_deviation": 1e-9,
        "knapsack": {"price_scale": 1},
    },
}

# Environment variable -> dotted config key
ENV_OVERRIDES = {
    "ETFPLAN_DB_PATH": "database.path",
    "ETFPLAN_LOG_LEVEL": "logging.level",
    "ETFPLAN_STRATEGY": "planner.strategy",
    "ETFPLAN_PRICE_PROVIDER": "prices.provider",
}

STRATEGIES = ("proportional", "knapsack")
PRICE_PROVIDERS = ("yfinance", "static")


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


_MISSING = object()


class Config:
    """Planner settings as a nested dict with dotted-key access.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> config.get("planner.strategy", "proportional")
        'proportional'
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Read a YAML mapping; an empty file gives an empty Config.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If the file is not valid YAML or its top
                level is not a mapping
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if config_dict is None:
            return cls({})
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"{path} must contain a mapping, got {type(config_dict).__name__}"
            )
        return cls(config_dict)

    def _lookup(self, key: str) -> Any:
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        """Value at a dotted key such as ``prices.timeout_seconds``.

        Missing keys and explicit nulls (``timeout_seconds:`` left blank in
        YAML) both give ``default``.
        """
        value = self._lookup(key)
        return default if value is _MISSING or value is None else value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation, creating sections."""
        keys = key.split(".")
        section = self._config
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value

    def __getitem__(self, key: str) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def to_dict(self) -> dict[str, Any]:
        """Get the full configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self) -> None:
        """Check planner and price settings.

        Raises:
            ConfigurationError: If any value is out of range
        """
        strategy = self.get("planner.strategy", "proportional")
        if strategy not in STRATEGIES:
            raise ConfigurationError(
                f"planner.strategy must be one of {STRATEGIES}, got {strategy!r}"
            )
        provider = self.get("prices.provider", "yfinance")
        if provider not in PRICE_PROVIDERS:
            raise ConfigurationError(
                f"prices.provider must be one of {PRICE_PROVIDERS}, got {provider!r}"
            )
        if float(self.get("prices.timeout_seconds", 10.0)) <= 0:
            raise ConfigurationError("prices.timeout_seconds must be > 0")
        if int(self.get("prices.max_workers", 8)) < 1:
            raise ConfigurationError("prices.max_workers must be >= 1")
        if float(self.get("prices.unit_multiplier", 1.0)) <= 0:
            raise ConfigurationError("prices.unit_multiplier must be > 0")
        if float(self.get("planner.min_deviation", 1e-9)) < 0:
            raise ConfigurationError("planner.min_deviation must be >= 0")
        if int(self.get("planner.knapsack.price_scale", 1)) < 1:
            raise ConfigurationError("planner.knapsack.price_scale must be >= 1")


def load_config(filepath: str | Path | None = None) -> Config:
    """Load configuration merged over the built-in defaults.

    Reads ``config/default.yaml`` from the project root when no path is given
    and the file exists. A ``.env`` file in the working directory is loaded
    first, then ``ETFPLAN_*`` environment variables override file values.

    Args:
        filepath: Path to YAML configuration file. If None, uses default path.

    Returns:
        Validated Config instance

    Raises:
        FileNotFoundError: If an explicit filepath doesn't exist
        ConfigurationError: If the merged configuration is invalid
    """
    load_dotenv()

    if filepath is None:
        root_dir = Path(__file__).parent.parent.parent
        default_path = root_dir / "config" / "default.yaml"
        file_dict = Config.from_file(default_path).to_dict() if default_path.exists() else {}
    else:
        file_dict = Config.from_file(filepath).to_dict()

    config = Config(_deep_merge(DEFAULT_CONFIG, file_dict))

    for env_var, key in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            config.set(key, value)

    config.validate()
    return config
