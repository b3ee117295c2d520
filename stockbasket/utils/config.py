"""Configuration management for StockBasket.

This module provides simple YAML configuration loading and access, plus the
typed engine settings derived from it.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytz
import yaml
from dotenv import load_dotenv

from stockbasket.utils.exceptions import ConfigurationError

CONFIG_ENV_VAR = "STOCKBASKET_CONFIG"


class Config:
    """Read-only view over a nested configuration mapping.

    Keys are addressed with dot paths; ``section.key`` walks into nested
    mappings. Falsy values such as ``0`` are returned as stored.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> config.get("rebalance.threshold_percent", 5)
        5
    """

    _MISSING = object()

    def __init__(self, config_dict: dict[str, Any]) -> None:
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load a YAML file; an empty file gives an empty Config.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigurationError: If the file is not valid YAML or its top
                                level is not a mapping
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {filepath}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"{filepath} must contain a mapping, got {type(data).__name__}"
            )
        return cls(data)

    def _lookup(self, key: str) -> Any:
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return self._MISSING
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        """Value at dot path ``key``, or ``default`` when absent or null."""
        value = self._lookup(key)
        if value is self._MISSING or value is None:
            return default
        return value

    def __getitem__(self, key: str) -> Any:
        value = self._lookup(key)
        if value is self._MISSING:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._lookup(key) is not self._MISSING

    def to_dict(self) -> dict[str, Any]:
        """Shallow copy of the underlying mapping."""
        return self._config.copy()


def default_config_path() -> Path:
    """Path of the bundled default configuration file."""
    root_dir = Path(__file__).parent.parent.parent
    return root_dir / "config" / "default.yaml"


def load_config(filepath: str | Path | None = None) -> Config:
    """Helper function to load configuration.

    Resolution order: explicit ``filepath``, then the ``STOCKBASKET_CONFIG``
    environment variable (a ``.env`` file in the working directory is read
    first), then ``config/default.yaml``. When nothing is found an empty
    Config is returned and every setting falls back to its default.

    Args:
        filepath: Path to YAML configuration file.

    Returns:
        Config instance
    """
    load_dotenv()

    if filepath is None:
        filepath = os.getenv(CONFIG_ENV_VAR)

    if filepath is None:
        filepath = default_config_path()
        if not filepath.exists():
            return Config({})

    return Config.from_file(filepath)


@dataclass(frozen=True)
class EngineSettings:
    """Typed engine parameters.

    Attributes:
        min_weight: Smallest weight a constituent may carry (percent)
        max_constituents: Largest basket size
        weight_tolerance: Allowed deviation of the weight sum from 100
        min_investment_rounding: Minimum investment is rounded up to this unit
        rebalance_threshold: Default drift tolerance in percentage points
        min_sip_amount: Smallest SIP installment amount
        market_timezone: Timezone used to decide "today" for SIP execution
        log_level: Root log level
    """

    min_weight: Decimal = Decimal("0.5")
    max_constituents: int = 20
    weight_tolerance: Decimal = Decimal("0.01")
    min_investment_rounding: Decimal = Decimal("100")
    rebalance_threshold: Decimal = Decimal("5")
    min_sip_amount: Decimal = Decimal("500")
    market_timezone: str = "Asia/Kolkata"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate settings."""
        if not Decimal("0") < self.min_weight < Decimal("100"):
            raise ConfigurationError(
                f"min_weight must be in (0, 100), got {self.min_weight}"
            )
        if self.max_constituents < 1:
            raise ConfigurationError(
                f"max_constituents must be >= 1, got {self.max_constituents}"
            )
        if self.min_weight * self.max_constituents > Decimal("100"):
            raise ConfigurationError(
                "min_weight * max_constituents must not exceed 100, got "
                f"{self.min_weight} * {self.max_constituents}"
            )
        if self.weight_tolerance < 0:
            raise ConfigurationError(
                f"weight_tolerance must be >= 0, got {self.weight_tolerance}"
            )
        if self.min_investment_rounding <= 0:
            raise ConfigurationError(
                "min_investment_rounding must be positive, got "
                f"{self.min_investment_rounding}"
            )
        if self.rebalance_threshold < 0:
            raise ConfigurationError(
                f"rebalance_threshold must be >= 0, got {self.rebalance_threshold}"
            )
        if self.min_sip_amount < 0:
            raise ConfigurationError(
                f"min_sip_amount must be >= 0, got {self.min_sip_amount}"
            )
        if self.market_timezone not in pytz.all_timezones_set:
            raise ConfigurationError(
                f"Unknown market_timezone: {self.market_timezone}"
            )

    @property
    def timezone(self) -> pytz.BaseTzInfo:
        """Market timezone as a pytz timezone."""
        return pytz.timezone(self.market_timezone)

    @classmethod
    def from_config(cls, config: Config) -> "EngineSettings":
        """Build settings from a Config, falling back to defaults.

        Raises:
            ConfigurationError: If a value has the wrong type or range
        """
        defaults = cls()
        try:
            return cls(
                min_weight=_decimal(config.get("basket.min_weight", defaults.min_weight)),
                max_constituents=int(
                    config.get("basket.max_constituents", defaults.max_constituents)
                ),
                weight_tolerance=_decimal(
                    config.get("basket.weight_tolerance", defaults.weight_tolerance)
                ),
                min_investment_rounding=_decimal(
                    config.get(
                        "allocation.min_investment_rounding",
                        defaults.min_investment_rounding,
                    )
                ),
                rebalance_threshold=_decimal(
                    config.get("rebalance.threshold_percent", defaults.rebalance_threshold)
                ),
                min_sip_amount=_decimal(
                    config.get("sip.min_amount", defaults.min_sip_amount)
                ),
                market_timezone=str(
                    config.get("market.timezone", defaults.market_timezone)
                ),
                log_level=str(config.get("logging.level", defaults.log_level)),
            )
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))
