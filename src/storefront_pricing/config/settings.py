"""
Centralized settings and path configuration for the pricing engine.
"""
import logging
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


# Customer category discounts (B2C), percent off product.price
CUSTOMER_DISCOUNTS = {
    'Normal': 0,
    'Standard': 5,
    'Premium': 10,
}

# Flat B2B tier discounts used when no ProductPricing row matches
B2B_TIER_DISCOUNTS = {
    'Bronze': 8,
    'Silver': 12,
    'Gold': 15,
}
DEFAULT_B2B_DISCOUNT = 5

# Bulk quantity breaks, highest threshold first: (min_quantity, percent)
BULK_BREAKS = ((50, 15), (20, 10), (10, 5))

DEFAULT_CUSTOMER_CATEGORY = 'Normal'
DEFAULT_B2B_TIER = 'Bronze'


def canonical_name(table: dict, name: Optional[str]) -> Optional[str]:
    """Key of `table` matching `name` case-insensitively, or `name` unchanged."""
    if not name:
        return name
    wanted = name.strip().lower()
    for key in table:
        if key.lower() == wanted:
            return key
    return name.strip()


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in ('true', '1', 'yes', 'on')


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Pricing policy
    gst_rate: float = 0.18
    margin_floor_ratio: float = 0.10
    can_combine_discounts: bool = True
    currency_symbol: str = '₹'

    log_level: str = 'INFO'

    @property
    def category_discounts_csv(self) -> Path:
        return self.data_dir / 'category_discounts.csv'

    @property
    def brand_discounts_csv(self) -> Path:
        return self.data_dir / 'brand_discounts.csv'

    @property
    def seasonal_discounts_csv(self) -> Path:
        return self.data_dir / 'seasonal_discounts.csv'

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        data_dir_env = os.environ.get('STOREFRONT_DATA_DIR')
        data_dir = Path(data_dir_env) if data_dir_env else Path(__file__).resolve().parent.parent / 'data'

        return cls(
            project_root=root,
            data_dir=data_dir,
            gst_rate=_env_float('STOREFRONT_GST_RATE', 0.18),
            margin_floor_ratio=_env_float('STOREFRONT_MARGIN_FLOOR', 0.10),
            can_combine_discounts=_env_bool('STOREFRONT_COMBINE_DISCOUNTS', True),
            log_level=os.environ.get('STOREFRONT_LOG_LEVEL', 'INFO'),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
