import os
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from storefront_pricing.config.settings import Settings
from storefront_pricing.engine import DiscountCatalog, PricingEngine, Product, ScopeDiscount
from storefront_pricing.engine.models import KIND_BRAND, KIND_CATEGORY, KIND_SEASONAL

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SEED_DATA_DIR = PROJECT_ROOT / 'src' / 'storefront_pricing' / 'data'

CATEGORY_SEED = [
    ('Audio', 15), ('Accessories', 20), ('Laptops', 10), ('Monitors', 12),
    ('Cameras', 8), ('Tablets', 18), ('Wearables', 25), ('Furniture', 30),
]
BRAND_SEED = [
    ('CyberAcoustics', 10), ('PowerTech', 15), ('AuraTech', 8), ('VisionTech', 12),
    ('GameTech', 20), ('DisplayPro', 10), ('ErgoTech', 25), ('AudioPro', 15),
]
SEASONAL_SEED = [
    ('DIWALI', 20, datetime(2025, 10, 1), datetime(2025, 11, 15, 23, 59, 59)),
    ('NEW_YEAR', 15, datetime(2025, 12, 25), datetime(2026, 1, 5, 23, 59, 59)),
    ('SUMMER_SALE', 10, datetime(2025, 4, 1), datetime(2025, 6, 30, 23, 59, 59)),
    ('MONSOON_SPECIAL', 12, datetime(2025, 7, 1), datetime(2025, 9, 30, 23, 59, 59)),
]


@pytest.fixture
def as_of():
    """A moment outside every seeded seasonal window."""
    return datetime(2026, 3, 15, 12, 0)


@pytest.fixture
def settings():
    """Default policy, independent of STOREFRONT_* environment variables."""
    return Settings(project_root=PROJECT_ROOT, data_dir=SEED_DATA_DIR)


@pytest.fixture
def seed_scope_tables():
    """The seeded category, brand and seasonal discount tables."""
    return {
        'category_discounts': [ScopeDiscount(KIND_CATEGORY, n, p) for n, p in CATEGORY_SEED],
        'brand_discounts': [ScopeDiscount(KIND_BRAND, n, p) for n, p in BRAND_SEED],
        'seasonal_discounts': [ScopeDiscount(KIND_SEASONAL, n, p, s, e) for n, p, s, e in SEASONAL_SEED],
    }


@pytest.fixture
def make_engine(settings):
    """Build an engine over an explicit in-memory catalog."""
    def _make(settings_override=None, **tables):
        return PricingEngine(DiscountCatalog(**tables), settings_override or settings)
    return _make


@pytest.fixture
def make_product():
    def _make(id='P-1', price=1000.0, mrp=None, category=None, brand=None, name=''):
        return Product(id=id, price=price, mrp=mrp, category=category, brand=brand, name=name or id)
    return _make
