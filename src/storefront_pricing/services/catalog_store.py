"""
Catalog Store - Loads the discount catalog from CSV tables.

One CSV per table in the data directory. A missing file is an empty table;
a row that fails validation is skipped and reported in `load_errors` so one
bad record never takes the storefront down.
"""
import logging
from pathlib import Path
from typing import Callable, Optional

import pandas as pd

from ..engine.catalog import DiscountCatalog
from ..engine.models import (
    KIND_BRAND,
    KIND_CATEGORY,
    KIND_SEASONAL,
    AutoOffer,
    Coupon,
    CustomDiscount,
    Product,
    ProductPricing,
    ScopeDiscount,
)
from ..exceptions import MalformedRecordError

logger = logging.getLogger(__name__)


def _scope_parser(kind: str) -> Callable[[dict], ScopeDiscount]:
    return lambda record: ScopeDiscount.from_record(kind, record)


# (catalog attribute, file name, record parser)
TABLES = (
    ('products', 'products.csv', Product.from_record),
    ('coupons', 'coupons.csv', Coupon.from_record),
    ('auto_offers', 'auto_offers.csv', AutoOffer.from_record),
    ('custom_discounts', 'custom_discounts.csv', CustomDiscount.from_record),
    ('product_pricing', 'product_pricing.csv', ProductPricing.from_record),
    ('category_discounts', 'category_discounts.csv', _scope_parser(KIND_CATEGORY)),
    ('brand_discounts', 'brand_discounts.csv', _scope_parser(KIND_BRAND)),
    ('seasonal_discounts', 'seasonal_discounts.csv', _scope_parser(KIND_SEASONAL)),
)


class CatalogStore:
    """Reads the CSV backing store into a DiscountCatalog."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.load_errors: list[str] = []
        self._catalog: Optional[DiscountCatalog] = None

    @property
    def catalog(self) -> DiscountCatalog:
        """The last loaded catalog, loading on first access."""
        if self._catalog is None:
            self._catalog = self.load()
        return self._catalog

    def load(self) -> DiscountCatalog:
        """Read every table from disk."""
        self.load_errors = []
        catalog = DiscountCatalog()

        for attribute, file_name, parser in TABLES:
            records = self._load_csv(self.data_dir / file_name)
            setattr(catalog, attribute, self._parse_rows(file_name, records, parser))

        catalog.load_errors = list(self.load_errors)
        self._catalog = catalog

        counts = catalog.counts()
        logger.info(
            "Loaded catalog from %s: %s",
            self.data_dir,
            ", ".join(f"{name}={count}" for name, count in counts.items()),
        )
        if self.load_errors:
            logger.warning("Skipped %d malformed record(s)", len(self.load_errors))
        return catalog

    def reload(self) -> DiscountCatalog:
        """Re-read all tables, replacing the cached catalog."""
        return self.load()

    def _load_csv(self, path: Path) -> list[dict]:
        """Load a CSV as a list of string dicts (blank cells become '')."""
        if not path.exists():
            logger.debug("No %s in %s, using an empty table", path.name, self.data_dir)
            return []

        try:
            df = pd.read_csv(path, dtype=str).fillna('')
        except pd.errors.EmptyDataError:
            return []
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            self.load_errors.append(f"{path.name}: {e}")
            logger.error("Could not read %s: %s", path, e)
            return []

        df.columns = [str(col).strip() for col in df.columns]
        for col in df.columns:
            df[col] = df[col].astype(str).str.strip()
        return df.to_dict(orient='records')

    def _parse_rows(self, file_name: str, records: list[dict], parser: Callable) -> list:
        parsed = []
        for index, record in enumerate(records):
            try:
                parsed.append(parser(record))
            except MalformedRecordError as e:
                # +2: header row and 1-based line numbers
                message = f"{file_name} line {index + 2}: {e.reason}"
                self.load_errors.append(message)
                logger.warning(message)
        return parsed
