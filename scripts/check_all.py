#!/usr/bin/env python
"""
Check pipeline - loads the CSV catalog, reports skipped records and runs the
golden pricing tests.

Usage:
    python scripts/check_all.py [data_dir]
"""
import subprocess
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from storefront_pricing.config.settings import get_settings
from storefront_pricing.logging_config import configure_logging
from storefront_pricing.services.catalog_store import CatalogStore


def main():
    configure_logging(get_settings().log_level)
    data_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else get_settings().data_dir

    print("=" * 60)
    print("STOREFRONT PRICING CHECK PIPELINE")
    print("=" * 60)
    print()

    print(f"[1/2] Loading catalog from {data_dir}...")
    store = CatalogStore(data_dir)
    catalog = store.load()

    if store.load_errors:
        print("\n❌ CATALOG HAS MALFORMED RECORDS")
        for error in store.load_errors:
            print(f"  ERROR: {error}")
        sys.exit(1)

    print()
    print("[2/2] Running golden tests...")
    test_result = subprocess.run(
        [sys.executable, '-m', 'pytest', 'tests/test_golden_cases.py', '-v', '--tb=short'],
        cwd=Path(__file__).parent.parent
    )

    if test_result.returncode != 0:
        print("\n❌ TESTS FAILED")
        sys.exit(1)

    print()
    print("=" * 60)
    print("✅ CHECK COMPLETE")
    print("=" * 60)
    print()
    print("Catalog:")
    for table, count in catalog.counts().items():
        print(f"  {table}: {count}")


if __name__ == "__main__":
    main()
