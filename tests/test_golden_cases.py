"""
Golden test cases for pricing engine regression testing.
These tests run the packaged seed catalog and should fail if pricing logic
or the seed data changes unexpectedly.
"""
import csv
import os
from datetime import datetime

import pytest

from storefront_pricing.config.settings import Settings
from storefront_pricing.engine import PricingEngine
from storefront_pricing.policy.customer_resolver import resolve_customer_context

from conftest import PROJECT_ROOT, SEED_DATA_DIR


@pytest.fixture(scope="module")
def engine():
    """Create a single engine over the seed catalog for all tests."""
    settings = Settings(project_root=PROJECT_ROOT, data_dir=SEED_DATA_DIR)
    return PricingEngine.from_data_dir(SEED_DATA_DIR, settings)


def load_golden_cases():
    """Load golden test cases from CSV."""
    cases_path = os.path.join(os.path.dirname(__file__), 'golden_cases.csv')

    cases = []
    with open(cases_path, 'r', newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            cases.append(row)

    return cases


def profile_for(spec: str) -> dict:
    """'B2C:Premium', 'B2B:Gold' or 'B2B-unverified:Gold' to a profile record."""
    kind, tier = spec.split(':')
    if kind == 'B2C':
        return {'customer_type': 'B2C', 'customer_category': tier}
    return {'customer_type': 'B2B', 'gst_verified': kind == 'B2B', 'b2b_category': tier}


@pytest.mark.parametrize("case", load_golden_cases(), ids=lambda c: c['case_id'])
def test_golden_case(engine, case):
    """Test that pricing matches expected golden case."""
    product = engine.catalog.get_product(case['product_id'])
    assert product is not None, f"Product {case['product_id']} not in seed catalog"

    context = resolve_customer_context(profile_for(case['profile']))
    unit = engine.resolve_unit_price(
        product, context, int(case['qty']), as_of=datetime.fromisoformat(case['as_of'])
    )

    assert unit.price == pytest.approx(float(case['expected_unit_price']), abs=0.001), \
        f"Price mismatch for {case['case_id']}: expected {case['expected_unit_price']}, got {unit.price}"
    assert unit.source == case['expected_source']
    assert unit.applied_rules == case['expected_rules'].split('|')
    assert unit.price >= 0.10 * product.price
