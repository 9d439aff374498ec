"""
Shared engine instance for the API routers.
"""
from ..engine import PricingEngine

engine = PricingEngine.from_data_dir()


def get_engine() -> PricingEngine:
    """FastAPI dependency returning the live engine."""
    return engine
