"""FastAPI application: system routes and the pricing router."""
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config.settings import get_settings
from ..engine import PricingEngine
from ..exceptions import MalformedRecordError, PricingError
from ..logging_config import configure_logging
from .pricing_api import router as pricing_router
from .state import get_engine

configure_logging(get_settings().log_level)

app = FastAPI(
    title="Storefront Pricing API",
    description="Discount and pricing resolution for the storefront cart",
    version="1.0.0"
)

# Enable CORS for the storefront frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricing_router)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError):
    status_code = 422 if isinstance(exc, MalformedRecordError) else 400
    return JSONResponse(status_code=status_code, content={"detail": exc.message, **exc.details})


@app.get("/")
async def root():
    return {"status": "online", "message": "Storefront Pricing API Active"}


@app.get("/system/status")
async def get_status(engine: PricingEngine = Depends(get_engine)):
    settings = get_settings()
    return {
        "engine_active": True,
        "data_dir": str(engine.data_dir or settings.data_dir),
        "catalog": engine.catalog.counts(),
        "load_errors": list(engine.catalog.load_errors),
        "gst_rate": settings.gst_rate,
        "can_combine_discounts": settings.can_combine_discounts,
    }


@app.post("/system/reload")
async def reload_catalog(engine: PricingEngine = Depends(get_engine)):
    """Re-read the CSV catalog from disk."""
    engine.reload_data()
    return {"success": True, "catalog": engine.catalog.counts(), "load_errors": list(engine.catalog.load_errors)}
