# backend/coachwire/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Dict

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.config import settings
from .errors import register_error_handlers
from .monitoring.sentry import init_sentry
from .routes.v1 import classes as classes_v1, prometheus as prometheus_routes

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = "CoachWire API"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")
    init_sentry(settings)
    yield
    logger.info(f"{API_TITLE} shutting down...")


app = FastAPI(
    title=API_TITLE,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(classes_v1.router, prefix="/classes")

app.include_router(api_v1)
app.include_router(prometheus_routes.router)


@app.get("/health", include_in_schema=False)
def health_check() -> Dict[str, str]:
    """Liveness probe; does not touch the database or the gateway."""
    return {"status": "ok", "version": __version__, "environment": settings.environment}
