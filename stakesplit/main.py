"""FastAPI application entry point for stakesplit."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from stakesplit.api import optimize as optimize_api
from stakesplit.config import settings
from stakesplit.rate_limit import RateLimitMiddleware

__version__ = "0.1.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    logger.info("Starting stakesplit...")
    if settings.backend_base_url:
        logger.info(f"Proxying optimize requests to {settings.backend_base_url}")
    else:
        logger.info(
            f"Solving in-process (max budget {settings.max_budget}, "
            f"max candidates {settings.max_candidates}, timeout {settings.solve_timeout_seconds}s)"
        )
    yield
    logger.info("Shutting down stakesplit...")


# Create FastAPI app
app = FastAPI(
    title="stakesplit",
    description="Optimal integer budget allocation across mutually-exclusive outcomes",
    version=__version__,
    lifespan=lifespan,
)

# Middleware stack (added in reverse, outermost first): RateLimit → GZip
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RateLimitMiddleware, max_requests=settings.rate_limit_per_minute)

app.include_router(optimize_api.router, prefix="/api", tags=["optimize"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stakesplit.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
