"""Retail Analytics Query API.

Answers natural-language business questions against each tenant's retail data:
- POST /api/bi/query - plan, validate and execute a question
- GET /api/bi/capabilities - capabilities visible to the tenant's tier
- GET /api/bi/history - recent questions, newest first
- GET /health - liveness
"""
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import bi
from config import settings
from orchestration import Orchestrator, TenantRateLimiter, RateLimitExceededError, get_orchestrator, get_rate_limiter
from utils import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging()
    missing = settings.validate()
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")

    if app.state.orchestrator is None:
        logger.info(f"Building orchestrator ({settings.STORAGE_BACKEND} storage)")
        app.state.orchestrator = get_orchestrator()
    logger.info(f"Loaded {len(app.state.orchestrator.registry)} capabilities")
    logger.info("Retail Analytics API ready")
    yield
    logger.info("Shutting down Retail Analytics API")


def create_app(
    orchestrator: Orchestrator | None = None,
    rate_limiter: TenantRateLimiter | None = None,
) -> FastAPI:
    """Build the application. Tests pass their own orchestrator and limiter."""
    app = FastAPI(
        title="Retail Analytics Query API",
        description="Natural-language business questions over sales, stock and product data.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.rate_limiter = rate_limiter or get_rate_limiter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RateLimitExceededError, bi.rate_limit_exceeded_handler)
    app.include_router(bi.router)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.APP_ENV}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("api.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
