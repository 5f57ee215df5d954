"""
Ko-fi Subscriber Hub - FastAPI Application
Receives Ko-fi membership webhooks and serves the subscriber dashboard
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
import uvicorn

from app.api.dependencies import get_store
from app.api.routes import dashboard, health, webhooks
from app.config import settings
from app.core.logger import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    configure_logging(settings.log_level)
    logger.info("Starting %s...", settings.app_name)

    store = get_store(settings)
    store.ensure_initialized()
    logger.info("Subscriber store: %s", settings.subscribers_file)
    logger.info("Reconcile policy: %s", settings.reconcile_policy)
    logger.info("Dashboard auth: %s", settings.dashboard_auth)
    if not settings.kofi_verification_token.get_secret_value():
        logger.warning("KOFI_VERIFICATION_TOKEN is not set; every webhook will be rejected")
    logger.info(f"API running on {settings.app_env} environment")
    logger.info("=" * 50)
    yield
    logger.info("Shutting down %s...", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Ko-fi subscription webhook handler and subscriber dashboard",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "Ko-fi webhook handler is running!"


app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["Health"])
app.include_router(webhooks.router, tags=["Webhooks"])
app.include_router(dashboard.router, tags=["Dashboard"])
app.include_router(dashboard.api_router, prefix=settings.api_v1_prefix, tags=["Dashboard"])


def run() -> None:
    configure_logging(settings.log_level)
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
