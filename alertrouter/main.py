import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from alertrouter.api.alerts import router as alerts_router
from alertrouter.api.channels import router as channels_router
from alertrouter.config import settings
from alertrouter.db.database import engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup and release DB connections on shutdown."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Alert router starting (business timezone %s)", settings.business_timezone)
    yield
    await engine.dispose()


app = FastAPI(
    title="Alert Router",
    description="Severity-based alert routing and notification channel management",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(channels_router)
app.include_router(alerts_router)


@app.get("/health")
async def health():
    return {"status": "healthy"}
