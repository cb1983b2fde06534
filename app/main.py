"""
Coffee water chemistry API.
"""
import logging

from fastapi import FastAPI

from app.core.config import get_settings
from app.routers import water

logger = logging.getLogger(__name__)


def configure_logging(level: str = None):
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Coffee Water Calculator",
        description="Mineral dosing and range checks for coffee brewing water",
        version="1.0.0",
    )
    app.include_router(water.router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    logger.info(f"Water API mounted at {settings.api_prefix}")
    return app


app = create_app()
