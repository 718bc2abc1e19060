import logging
from typing import Optional

import httpx
from fastapi import FastAPI

from .config import Config
from .logging import setup_logging
from .orchestrator.chat import ChatService, build_chat_service
from .routers.chat import router as chat_router
from .routers.goals import router as goals_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Config] = None,
    chat_service: Optional[ChatService] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    config = config or Config.from_env()
    setup_logging(config)
    app = FastAPI(title="Lumi Goal Companion", version="0.1.0")
    app.state.config = config
    app.state.chat_service = chat_service or build_chat_service(config, http_client)
    if not config.is_configured:
        logger.warning("LUMI_PRIMARY_API_KEY is not set; chat requests will be refused")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "configured": config.is_configured, "fallback": config.has_fallback}

    app.include_router(chat_router)
    app.include_router(goals_router)
    return app


app = create_app()
