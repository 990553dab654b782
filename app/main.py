import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.query import router as api_router
from app.dependencies import get_provider_manager
from mcp_client.registry import load_provider_configs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    manager = get_provider_manager()
    if settings.providers_file:
        for provider in load_provider_configs(settings.providers_file):
            manager.register(provider)
        await manager.connect_all()
    else:
        logger.warning("No providers file configured; agent will run without tools")

    yield

    await manager.disconnect_all()

app = FastAPI(
    title=settings.service_name,
    lifespan=lifespan
)

# CORS middleware - allow frontend to call API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/v1")

@app.get("/health")
async def health():
    return {"status": "ok"}
