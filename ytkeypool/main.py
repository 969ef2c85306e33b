"""FastAPI application for the YouTube Data API key pool."""

import logging
from contextlib import asynccontextmanager
from typing import Dict

import httpx
from fastapi import FastAPI, Request

from ytkeypool.admin import admin_router
from ytkeypool.config import load_config
from ytkeypool.key_manager import KeyPoolManager
from ytkeypool.proxy import youtube_router
from ytkeypool.store import InMemoryCredentialStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: startup and shutdown."""
    config = load_config()

    logging.basicConfig(level=getattr(logging, config.log_level))

    http_client = httpx.AsyncClient(
        base_url=config.youtube_base_url,
        timeout=httpx.Timeout(10.0, read=30.0),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
    )

    key_manager = KeyPoolManager(config, InMemoryCredentialStore(), http_client)
    for index, api_key in enumerate(config.api_keys, start=1):
        await key_manager.add_credential(None, api_key, name=f"env_key_{index}")

    app.state.config = config
    app.state.http_client = http_client
    app.state.key_manager = key_manager

    logger.info("YouTube key pool started with %d keys", len(config.api_keys))

    yield

    await http_client.aclose()
    logger.info("YouTube key pool stopped")


app = FastAPI(title="YouTube API Key Pool", lifespan=lifespan)

app.include_router(admin_router)
app.include_router(youtube_router)


@app.get("/")
async def root(request: Request) -> Dict[str, object]:
    key_manager = request.app.state.key_manager
    status = await key_manager.get_status()
    return {
        "service": "YouTube API Key Pool",
        "status": "running",
        "keys_available": status["available_keys"],
        "total_keys": status["total_keys"],
    }


@app.get("/health")
async def health_check(request: Request) -> Dict[str, object]:
    """Health check endpoint with key pool status."""
    key_manager = request.app.state.key_manager
    status = await key_manager.get_status()
    return {
        "status": "healthy",
        "keys_available": status["available_keys"],
        "total_keys": status["total_keys"],
    }
