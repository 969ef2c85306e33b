"""Admin endpoints for key management."""

from dataclasses import asdict
from typing import Dict

from fastapi import APIRouter, Request, HTTPException
from starlette.responses import JSONResponse

from ytkeypool.errors import ConfigurationMissingError

admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/status")
async def get_all_status(request: Request) -> Dict[str, object]:
    """Get status of all API keys in the pool."""
    key_manager = request.app.state.key_manager
    return await key_manager.get_status()


@admin_router.get("/status/{key_id}")
async def get_key_status(request: Request, key_id: str) -> Dict[str, object]:
    """Get status of a specific API key."""
    key_manager = request.app.state.key_manager
    status = await key_manager.get_key_status(key_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Key {key_id} not found")
    return status


@admin_router.post("/reset")
async def reset_quotas(request: Request) -> Dict[str, object]:
    """Reset daily quota counters for all keys."""
    key_manager = request.app.state.key_manager
    count = await key_manager.reset_daily_quotas()
    return {"message": "Quotas reset successfully", "keys_reset": count}


@admin_router.post("/rotate")
async def rotate_keys(request: Request) -> Dict[str, object]:
    """Bring idle inactive keys back and retire the most used active ones."""
    key_manager = request.app.state.key_manager
    result = await key_manager.rotate_api_keys()
    return asdict(result)


@admin_router.post("/keys")
async def add_key(request: Request) -> JSONResponse:
    """Register a new API key in the pool."""
    key_manager = request.app.state.key_manager
    body = await request.json()
    api_key = body.get("api_key")
    if not api_key or not isinstance(api_key, str):
        raise HTTPException(status_code=400, detail="api_key is required")
    name = body.get("name")
    owner_id = body.get("owner_id")
    try:
        key_id = await key_manager.add_credential(owner_id, api_key, name)
    except ConfigurationMissingError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return JSONResponse(content={"key_id": key_id}, status_code=201)
