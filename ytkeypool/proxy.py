"""Forward YouTube Data API ``list`` calls through the key pool."""

import logging
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse, Response

from ytkeypool.errors import PoolExhaustedError, YouTubeApiError
from ytkeypool.youtube_client import YouTubeClient

logger = logging.getLogger(__name__)

youtube_router = APIRouter(prefix="/youtube", tags=["youtube"])


def _query_params(request: Request) -> Dict[str, Union[str, List[str]]]:
    """Collect query params, keeping repeated keys as lists and dropping ``key``."""
    params: Dict[str, Union[str, List[str]]] = {}
    for name in request.query_params.keys():
        if name == "key" or name in params:
            continue
        values = request.query_params.getlist(name)
        params[name] = values if len(values) > 1 else values[0]
    return params


@youtube_router.get("/{resource}")
async def list_resource(request: Request, resource: str) -> Response:
    """Call ``{resource}.list`` with a pooled key, billed at that method's cost."""
    key_manager = request.app.state.key_manager
    params = _query_params(request)

    async def call(youtube: YouTubeClient) -> Any:
        return await youtube.request("GET", resource, params=params)

    try:
        data = await key_manager.call_with_pool(call, f"{resource}.list")
    except PoolExhaustedError:
        return JSONResponse(
            content={
                "error": {
                    "code": 503,
                    "message": "All API keys exhausted",
                    "status": "UNAVAILABLE",
                }
            },
            status_code=503,
            headers={"Retry-After": "60"},
        )
    except YouTubeApiError as exc:
        logger.warning("YouTube %s.list failed with %s", resource, exc.status_code)
        if isinstance(exc.payload, (dict, list)):
            return JSONResponse(content=exc.payload, status_code=exc.status_code)
        return Response(content=str(exc.payload or ""), status_code=exc.status_code)

    return JSONResponse(content=data)
