import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, cast

import httpx

from ytkeypool.errors import QuotaExceededError, YouTubeApiError

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded"})


def _parse_error(response: httpx.Response) -> Tuple[str, List[str], Any]:
    """Extract (message, reasons, payload) from a Google API error body."""
    try:
        payload = response.json()
    except ValueError:
        return response.text, [], response.text

    error_obj = payload.get("error", {}) if isinstance(payload, dict) else {}
    if not isinstance(error_obj, dict):
        return str(error_obj), [], payload

    error_dict = cast(Dict[str, Any], error_obj)
    message = str(error_dict.get("message", ""))
    reasons = [
        str(item.get("reason"))
        for item in error_dict.get("errors") or []
        if isinstance(item, dict) and item.get("reason")
    ]
    return message, reasons, payload


def _is_quota_response(status_code: int, reasons: List[str]) -> bool:
    return status_code == 403 and any(r in QUOTA_EXCEEDED_REASONS for r in reasons)


def error_from_response(response: httpx.Response) -> YouTubeApiError:
    message, reasons, payload = _parse_error(response)
    error_cls = (
        QuotaExceededError
        if _is_quota_response(response.status_code, reasons)
        else YouTubeApiError
    )
    return error_cls(
        response.status_code, message=message, reasons=reasons, payload=payload
    )


def is_quota_exceeded(exc: BaseException) -> bool:
    """Default predicate deciding whether a downstream failure is a quota error."""
    if isinstance(exc, QuotaExceededError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        _, reasons, _ = _parse_error(exc.response)
        return _is_quota_response(exc.response.status_code, reasons)
    return False


class YouTubeClient:
    """YouTube Data API v3 client bound to a single API key.

    Shares the application's ``httpx.AsyncClient``; the key travels as the
    ``key`` query parameter on every request.
    """

    def __init__(self, http_client: httpx.AsyncClient, api_key: str):
        self._http_client = http_client
        self._api_key = api_key

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        query = {k: v for k, v in (params or {}).items() if k != "key"}
        query["key"] = self._api_key

        response = await self._http_client.request(
            method=method,
            url=f"/{path.lstrip('/')}",
            params=query,
            json=json,
        )

        if response.status_code >= 400:
            error = error_from_response(response)
            logger.debug(
                "YouTube %s /%s failed: %s %s",
                method,
                path,
                response.status_code,
                error.reasons,
            )
            raise error

        if not response.content:
            return None
        return response.json()

    async def list(self, resource: str, **params: Any) -> Any:
        """Call ``{resource}.list``, e.g. ``list("videos", part="snippet", id=...)``."""
        return await self.request("GET", resource, params=params)
