"""Integration tests for the key pool - full stack with a mocked YouTube API."""

import pytest
import httpx
import respx
from httpx import AsyncClient, ASGITransport, Response
from ytkeypool.main import app as main_app
from ytkeypool.config import load_config
from ytkeypool.key_manager import KeyPoolManager
from ytkeypool.store import InMemoryCredentialStore

VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"


def quota_exceeded() -> Response:
    return Response(
        403,
        json={
            "error": {
                "code": 403,
                "message": "The request cannot be completed because you have exceeded your quota.",
                "errors": [
                    {
                        "message": "The request cannot be completed because you have exceeded your quota.",
                        "domain": "youtube.quota",
                        "reason": "quotaExceeded",
                    }
                ],
            }
        },
    )


@pytest.fixture
async def app(monkeypatch):
    """Set up app with test configuration."""
    monkeypatch.setenv("YOUTUBE_API_KEYS", "test_key_1,test_key_2,test_key_3")
    monkeypatch.setenv("YOUTUBE_API_KEY_ENCRYPTION_KEY", "integration-secret")
    monkeypatch.setenv("RETRY_DELAY_SECONDS", "0")

    config = load_config(use_dotenv=False)
    http_client = httpx.AsyncClient(base_url=config.youtube_base_url)
    key_manager = KeyPoolManager(config, InMemoryCredentialStore(), http_client)
    for index, api_key in enumerate(config.api_keys, start=1):
        await key_manager.add_credential(None, api_key, name=f"key_{index}")

    main_app.state.config = config
    main_app.state.http_client = http_client
    main_app.state.key_manager = key_manager

    yield main_app

    await http_client.aclose()

    if hasattr(main_app.state, "config"):
        del main_app.state.config
    if hasattr(main_app.state, "http_client"):
        del main_app.state.http_client
    if hasattr(main_app.state, "key_manager"):
        del main_app.state.key_manager


@pytest.mark.asyncio
async def test_complete_pool_flow(app):
    """Request -> key selection -> YouTube (mocked) -> quota charged."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        with respx.mock:
            videos_mock = respx.get(VIDEOS_URL).mock(
                return_value=Response(200, json={"items": [{"id": "abc"}]})
            )

            response = await client.get(
                "/youtube/videos", params={"part": "statistics", "id": "abc"}
            )

            assert response.status_code == 200
            assert response.json()["items"] == [{"id": "abc"}]
            assert videos_mock.call_count == 1

    status = await app.state.key_manager.get_status()
    charged = [key for key in status["keys"] if key["used_quota"] > 0]
    assert len(charged) == 1
    assert charged[0]["used_quota"] == 1
    assert charged[0]["usage_count"] == 1


@pytest.mark.asyncio
async def test_quota_exceeded_switches_keys(app):
    """A quotaExceeded 403 is retried transparently on a different key."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        with respx.mock:
            videos_mock = respx.get(VIDEOS_URL).mock(
                side_effect=[quota_exceeded(), Response(200, json={"items": []})]
            )

            response = await client.get("/youtube/videos", params={"id": "abc"})

            assert response.status_code == 200
            assert videos_mock.call_count == 2
            first_key = videos_mock.calls[0].request.url.params["key"]
            second_key = videos_mock.calls[1].request.url.params["key"]
            assert first_key != second_key

    status = await app.state.key_manager.get_status()
    assert status["exhausted_keys"] == 1
    assert status["available_keys"] == 2


@pytest.mark.asyncio
async def test_all_keys_exhausted_returns_final_quota_error(app):
    """Every key reports quotaExceeded: the caller sees the last 403."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        with respx.mock:
            videos_mock = respx.get(VIDEOS_URL).mock(return_value=quota_exceeded())

            response = await client.get("/youtube/videos", params={"id": "abc"})

            assert response.status_code == 403
            assert response.json()["error"]["errors"][0]["reason"] == "quotaExceeded"
            assert videos_mock.call_count == 3
            used_keys = {call.request.url.params["key"] for call in videos_mock.calls}
            assert used_keys == {"test_key_1", "test_key_2", "test_key_3"}

            response = await client.get("/youtube/videos", params={"id": "abc"})
            assert response.status_code == 503
            assert videos_mock.call_count == 3


@pytest.mark.asyncio
async def test_reset_restores_exhausted_keys(app):
    """An admin reset makes exhausted keys selectable again."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        with respx.mock:
            respx.get(VIDEOS_URL).mock(return_value=quota_exceeded())
            await client.get("/youtube/videos", params={"id": "abc"})

        assert (await client.get("/health")).json()["keys_available"] == 0

        response = await client.post("/admin/reset")
        assert response.status_code == 200

        assert (await client.get("/health")).json()["keys_available"] == 3


@pytest.mark.asyncio
async def test_non_quota_errors_are_not_retried(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        with respx.mock:
            videos_mock = respx.get(VIDEOS_URL).mock(
                return_value=Response(
                    403,
                    json={
                        "error": {
                            "code": 403,
                            "message": "Access forbidden.",
                            "errors": [{"reason": "forbidden"}],
                        }
                    },
                )
            )

            response = await client.get("/youtube/videos", params={"id": "abc"})

            assert response.status_code == 403
            assert videos_mock.call_count == 1

    status = await app.state.key_manager.get_status()
    assert status["available_keys"] == 3
    assert all(key["used_quota"] == 0 for key in status["keys"])
