from typing import Any, List, Optional

import pytest

import ytkeypool.crypto as crypto_module
from ytkeypool.config import Config
from ytkeypool.key_manager import KeyPoolManager
from ytkeypool.store import InMemoryCredentialStore

TEST_ENCRYPTION_KEY = "test-encryption-secret"


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch: pytest.MonkeyPatch):
    """Keep PBKDF2 cheap; tests select keys hundreds of times."""
    monkeypatch.setattr(crypto_module, "PBKDF2_ITERATIONS", 1_000)


def make_config(**overrides: Any) -> Config:
    values = {
        "encryption_key": TEST_ENCRYPTION_KEY,
        "retry_delay_seconds": 0,
    }
    values.update(overrides)
    return Config(**values)


class FakeYouTube:
    """Stand-in for YouTubeClient that just remembers its key."""

    def __init__(self, api_key: str):
        self.api_key = api_key


def make_manager(
    store: Optional[InMemoryCredentialStore] = None, **config_overrides: Any
) -> KeyPoolManager:
    return KeyPoolManager(
        make_config(**config_overrides),
        store if store is not None else InMemoryCredentialStore(),
        client_factory=FakeYouTube,
    )


async def add_keys(manager: KeyPoolManager, api_keys: List[str]) -> List[str]:
    return [
        await manager.add_credential("owner-1", api_key, name=api_key)
        for api_key in api_keys
    ]
