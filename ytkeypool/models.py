"""Data models for API key management."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
import uuid

DEFAULT_KEY_NAME = "Unnamed API Key"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return uuid.uuid4().hex


@dataclass
class CredentialRecord:
    """A stored, encrypted API key with its usage and quota bookkeeping."""

    id: str
    secret: str
    is_active: bool = True
    usage_count: int = 0
    used_quota: int = 0
    last_used: datetime = field(default_factory=utcnow)
    last_reset: datetime = field(default_factory=utcnow)
    owner_id: Optional[str] = None
    name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def is_eligible(self, quota_threshold: int) -> bool:
        return self.is_active and self.used_quota < quota_threshold


@dataclass
class SelectedCredential:
    """A decrypted key handed out for the duration of one call."""

    record_id: str
    api_key: str = field(repr=False)

    def key_prefix(self) -> str:
        if len(self.api_key) <= 11:
            return self.api_key
        return f"{self.api_key[:8]}...{self.api_key[-3:]}"


@dataclass
class RotationResult:
    """Record ids touched by one rotation cycle."""

    activated: List[str] = field(default_factory=list)
    deactivated: List[str] = field(default_factory=list)
