"""Key pool management."""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta, tzinfo
from typing import (
    Any,
    Awaitable,
    Callable,
    Collection,
    Dict,
    Optional,
    Set,
    TypeVar,
    cast,
)
from zoneinfo import ZoneInfo

import httpx

from ytkeypool.config import Config
from ytkeypool.crypto import decrypt_secret, encrypt_secret
from ytkeypool.errors import PoolExhaustedError, TransientStoreContentionError
from ytkeypool.models import (
    DEFAULT_KEY_NAME,
    CredentialRecord,
    RotationResult,
    SelectedCredential,
    new_record_id,
    utcnow,
)
from ytkeypool.quota_costs import get_quota_cost
from ytkeypool.store import (
    ASCENDING,
    DESCENDING,
    CredentialStore,
    is_transient_contention,
)
from ytkeypool.youtube_client import YouTubeClient, is_quota_exceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Least used first, then least quota consumed, then longest idle.
SELECTION_ORDER = (
    ("usage_count", ASCENDING),
    ("used_quota", ASCENDING),
    ("last_used", ASCENDING),
)

QuotaClassifier = Callable[[BaseException], bool]
ClientFactory = Callable[[str], Any]


class KeyPoolManager:
    """Selects, charges, resets and rotates YouTube API keys held in a store."""

    def __init__(
        self,
        config: Config,
        store: CredentialStore,
        http_client: Optional[httpx.AsyncClient] = None,
        client_factory: Optional[ClientFactory] = None,
        quota_classifier: QuotaClassifier = is_quota_exceeded,
    ):
        if client_factory is None and http_client is None:
            raise ValueError("Either http_client or client_factory is required")

        self.config: Config = config
        self.store: CredentialStore = store
        self._http_client = http_client
        self._client_factory: ClientFactory = client_factory or self._youtube_client
        self._quota_classifier: QuotaClassifier = quota_classifier

    def _youtube_client(self, api_key: str) -> YouTubeClient:
        return YouTubeClient(cast(httpx.AsyncClient, self._http_client), api_key)

    async def select_credential(
        self, exclude_ids: Collection[str] = ()
    ) -> SelectedCredential:
        """Pick one eligible key at random among the K least used and decrypt it.

        Raises:
            PoolExhaustedError: If no active key is under the quota threshold.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._select_once(exclude_ids)
            except Exception as exc:
                if (
                    not is_transient_contention(exc)
                    or attempt >= self.config.selection_attempts
                ):
                    raise
                logger.warning(
                    "Store contention while selecting key (attempt=%s/%s): %s",
                    attempt,
                    self.config.selection_attempts,
                    exc,
                )
                await asyncio.sleep(self.config.retry_delay_seconds)

    async def _select_once(self, exclude_ids: Collection[str]) -> SelectedCredential:
        candidates = await self.store.find(
            is_active=True,
            used_quota_below=self.config.quota_threshold,
            exclude_ids=exclude_ids,
            sort=SELECTION_ORDER,
            limit=self.config.selection_pool_size,
        )
        if not candidates:
            raise PoolExhaustedError()

        record = secrets.choice(candidates)

        updated = await self.store.update_one(
            record.id,
            inc={"usage_count": 1},
            set_fields={"last_used": utcnow()},
        )
        if not updated:
            raise TransientStoreContentionError(
                f"Key {record.id} disappeared during selection"
            )

        return SelectedCredential(
            record_id=record.id,
            api_key=await asyncio.to_thread(
                decrypt_secret, record.secret, self.config.encryption_key
            ),
        )

    async def charge_quota(self, record_id: str, resource_method: str) -> None:
        cost = get_quota_cost(resource_method, self.config.quota_costs)
        updated = await self.store.update_one(record_id, inc={"used_quota": cost})
        if not updated:
            logger.warning("Cannot charge quota, key %s not found", record_id)

    async def mark_quota_exhausted(self, record_id: str) -> None:
        """Lift the key's used quota to the threshold so selection skips it."""
        await self.store.update_one(
            record_id, maximum={"used_quota": self.config.quota_threshold}
        )

    async def _try_mark_quota_exhausted(self, record_id: str) -> None:
        try:
            await self.mark_quota_exhausted(record_id)
        except Exception as exc:
            if not is_transient_contention(exc):
                raise
            # The key is still excluded for the rest of this call.
            logger.warning(
                "Store contention while marking key %s exhausted: %s", record_id, exc
            )

    async def reset_daily_quotas(self) -> int:
        count = await self.store.update_many(
            {"used_quota": 0, "usage_count": 0, "last_reset": utcnow()}
        )
        logger.info("Daily quotas reset for %d keys", count)
        return count

    async def rotate_api_keys(self) -> RotationResult:
        """Swap the most idle inactive keys in for the most used active ones.

        Both batches are read before anything is written, so a key is never
        activated and deactivated in the same cycle.
        """
        batch_size = self.config.rotation_batch_size

        stale = await self.store.find(
            is_active=False, sort=(("last_used", ASCENDING),), limit=batch_size
        )
        saturated = await self.store.find(
            is_active=True, sort=(("used_quota", DESCENDING),), limit=batch_size
        )

        result = RotationResult(
            activated=[record.id for record in stale],
            deactivated=[record.id for record in saturated],
        )

        if result.activated:
            await self.store.update_many(
                {"is_active": True, "used_quota": 0, "usage_count": 0},
                record_ids=result.activated,
            )
        if result.deactivated:
            await self.store.update_many(
                {"is_active": False}, record_ids=result.deactivated
            )

        logger.info(
            "Rotated keys: %d activated, %d deactivated",
            len(result.activated),
            len(result.deactivated),
        )
        return result

    async def add_credential(
        self, owner_id: Optional[str], plaintext_secret: str, name: Optional[str] = None
    ) -> str:
        now = utcnow()
        record = CredentialRecord(
            id=new_record_id(),
            secret=await asyncio.to_thread(
                encrypt_secret, plaintext_secret, self.config.encryption_key
            ),
            is_active=True,
            usage_count=0,
            used_quota=0,
            last_used=now,
            last_reset=now,
            owner_id=owner_id,
            name=name or DEFAULT_KEY_NAME,
            created_at=now,
        )
        await self.store.insert(record)
        logger.info("Added key %s (%s)", record.id, record.name)
        return record.id

    async def call_with_pool(
        self,
        downstream_call: Callable[[Any], Awaitable[T]],
        resource_method: str,
    ) -> T:
        """Run ``downstream_call`` with a pooled key, failing over on quota errors.

        Each attempt selects a fresh key, skipping keys that already reported
        quota exhaustion during this call.  Quota and store-contention errors
        are retried up to ``config.max_retries`` times; anything else is
        raised unchanged.
        """
        max_attempts = self.config.max_retries + 1
        exhausted_ids: Set[str] = set()
        last_error: Optional[Exception] = None
        last_quota_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                credential = await self.select_credential(exclude_ids=exhausted_ids)
            except PoolExhaustedError:
                if last_quota_error is not None:
                    logger.error(
                        "No keys left for %s after %d quota failures",
                        resource_method,
                        len(exhausted_ids),
                    )
                    raise last_quota_error from None
                logger.error("Key pool exhausted for %s", resource_method)
                raise
            except Exception as exc:
                if not is_transient_contention(exc):
                    raise
                logger.warning(
                    "Store contention for %s (attempt=%s/%s)",
                    resource_method,
                    attempt,
                    max_attempts,
                )
                last_error = exc
                continue

            client = self._client_factory(credential.api_key)

            try:
                result = await downstream_call(client)
            except Exception as exc:
                if self._quota_classifier(exc):
                    exhausted_ids.add(credential.record_id)
                    await self._try_mark_quota_exhausted(credential.record_id)
                    logger.warning(
                        "Quota exceeded for %s (key=%s, attempt=%s/%s)",
                        resource_method,
                        credential.key_prefix(),
                        attempt,
                        max_attempts,
                    )
                    last_error = last_quota_error = exc
                    continue
                if is_transient_contention(exc):
                    logger.warning(
                        "Store contention during %s (attempt=%s/%s)",
                        resource_method,
                        attempt,
                        max_attempts,
                    )
                    last_error = exc
                    continue
                raise

            await self.charge_quota(credential.record_id, resource_method)
            return result

        logger.error(
            "Giving up on %s after %d attempts", resource_method, max_attempts
        )
        if last_error is None:
            raise RuntimeError(f"No attempt was made for {resource_method}")
        raise last_error

    async def get_status(self) -> Dict[str, object]:
        records = await self.store.find(sort=(("created_at", ASCENDING),))
        threshold = self.config.quota_threshold

        active = [record for record in records if record.is_active]
        available_keys = sum(1 for record in active if record.is_eligible(threshold))
        exhausted_keys = sum(1 for record in active if record.used_quota >= threshold)

        return {
            "total_keys": len(records),
            "active_keys": len(active),
            "available_keys": available_keys,
            "exhausted_keys": exhausted_keys,
            "quota_threshold": threshold,
            "next_reset": self._next_reset().isoformat(),
            "keys": [self._format_key_status(record) for record in records],
        }

    async def get_key_status(self, record_id: str) -> Optional[Dict[str, object]]:
        record = await self.store.get(record_id)
        if not record:
            return None
        return self._format_key_status(record)

    def _format_key_status(self, record: CredentialRecord) -> Dict[str, object]:
        return {
            "id": record.id,
            "name": record.name,
            "owner_id": record.owner_id,
            "is_active": record.is_active,
            "usage_count": record.usage_count,
            "used_quota": record.used_quota,
            "quota_remaining": max(self.config.quota_threshold - record.used_quota, 0),
            "last_used": record.last_used,
            "last_reset": record.last_reset,
        }

    def _next_reset(self) -> datetime:
        # YouTube quotas roll over at midnight Pacific time.
        pacific_tz = cast(tzinfo, ZoneInfo("America/Los_Angeles"))
        next_day = datetime.now(pacific_tz).date() + timedelta(days=1)
        return datetime(next_day.year, next_day.month, next_day.day, tzinfo=pacific_tz)
