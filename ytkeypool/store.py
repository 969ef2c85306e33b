"""Credential record storage."""

import asyncio
from dataclasses import replace
from typing import (
    Collection,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from ytkeypool.errors import TransientStoreContentionError
from ytkeypool.models import CredentialRecord

SortSpec = Sequence[Tuple[str, int]]

ASCENDING = 1
DESCENDING = -1

# Prisma P2034 (write conflict / deadlock) and MongoDB 112 (WriteConflict).
TRANSIENT_STORE_ERROR_CODES = frozenset({"P2034", 112, "112"})
TRANSIENT_ERROR_LABEL = "TransientTransactionError"


def is_transient_contention(exc: BaseException) -> bool:
    """Return True if ``exc`` signals a retryable store write conflict."""
    if isinstance(exc, TransientStoreContentionError):
        return True
    code = getattr(exc, "code", None)
    if isinstance(code, (str, int)) and code in TRANSIENT_STORE_ERROR_CODES:
        return True
    has_error_label = getattr(exc, "has_error_label", None)
    if callable(has_error_label):
        try:
            return bool(has_error_label(TRANSIENT_ERROR_LABEL))
        except TypeError:
            return False
    return False


class CredentialStore(Protocol):
    async def insert(self, record: CredentialRecord) -> CredentialRecord: ...

    async def get(self, record_id: str) -> Optional[CredentialRecord]: ...

    async def find(
        self,
        is_active: Optional[bool] = None,
        used_quota_below: Optional[int] = None,
        exclude_ids: Collection[str] = (),
        sort: SortSpec = (),
        limit: Optional[int] = None,
    ) -> List[CredentialRecord]: ...

    async def update_one(
        self,
        record_id: str,
        inc: Optional[Mapping[str, int]] = None,
        set_fields: Optional[Mapping[str, object]] = None,
        maximum: Optional[Mapping[str, int]] = None,
    ) -> bool: ...

    async def update_many(
        self,
        set_fields: Mapping[str, object],
        record_ids: Optional[Collection[str]] = None,
    ) -> int: ...


class InMemoryCredentialStore:
    """Process-local store with atomic single-record updates.

    Every mutation runs under one lock and reads return copies, so counters
    are only ever changed through ``update_one``/``update_many``.
    """

    def __init__(self) -> None:
        self._records: Dict[str, CredentialRecord] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def insert(self, record: CredentialRecord) -> CredentialRecord:
        async with self._lock:
            if record.id in self._records:
                raise ValueError(f"Record {record.id} already exists")
            self._records[record.id] = replace(record)
            return replace(record)

    async def get(self, record_id: str) -> Optional[CredentialRecord]:
        async with self._lock:
            record = self._records.get(record_id)
            return replace(record) if record else None

    async def find(
        self,
        is_active: Optional[bool] = None,
        used_quota_below: Optional[int] = None,
        exclude_ids: Collection[str] = (),
        sort: SortSpec = (),
        limit: Optional[int] = None,
    ) -> List[CredentialRecord]:
        async with self._lock:
            matches = [
                record
                for record in self._records.values()
                if (is_active is None or record.is_active == is_active)
                and (used_quota_below is None or record.used_quota < used_quota_below)
                and record.id not in exclude_ids
            ]

            # Stable sorts applied from the least to the most significant key.
            for field_name, direction in reversed(list(sort)):
                matches.sort(
                    key=lambda item: getattr(item, field_name),
                    reverse=direction == DESCENDING,
                )

            if limit is not None:
                matches = matches[:limit]
            return [replace(record) for record in matches]

    async def update_one(
        self,
        record_id: str,
        inc: Optional[Mapping[str, int]] = None,
        set_fields: Optional[Mapping[str, object]] = None,
        maximum: Optional[Mapping[str, int]] = None,
    ) -> bool:
        async with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return False

            for field_name, amount in (inc or {}).items():
                setattr(record, field_name, getattr(record, field_name) + amount)
            for field_name, value in (set_fields or {}).items():
                setattr(record, field_name, value)
            for field_name, floor in (maximum or {}).items():
                if getattr(record, field_name) < floor:
                    setattr(record, field_name, floor)
            return True

    async def update_many(
        self,
        set_fields: Mapping[str, object],
        record_ids: Optional[Collection[str]] = None,
    ) -> int:
        async with self._lock:
            if record_ids is None:
                targets = list(self._records.values())
            else:
                targets = [
                    self._records[record_id]
                    for record_id in record_ids
                    if record_id in self._records
                ]

            for record in targets:
                for field_name, value in set_fields.items():
                    setattr(record, field_name, value)
            return len(targets)
