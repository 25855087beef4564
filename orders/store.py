"""
Purpose: Storage boundary for delivery requests (and the bids they own).
What it does:
- Defines the RequestStore protocol every backend implements
- Provides InMemoryRequestStore, a versioned store with conditional writes

Provides operations:
   - insert(record)
   - get(request_id)
   - compare_and_set(record, expected_version)
   - list_requests(state=None)
   - close()

compare_and_set is the only write path for an existing record: it swaps the
record in only if the stored version still equals expected_version, and bumps
the version. That is the optimistic-concurrency primitive bid acceptance
relies on; a SQL backend would implement it as
UPDATE ... WHERE id = :id AND version = :expected.

Rule: Store owns persistence, never lifecycle rules.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Protocol

from .errors import ConflictError
from .models import DeliveryRequest, LifecycleState


class RequestStore(Protocol):
    def insert(self, record: DeliveryRequest) -> DeliveryRequest: ...

    def get(self, request_id: str) -> Optional[DeliveryRequest]: ...

    def compare_and_set(self, record: DeliveryRequest, expected_version: int) -> Optional[DeliveryRequest]: ...

    def list_requests(self, state: Optional[LifecycleState] = None,
                      requester_id: Optional[str] = None) -> List[DeliveryRequest]: ...

    def close(self) -> None: ...


@dataclass
class InMemoryRequestStore:
    """
    Thread-safe in-memory store.

    Records are frozen snapshots; a write replaces the whole snapshot under
    the lock, so readers never see half of a transition.
    """
    _records: Dict[str, DeliveryRequest] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _closed: bool = False

    # --- Public API ---

    def insert(self, record: DeliveryRequest) -> DeliveryRequest:
        """
        Add a new record at version 1.
        """
        with self._lock:
            self._ensure_open()
            if record.id in self._records:
                raise ConflictError(f"Request {record.id} already exists", {"id": "duplicate"})
            stored = replace(record, version=1)
            self._records[record.id] = stored
            return stored

    def get(self, request_id: str) -> Optional[DeliveryRequest]:
        with self._lock:
            self._ensure_open()
            return self._records.get(request_id)

    def compare_and_set(self, record: DeliveryRequest, expected_version: int) -> Optional[DeliveryRequest]:
        """
        Conditional write. Returns the stored snapshot (version bumped) on
        success, None if someone else wrote first.
        """
        with self._lock:
            self._ensure_open()
            current = self._records.get(record.id)
            if current is None or current.version != expected_version:
                return None
            stored = replace(record, version=expected_version + 1)
            self._records[record.id] = stored
            return stored

    def list_requests(self, state: Optional[LifecycleState] = None,
                      requester_id: Optional[str] = None) -> List[DeliveryRequest]:
        """
        Snapshot of all records, oldest first; optionally filtered by state
        and by owner.
        """
        with self._lock:
            self._ensure_open()
            records = list(self._records.values())
        if state is not None:
            records = [record for record in records if record.state is state]
        if requester_id is not None:
            records = [record for record in records if record.requester_id == requester_id]
        return sorted(records, key=lambda record: record.created_at)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # --- helpers ---

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("store is closed")
