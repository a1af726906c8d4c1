"""
sessiontab/services/conversation_store.py

Purpose: Per-person dialogue state

- Holds at most one pending step per person (set replaces, never merges)
- Thread-safe through a fixed set of lock shards keyed by person ID
- Optional expiry of stale steps
- Nothing is persisted; a restart simply forgets pending steps
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import TypeAdapter

from sessiontab.core.logging import get_logger
from sessiontab.flow.states import StatePayload, get_state_metadata

logger = get_logger(__name__)

_payload_adapter = TypeAdapter(StatePayload)


@dataclass
class _Entry:
    payload: Any
    updated_at: datetime


class ConversationStateStore:
    """
    In-memory map person_id -> pending dialogue step.

    Created once at startup and handed to the dispatcher. Every operation
    is O(1) and holds only the lock of the person's shard, so people in
    different shards never wait on each other.
    """

    def __init__(self, shards: int = 16, timeout_minutes: Optional[int] = None):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(shards)]
        self._buckets: List[Dict[int, _Entry]] = [{} for _ in range(shards)]
        self._timeout_minutes = timeout_minutes

    def _shard(self, person_id: int) -> int:
        return hash(person_id) % len(self._locks)

    def set_state(self, person_id: int, payload: Union[StatePayload, Mapping[str, Any]]):
        """
        Replace whatever state the person had with ``payload``.

        Raw mappings are validated into the matching payload type here, so
        readers always get a fully typed object back.
        """
        if isinstance(payload, Mapping):
            payload = _payload_adapter.validate_python(payload)

        index = self._shard(person_id)
        with self._locks[index]:
            self._buckets[index][person_id] = _Entry(payload, datetime.now(timezone.utc))

        logger.debug("State set", extra={"person_id": person_id, "state": payload.state.value})
        return payload

    def get_state(self, person_id: int) -> Optional[StatePayload]:
        """Current payload, or None when the person has no pending step."""
        index = self._shard(person_id)
        with self._locks[index]:
            entry = self._buckets[index].get(person_id)
            if entry is None:
                return None
            if self._is_expired(entry):
                del self._buckets[index][person_id]
                logger.info(
                    "Pending step expired",
                    extra={"person_id": person_id, "state": entry.payload.state.value}
                )
                return None
            return entry.payload

    def clear_state(self, person_id: int) -> None:
        index = self._shard(person_id)
        with self._locks[index]:
            self._buckets[index].pop(person_id, None)

    def active_count(self) -> int:
        """Number of people with a pending step (expired ones included until read)."""
        total = 0
        for lock, bucket in zip(self._locks, self._buckets):
            with lock:
                total += len(bucket)
        return total

    def _is_expired(self, entry: _Entry) -> bool:
        if self._timeout_minutes is None:
            return False
        timeout = get_state_metadata(entry.payload.state).timeout_minutes or self._timeout_minutes
        return datetime.now(timezone.utc) - entry.updated_at > timedelta(minutes=timeout)
