import threading
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from sessiontab.flow.states import AwaitingName, AwaitingRate, AwaitingRole, ConversationState
from sessiontab.models.membership import Role
from sessiontab.services.conversation_store import ConversationStateStore


def test_get_state_without_set_returns_none():
    store = ConversationStateStore()
    assert store.get_state(1) is None


def test_set_replaces_previous_state():
    store = ConversationStateStore()
    store.set_state(1, AwaitingName(group_id=5))
    store.set_state(1, AwaitingRate(group_id=5, role=Role.ADULT))

    state = store.get_state(1)
    assert isinstance(state, AwaitingRate)
    assert state.role == Role.ADULT
    # Fields of the old payload are not merged in
    assert not hasattr(state, "action")


def test_clear_state_is_idempotent():
    store = ConversationStateStore()
    store.set_state(1, AwaitingName(group_id=5))
    store.clear_state(1)
    store.clear_state(1)
    assert store.get_state(1) is None


def test_states_are_per_person():
    store = ConversationStateStore(shards=1)
    store.set_state(1, AwaitingName(group_id=5))
    store.set_state(2, AwaitingRate(group_id=5, role=Role.STUDENT))

    assert store.get_state(1).state == ConversationState.AWAITING_NAME
    assert store.get_state(2).state == ConversationState.AWAITING_RATE
    assert store.active_count() == 2


def test_mapping_payload_is_validated_into_typed_state():
    store = ConversationStateStore()
    state = store.set_state(7, {"state": "awaiting_role", "group_id": 1, "person_id": 7, "name": "Sara"})

    assert isinstance(state, AwaitingRole)
    assert store.get_state(7).name == "Sara"


def test_mapping_missing_required_field_is_rejected():
    store = ConversationStateStore()
    with pytest.raises(PydanticValidationError):
        store.set_state(7, {"state": "awaiting_rate", "group_id": 1})
    assert store.get_state(7) is None


def test_invalid_shard_count():
    with pytest.raises(ValueError):
        ConversationStateStore(shards=0)


def test_stale_state_expires():
    store = ConversationStateStore(timeout_minutes=30)
    store.set_state(1, AwaitingName(group_id=5))

    # Age the entry past the timeout
    index = store._shard(1)
    store._buckets[index][1].updated_at = datetime.now(timezone.utc) - timedelta(minutes=31)

    assert store.get_state(1) is None
    assert store.active_count() == 0


def test_rate_state_uses_its_own_shorter_timeout():
    store = ConversationStateStore(timeout_minutes=60)
    store.set_state(1, AwaitingRate(group_id=5, role=Role.ADULT))

    index = store._shard(1)
    store._buckets[index][1].updated_at = datetime.now(timezone.utc) - timedelta(minutes=20)

    assert store.get_state(1) is None


def test_no_timeout_keeps_state():
    store = ConversationStateStore()
    store.set_state(1, AwaitingName(group_id=5))
    index = store._shard(1)
    store._buckets[index][1].updated_at = datetime.now(timezone.utc) - timedelta(days=3)

    assert store.get_state(1) is not None


def test_concurrent_access_from_many_threads():
    store = ConversationStateStore(shards=4)
    errors = []

    def worker(person_id):
        try:
            for i in range(200):
                store.set_state(person_id, AwaitingName(group_id=i))
                state = store.get_state(person_id)
                # Only this thread writes this person, so it must see its own write
                assert state.group_id == i
                if i % 3 == 0:
                    store.clear_state(person_id)
                    assert store.get_state(person_id) is None
        except Exception as e:  # collected and asserted below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(pid,)) for pid in range(1, 33)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    # 199 % 3 != 0, so every person ends with a state
    assert store.active_count() == 32
    for pid in range(1, 33):
        assert store.get_state(pid).group_id == 199
