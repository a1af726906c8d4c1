"""
Tests for the MongoDB repository against stubbed Motor collections.

The stubs record every call so the exact update documents sent to the
driver can be checked without a running server.
"""

from datetime import datetime, timezone

import pytest
from pymongo import ReturnDocument
from pymongo.errors import AutoReconnect, OperationFailure

from conftest import run
from sessiontab.core.exceptions import PersistenceError
from sessiontab.db.mongo_repository import MongoRepository
from sessiontab.models.membership import Role


class UpdateResult:
    def __init__(self, modified_count):
        self.modified_count = modified_count


class StubCollection:
    def __init__(self):
        self.calls = []
        self.returns = {}
        self.error = None

    async def _record(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        if self.error is not None:
            raise self.error
        return self.returns.get(method)

    async def find_one_and_update(self, *args, **kwargs):
        return await self._record("find_one_and_update", *args, **kwargs)

    async def update_one(self, *args, **kwargs):
        return await self._record("update_one", *args, **kwargs)

    async def find_one(self, *args, **kwargs):
        return await self._record("find_one", *args, **kwargs)


class StubDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, StubCollection())


class StubSession:
    def __init__(self, error=None):
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def with_transaction(self, callback):
        if self.error is not None:
            raise self.error
        return await callback(self)


class StubAdmin:
    def __init__(self, error=None):
        self.error = error

    async def command(self, name):
        if self.error is not None:
            raise self.error
        return {"ok": 1}


class StubClient:
    def __init__(self, session=None, admin_error=None):
        self.session = session or StubSession()
        self.admin = StubAdmin(admin_error)

    async def start_session(self):
        return self.session


def membership_doc(sessions_owed):
    return {
        "_id": "m1",
        "person_id": 7,
        "group_id": 3,
        "role": "student",
        "name": "Sara",
        "sessions_owed": sessions_owed,
    }


@pytest.fixture
def database():
    return StubDatabase()


@pytest.fixture
def repo(database):
    return MongoRepository(StubClient(), database)


def test_adjust_balance_uses_inc(repo, database):
    """Balance changes are a single $inc, never a computed $set of the balance"""
    memberships = database["memberships"]
    memberships.returns["find_one_and_update"] = membership_doc(4)
    session = StubSession()

    membership = run(repo.adjust_balance(7, 3, -1, session=session))

    assert membership.sessions_owed == 4
    method, args, kwargs = memberships.calls[0]
    assert method == "find_one_and_update"
    assert args[0] == {"person_id": 7, "group_id": 3}
    update = args[1]
    assert set(update) == {"$inc", "$set"}
    assert update["$inc"] == {"sessions_owed": -1}
    assert "sessions_owed" not in update["$set"]
    assert kwargs["session"] is session
    assert kwargs["return_document"] == ReturnDocument.AFTER
    assert "upsert" not in kwargs


def test_adjust_balance_missing_membership(repo, database):
    assert run(repo.adjust_balance(7, 3, 1)) is None


def test_upsert_membership_never_overwrites_balance(repo, database):
    memberships = database["memberships"]
    memberships.returns["find_one_and_update"] = membership_doc(2)

    run(repo.upsert_membership(7, 3, Role.ADULT, "Sara"))

    _, args, kwargs = memberships.calls[0]
    update = args[1]
    assert update["$set"]["role"] == "adult"
    assert "sessions_owed" not in update["$set"]
    assert update["$setOnInsert"]["sessions_owed"] == 0
    assert kwargs["upsert"] is True


@pytest.mark.parametrize("modified, expected", [(1, True), (0, False)])
def test_mark_batch_reverted_is_conditional(repo, database, modified, expected):
    batches = database["attendance_batches"]
    batches.returns["update_one"] = UpdateResult(modified)
    reverted_at = datetime(2026, 3, 1, 18, 30, tzinfo=timezone.utc)

    assert run(repo.mark_batch_reverted(12, reverted_at)) is expected

    _, args, _ = batches.calls[0]
    assert args[0] == {"_id": 12, "is_reverted": False}
    assert args[1] == {"$set": {"is_reverted": True, "reverted_at": reverted_at}}


def test_driver_error_becomes_persistence_error(repo, database):
    database["memberships"].error = AutoReconnect("connection reset")

    with pytest.raises(PersistenceError) as exc_info:
        run(repo.adjust_balance(7, 3, 1))

    assert exc_info.value.code == "PERSISTENCE_ERROR"
    assert isinstance(exc_info.value.__cause__, AutoReconnect)


def test_driver_error_inside_session_is_raised_unchanged(repo, database):
    """with_transaction needs the raw error to honour retry labels"""
    error = OperationFailure("write conflict", code=112)
    database["memberships"].error = error

    with pytest.raises(OperationFailure) as exc_info:
        run(repo.adjust_balance(7, 3, 1, session=StubSession()))

    assert exc_info.value is error


def test_run_in_transaction_passes_session(database):
    session = StubSession()
    repo = MongoRepository(StubClient(session=session), database)
    seen = []

    async def callback(s):
        seen.append(s)
        return "done"

    assert run(repo.run_in_transaction(callback)) == "done"
    assert seen == [session]


def test_run_in_transaction_failure(database):
    session = StubSession(error=OperationFailure("transaction aborted"))
    repo = MongoRepository(StubClient(session=session), database)

    async def callback(s):
        return None

    with pytest.raises(PersistenceError):
        run(repo.run_in_transaction(callback))


def test_get_rate_unset(repo):
    assert run(repo.get_rate(3, Role.STUDENT)) is None


def test_ping(database):
    assert run(MongoRepository(StubClient(), database).ping()) is True
    down = MongoRepository(StubClient(admin_error=AutoReconnect("down")), database)
    assert run(down.ping()) is False
