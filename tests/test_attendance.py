import asyncio

import pytest

from conftest import run
from sessiontab.core.exceptions import (
    AlreadyRevertedError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)


def _balances(services, group_id):
    members = run(services.ledger.list_members(group_id))
    return {m.name: m.sessions_owed for m in members}


def test_record_skips_non_members(services, squad):
    group_id = squad["group"].id

    batch, count = run(services.attendance.record_attendance(
        group_id, squad["admin"], ["@sara", "@omid", "@nima", "@ghost"]
    ))

    assert count == 2
    assert batch.member_ids == [squad["sara"].id, squad["omid"].id]
    assert batch.admin_id == squad["admin"].id
    assert not batch.is_reverted
    assert _balances(services, group_id) == {"Omid": 1, "Sara": 1}
    assert not run(services.repository.membership_exists(squad["nima"].id, group_id))


def test_record_collapses_duplicate_handles(services, squad):
    batch, count = run(services.attendance.record_attendance(
        squad["group"].id, squad["admin"], ["sara", "@Sara", "@sara"]
    ))

    assert count == 1
    assert batch.member_ids == [squad["sara"].id]
    assert _balances(services, squad["group"].id)["Sara"] == 1


def test_record_with_nobody_valid_stores_nothing(services, squad):
    batch, count = run(services.attendance.record_attendance(
        squad["group"].id, squad["admin"], ["@nima", "@ghost"]
    ))

    assert batch is None
    assert count == 0
    assert run(services.attendance.latest_active_attendance(squad["group"].id)) is None


def test_record_without_candidates(services, squad):
    with pytest.raises(ValidationError):
        run(services.attendance.record_attendance(squad["group"].id, squad["admin"], []))


def test_record_requires_admin(services, squad):
    with pytest.raises(AuthorizationError):
        run(services.attendance.record_attendance(squad["group"].id, squad["sara"], ["@omid"]))
    assert _balances(services, squad["group"].id) == {"Omid": 0, "Sara": 0}


def test_revert_undoes_batch(services, squad):
    group_id = squad["group"].id
    batch, _ = run(services.attendance.record_attendance(group_id, squad["admin"], ["@sara", "@omid"]))

    reverted = run(services.attendance.revert_attendance(batch.id))

    assert reverted.is_reverted
    assert reverted.reverted_at is not None
    assert _balances(services, group_id) == {"Omid": 0, "Sara": 0}


def test_revert_twice_fails_without_changes(services, squad):
    group_id = squad["group"].id
    run(services.ledger.adjust_balance(squad["sara"].id, group_id, 3))
    batch, _ = run(services.attendance.record_attendance(group_id, squad["admin"], ["@sara", "@omid"]))
    run(services.attendance.revert_attendance(batch.id))

    with pytest.raises(AlreadyRevertedError) as exc_info:
        run(services.attendance.revert_attendance(batch.id))

    assert exc_info.value.status_code == 409
    assert _balances(services, group_id) == {"Omid": 0, "Sara": 3}


def test_revert_unknown_batch(services, squad):
    with pytest.raises(NotFoundError):
        run(services.attendance.revert_attendance(12345))


def test_concurrent_reverts_only_one_wins(services, squad):
    group_id = squad["group"].id
    batch, _ = run(services.attendance.record_attendance(group_id, squad["admin"], ["@sara", "@omid"]))

    async def race():
        return await asyncio.gather(
            services.attendance.revert_attendance(batch.id),
            services.attendance.revert_attendance(batch.id),
            services.attendance.revert_attendance(batch.id),
            return_exceptions=True,
        )

    results = run(race())

    succeeded = [r for r in results if not isinstance(r, Exception)]
    refused = [r for r in results if isinstance(r, AlreadyRevertedError)]
    assert len(succeeded) == 1
    assert len(refused) == 2
    assert _balances(services, group_id) == {"Omid": 0, "Sara": 0}


def test_failed_batch_rolls_back_every_increment(services, squad, monkeypatch):
    group_id = squad["group"].id

    async def broken_create(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(services.repository, "create_attendance_batch", broken_create)

    with pytest.raises(RuntimeError):
        run(services.attendance.record_attendance(group_id, squad["admin"], ["@sara", "@omid"]))

    assert _balances(services, group_id) == {"Omid": 0, "Sara": 0}


def test_latest_active_skips_reverted(services, squad):
    group_id = squad["group"].id
    first, _ = run(services.attendance.record_attendance(group_id, squad["admin"], ["@sara"]))
    second, _ = run(services.attendance.record_attendance(group_id, squad["admin"], ["@omid"]))

    assert run(services.attendance.latest_active_attendance(group_id)).id == second.id

    run(services.attendance.revert_attendance(second.id))
    assert run(services.attendance.latest_active_attendance(group_id)).id == first.id

    run(services.attendance.revert_attendance(first.id))
    assert run(services.attendance.latest_active_attendance(group_id)) is None


def test_latest_active_is_per_group(services, squad):
    other = run(services.repository.get_or_create_group(-200, "Sunday volleyball", "group"))
    run(services.attendance.record_attendance(squad["group"].id, squad["admin"], ["@sara"]))

    assert run(services.attendance.latest_active_attendance(other.id)) is None
