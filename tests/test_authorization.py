import pytest

from conftest import run
from sessiontab.core.exceptions import AuthorizationError
from sessiontab.models.membership import Role
from sessiontab.services.authorization import PrivilegeLevel


def test_default_admin_is_admin_without_membership(services, squad):
    gate = services.gate
    assert run(gate.effective_role(squad["admin"], squad["group"].id)) == PrivilegeLevel.ADMIN
    # Any group, even one that does not exist
    assert run(gate.effective_role(squad["admin"], 4242)) == PrivilegeLevel.ADMIN
    assert run(gate.effective_role(squad["admin"], None)) == PrivilegeLevel.ADMIN


def test_member_role_decides(services, squad):
    gate = services.gate
    group_id = squad["group"].id
    assert run(gate.effective_role(squad["sara"], group_id)) == PrivilegeLevel.MEMBER

    run(services.ledger.upsert_membership(squad["sara"].id, group_id, Role.ADMIN, "Sara"))
    assert run(gate.effective_role(squad["sara"], group_id)) == PrivilegeLevel.ADMIN


def test_non_member_is_unauthenticated(services, squad):
    gate = services.gate
    assert run(gate.effective_role(squad["nima"], squad["group"].id)) == PrivilegeLevel.UNAUTHENTICATED
    assert run(gate.effective_role(squad["sara"], None)) == PrivilegeLevel.UNAUTHENTICATED


def test_admin_in_one_group_only(services, squad):
    group_id = squad["group"].id
    run(services.ledger.upsert_membership(squad["omid"].id, group_id, Role.ADMIN, "Omid"))

    other = run(services.repository.get_or_create_group(-200, "Sunday volleyball", "group"))
    assert run(services.gate.effective_role(squad["omid"], other.id)) == PrivilegeLevel.UNAUTHENTICATED


def test_require_admin_refuses_members(services, squad):
    with pytest.raises(AuthorizationError) as exc_info:
        run(services.gate.require_admin(squad["sara"], squad["group"].id))

    assert exc_info.value.status_code == 403
    assert exc_info.value.details["level"] == "member"


def test_require_admin_allows_default_admin(services, squad):
    run(services.gate.require_admin(squad["admin"], squad["group"].id))


def test_no_default_admin_configured(repository, squad):
    from sessiontab.services.authorization import AuthorizationGate

    gate = AuthorizationGate(repository, default_admin_id=None)
    assert run(gate.effective_role(squad["admin"], squad["group"].id)) == PrivilegeLevel.UNAUTHENTICATED
