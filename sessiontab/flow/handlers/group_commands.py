"""
sessiontab/flow/handlers/group_commands.py

Handles: commands typed inside the squad's group chat (admin only)

- /attendance @a @b ...  -> one session credited to each member
- /undo                  -> revert the latest attendance
- /report                -> balances of every member
- /setrole @handle role  -> change a member's role
"""

from typing import List

from sessiontab.core.exceptions import NotFoundError, ValidationError
from sessiontab.core.logging import LogContext, get_logger
from sessiontab.flow.context import FlowContext
from sessiontab.flow.handlers.menu import resolve_group_id
from sessiontab.models.membership import Role
from sessiontab.schemas.webhook import BotReply
from utils.constants import (
    ATTENDANCE_DONE_MESSAGE,
    ATTENDANCE_NOBODY_MESSAGE,
    ATTENDANCE_USAGE_MESSAGE,
    GROUP_NOT_REGISTERED_MESSAGE,
    REGISTRATION_DONE_MESSAGE,
    REPORT_EMPTY_MESSAGE,
    REPORT_HEADER,
    ROLE_NAMES,
    UNDO_DONE_MESSAGE,
    UNDO_NOTHING_MESSAGE,
)
from utils.time_utils import format_timestamp
from utils.validation_utils import normalize_handle

logger = get_logger(__name__)


async def handle_attendance_command(ctx: FlowContext) -> List[BotReply]:
    group_id = await resolve_group_id(ctx)
    if group_id is None:
        return ctx.reply(GROUP_NOT_REGISTERED_MESSAGE)

    # Checked before argument parsing so non-admins learn nothing about usage
    await ctx.services.gate.require_admin(ctx.person, group_id)

    handles = ctx.event.command_args
    if not handles:
        return ctx.reply(ATTENDANCE_USAGE_MESSAGE)

    batch, credited = await ctx.services.attendance.record_attendance(group_id, ctx.person, handles)
    if batch is None:
        return ctx.reply(ATTENDANCE_NOBODY_MESSAGE)
    return ctx.reply(ATTENDANCE_DONE_MESSAGE.format(count=credited))


async def handle_undo_command(ctx: FlowContext) -> List[BotReply]:
    """
    Reverts the most recent attendance batch of the group.

    Raises:
        AlreadyRevertedError: If another admin reverted it in the meantime
    """
    group_id = await resolve_group_id(ctx)
    if group_id is None:
        return ctx.reply(GROUP_NOT_REGISTERED_MESSAGE)

    services = ctx.services
    await services.gate.require_admin(ctx.person, group_id)

    latest = await services.attendance.latest_active_attendance(group_id)
    if latest is None:
        return ctx.reply(UNDO_NOTHING_MESSAGE)

    batch = await services.attendance.revert_attendance(latest.id)
    return ctx.reply(UNDO_DONE_MESSAGE.format(
        created_at=format_timestamp(batch.created_at),
        count=len(batch.member_ids),
    ))


async def handle_report_command(ctx: FlowContext) -> List[BotReply]:
    group_id = await resolve_group_id(ctx)
    if group_id is None:
        return ctx.reply(GROUP_NOT_REGISTERED_MESSAGE)

    await ctx.services.gate.require_admin(ctx.person, group_id)

    lines = await ctx.services.ledger.report(group_id)
    if not lines:
        return ctx.reply(REPORT_EMPTY_MESSAGE)

    logger.info(f"Report generated with {len(lines)} line(s)", extra={"group_id": group_id})
    return ctx.reply("\n".join([REPORT_HEADER] + lines))


async def handle_setrole_command(ctx: FlowContext) -> List[BotReply]:
    """
    Reassigns a registered member's role, keeping name and balance.

    Raises:
        ValidationError: Missing arguments or unknown role
        NotFoundError: Handle is not a registered member
    """
    group_id = await resolve_group_id(ctx)
    if group_id is None:
        return ctx.reply(GROUP_NOT_REGISTERED_MESSAGE)

    services = ctx.services
    await services.gate.require_admin(ctx.person, group_id)

    args = ctx.event.command_args
    if len(args) != 2:
        raise ValidationError("Usage: /setrole @username role")

    handle = normalize_handle(args[0])
    try:
        role = Role.from_str(args[1])
    except ValueError as e:
        raise ValidationError(str(e)) from e

    target = await services.repository.find_person_by_handle(handle) if handle else None
    if target is None:
        raise NotFoundError("Unknown username", details={"handle": handle})

    membership = await services.ledger.get_membership(target.id, group_id)
    with LogContext(logger, person_id=ctx.person.id, group_id=group_id) as log:
        await services.ledger.upsert_membership(target.id, group_id, role, membership.name)
        log.info(f"Role of person {target.id} set to {role.value}")

    return ctx.reply(REGISTRATION_DONE_MESSAGE.format(name=membership.name, role=ROLE_NAMES[role.value]))
