"""
sessiontab/flow/handlers/registration.py

Handles: registration, profile edit and invoice

- register:<group> / edit:<group> -> AWAITING_NAME
- name text -> AWAITING_ROLE (role buttons)
- role:<role>:<group> -> membership upsert, state cleared
- invoice:<group> -> current debt
"""

from typing import List

from sessiontab.core.exceptions import NotFoundError, ValidationError
from sessiontab.core.logging import LogContext, get_logger
from sessiontab.flow.context import FlowContext
from sessiontab.flow.states import AwaitingName, AwaitingRole
from sessiontab.models.membership import Role
from sessiontab.schemas.webhook import BotReply
from sessiontab.services.authorization import PrivilegeLevel
from utils.constants import (
    INVOICE_MESSAGE,
    NOT_REGISTERED_MESSAGE,
    PROMPT_ENTER_NAME,
    PROMPT_ENTER_NEW_NAME,
    PROMPT_SELECT_ROLE,
    REGISTRATION_DONE_MESSAGE,
    ROLE_BUTTON_LABELS,
    ROLE_NAMES,
)
from utils.validation_utils import parse_int_arg, validate_display_name

logger = get_logger(__name__)


async def handle_register_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    """
    Starts registration (register:<group>) or profile edit (edit:<group>).

    Raises:
        NotFoundError: If the group is unknown (nothing is stored)
    """
    group_id = parse_int_arg(parts, 1)
    if group_id is None:
        return []

    if await ctx.services.repository.get_group(group_id) is None:
        raise NotFoundError(f"Group {group_id} not found")

    action = "edit" if parts[0] == "edit" else "register"
    ctx.services.conversations.set_state(ctx.person.id, AwaitingName(group_id=group_id, action=action))

    return ctx.reply(PROMPT_ENTER_NEW_NAME if action == "edit" else PROMPT_ENTER_NAME)


async def handle_name_input(ctx: FlowContext, state: AwaitingName) -> List[BotReply]:
    """
    Stores the typed name and asks for a role.

    Raises:
        ValidationError: If the name is blank (state is kept for a retry)
    """
    name = validate_display_name(ctx.event.text or "")

    ctx.services.conversations.set_state(ctx.person.id, AwaitingRole(
        group_id=state.group_id,
        person_id=ctx.person.id,
        name=name,
        action=state.action,
    ))

    is_admin = await ctx.services.gate.effective_role(ctx.person, state.group_id) == PrivilegeLevel.ADMIN
    roles = [role for role in Role if role != Role.ADMIN or is_admin]
    buttons = [
        [(ROLE_BUTTON_LABELS[role.value], f"role:{role.value}:{state.group_id}")]
        for role in roles
    ]
    return ctx.reply(PROMPT_SELECT_ROLE, buttons=buttons)


async def handle_role_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    """
    Completes registration with the chosen role.

    Raises:
        ValidationError: Unknown role (state kept)
        AuthorizationError: Non-admin picking the admin role
    """
    state = ctx.services.conversations.get_state(ctx.person.id)
    if not isinstance(state, AwaitingRole):
        # Stale button from an earlier conversation
        return []

    try:
        role = Role.from_str(parts[1] if len(parts) > 1 else "")
    except ValueError as e:
        raise ValidationError(str(e)) from e

    if role == Role.ADMIN:
        await ctx.services.gate.require_admin(ctx.person, state.group_id)

    with LogContext(logger, person_id=ctx.person.id, group_id=state.group_id) as log:
        await ctx.services.ledger.upsert_membership(state.person_id, state.group_id, role, state.name)
        ctx.services.conversations.clear_state(ctx.person.id)
        log.info(f"Membership {state.action} completed")

    return ctx.reply(REGISTRATION_DONE_MESSAGE.format(name=state.name, role=ROLE_NAMES[role.value]))


async def handle_invoice_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    group_id = parse_int_arg(parts, 1)
    if group_id is None:
        return []

    if not await ctx.services.repository.membership_exists(ctx.person.id, group_id):
        return ctx.reply(NOT_REGISTERED_MESSAGE)

    invoice = await ctx.services.ledger.invoice(ctx.person.id, group_id)
    text = INVOICE_MESSAGE.format(
        name=invoice.name,
        role=ROLE_NAMES[invoice.role.value],
        sessions=invoice.sessions_owed,
        rate=invoice.rate_per_session,
        total=invoice.total_debt,
        currency=ctx.services.currency,
    )
    return ctx.reply(text, markdown=True)
