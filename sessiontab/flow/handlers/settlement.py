"""
sessiontab/flow/handlers/settlement.py

Handles: admin settlement

- settle:<group> -> member picker (only members who owe are selectable)
- settle_user:<person>:<group> -> AWAITING_SETTLE_SESSIONS
- count text -> settlement applied, state cleared
"""

from typing import List

from sessiontab.flow.context import FlowContext
from sessiontab.flow.states import AwaitingSettleSessions
from sessiontab.schemas.webhook import BotReply
from utils.constants import (
    BUTTON_BACK,
    NO_MEMBERS_MESSAGE,
    PROMPT_ENTER_SETTLE_SESSIONS,
    PROMPT_SELECT_SETTLE_MEMBER,
    SETTLE_BUTTON_CREDIT,
    SETTLE_BUTTON_OWED,
    SETTLE_BUTTON_SETTLED,
    SETTLE_CLEAR_MESSAGE,
    SETTLE_CREDIT_MESSAGE,
    SETTLE_OWED_MESSAGE,
)
from utils.validation_utils import parse_int_arg, parse_session_count


async def handle_settle_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    group_id = parse_int_arg(parts, 1)
    if group_id is None:
        return []

    await ctx.services.gate.require_admin(ctx.person, group_id)

    back_row = [(BUTTON_BACK, f"back:{group_id}")]
    members = await ctx.services.ledger.list_members(group_id)
    if not members:
        return ctx.reply(NO_MEMBERS_MESSAGE, buttons=[back_row])

    rows = []
    for m in members:
        if m.sessions_owed > 0:
            label = SETTLE_BUTTON_OWED.format(name=m.name, sessions=m.sessions_owed)
            rows.append([(label, f"settle_user:{m.person_id}:{group_id}")])
        elif m.sessions_owed < 0:
            label = SETTLE_BUTTON_CREDIT.format(name=m.name, sessions=-m.sessions_owed)
            rows.append([(label, "noop")])
        else:
            rows.append([(SETTLE_BUTTON_SETTLED.format(name=m.name), "noop")])
    rows.append(back_row)

    return ctx.reply(PROMPT_SELECT_SETTLE_MEMBER, buttons=rows)


async def handle_settle_user_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    target_person_id = parse_int_arg(parts, 1)
    group_id = parse_int_arg(parts, 2)
    if target_person_id is None or group_id is None:
        return []

    await ctx.services.gate.require_admin(ctx.person, group_id)
    # Fails with NotFoundError before any state is stored
    await ctx.services.ledger.get_membership(target_person_id, group_id)

    ctx.services.conversations.set_state(ctx.person.id, AwaitingSettleSessions(
        group_id=group_id,
        target_person_id=target_person_id,
    ))
    return ctx.reply(PROMPT_ENTER_SETTLE_SESSIONS)


async def handle_settle_sessions_input(ctx: FlowContext, state: AwaitingSettleSessions) -> List[BotReply]:
    """
    Raises:
        ValidationError: Count is not a positive integer (state kept)
        NotFoundError: Target membership vanished (state cleared by dispatcher)
    """
    count = parse_session_count(ctx.event.text or "")
    await ctx.services.gate.require_admin(ctx.person, state.group_id)

    services = ctx.services
    membership = await services.ledger.settle(state.target_person_id, state.group_id, count)
    services.conversations.clear_state(ctx.person.id)

    balance = membership.sessions_owed
    if balance > 0:
        rate = await services.rates.get_rate(state.group_id, membership.role)
        text = SETTLE_OWED_MESSAGE.format(
            name=membership.name,
            count=count,
            balance=balance,
            debt=balance * rate,
            currency=services.currency,
        )
    elif balance < 0:
        text = SETTLE_CREDIT_MESSAGE.format(name=membership.name, count=count, credit=-balance)
    else:
        text = SETTLE_CLEAR_MESSAGE.format(name=membership.name, count=count)

    return ctx.reply(text)
