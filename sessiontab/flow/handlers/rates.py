"""
sessiontab/flow/handlers/rates.py

Handles: admin rate setting

- set_rates:<group> -> role picker
- setrate:<role>:<group> -> AWAITING_RATE
- price text -> rate upsert, state cleared
"""

from typing import List

from sessiontab.core.exceptions import ValidationError
from sessiontab.flow.context import FlowContext
from sessiontab.flow.states import AwaitingRate
from sessiontab.models.membership import PRICED_ROLES, Role
from sessiontab.schemas.webhook import BotReply
from utils.constants import (
    BUTTON_BACK,
    PROMPT_ENTER_RATE,
    PROMPT_SELECT_RATE_ROLE,
    RATE_SET_MESSAGE,
    ROLE_BUTTON_LABELS,
    ROLE_NAMES,
)
from utils.validation_utils import parse_int_arg, parse_price


def _rate_buttons(group_id: int) -> list:
    rows = [
        [(ROLE_BUTTON_LABELS[role.value], f"setrate:{role.value}:{group_id}")]
        for role in PRICED_ROLES
    ]
    rows.append([(BUTTON_BACK, f"back:{group_id}")])
    return rows


async def handle_set_rates_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    group_id = parse_int_arg(parts, 1)
    if group_id is None:
        return []

    await ctx.services.gate.require_admin(ctx.person, group_id)
    return ctx.reply(PROMPT_SELECT_RATE_ROLE, buttons=_rate_buttons(group_id))


async def handle_setrate_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    group_id = parse_int_arg(parts, 2)
    if group_id is None:
        return []

    try:
        role = Role.from_str(parts[1])
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if role not in PRICED_ROLES:
        raise ValidationError(f"Role {role.value} has no rate")

    await ctx.services.gate.require_admin(ctx.person, group_id)
    ctx.services.conversations.set_state(ctx.person.id, AwaitingRate(group_id=group_id, role=role))

    return ctx.reply(PROMPT_ENTER_RATE.format(role=ROLE_NAMES[role.value], currency=ctx.services.currency))


async def handle_rate_input(ctx: FlowContext, state: AwaitingRate) -> List[BotReply]:
    """
    Raises:
        ValidationError: Non-numeric or negative price (state kept)
    """
    price = parse_price(ctx.event.text or "")
    await ctx.services.gate.require_admin(ctx.person, state.group_id)

    price = await ctx.services.rates.set_rate(state.group_id, state.role, price)
    ctx.services.conversations.clear_state(ctx.person.id)

    text = RATE_SET_MESSAGE.format(
        role=ROLE_NAMES[state.role.value],
        price=price,
        currency=ctx.services.currency,
    )
    return ctx.reply(text, buttons=_rate_buttons(state.group_id))
