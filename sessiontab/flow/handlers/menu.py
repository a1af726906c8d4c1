"""
sessiontab/flow/handlers/menu.py

Handles: entry points

- /start in a private chat: main menu for the first known group
- back:<group> callback: main menu again
- Bot added to a group: registers the group
"""

from typing import List, Optional, Tuple

from sessiontab.core.logging import get_logger
from sessiontab.flow.context import FlowContext
from sessiontab.schemas.webhook import BotReply
from sessiontab.services.authorization import PrivilegeLevel
from utils.constants import (
    BOT_ADDED_MESSAGE,
    BUTTON_EDIT_PROFILE,
    BUTTON_INVOICE,
    BUTTON_REGISTER,
    BUTTON_SET_RATES,
    BUTTON_SETTLE,
    MAIN_MENU_MESSAGE,
    MULTIPLE_GROUPS_MESSAGE,
    NO_GROUPS_MESSAGE,
    WELCOME_MESSAGE,
)
from utils.validation_utils import parse_int_arg

logger = get_logger(__name__)


async def main_menu_buttons(ctx: FlowContext, group_id: int) -> List[List[Tuple[str, str]]]:
    """Menu rows for the sender: register or edit/invoice, plus admin actions."""
    services = ctx.services
    rows = []

    if await services.repository.membership_exists(ctx.person.id, group_id):
        rows.append([(BUTTON_EDIT_PROFILE, f"edit:{group_id}")])
        rows.append([(BUTTON_INVOICE, f"invoice:{group_id}")])
    else:
        rows.append([(BUTTON_REGISTER, f"register:{group_id}")])

    if await services.gate.effective_role(ctx.person, group_id) == PrivilegeLevel.ADMIN:
        rows.append([(BUTTON_SET_RATES, f"set_rates:{group_id}")])
        rows.append([(BUTTON_SETTLE, f"settle:{group_id}")])

    return rows


async def handle_start(ctx: FlowContext) -> List[BotReply]:
    """
    Greets the sender and shows the main menu.

    Only the first group the bot knows about is offered, as the bot is
    normally used by a single squad.
    """
    services = ctx.services
    groups = await services.repository.list_groups()

    if not groups:
        logger.info("Start with no groups registered", extra={"person_id": ctx.person.id})
        return ctx.reply(NO_GROUPS_MESSAGE)

    replies: List[BotReply] = []
    if len(groups) > 1:
        replies += ctx.reply(MULTIPLE_GROUPS_MESSAGE.format(
            count=len(groups),
            titles=", ".join(g.title for g in groups),
        ))

    group_id = groups[0].id
    first_name = ctx.event.sender.name.split()[0] if ctx.event.sender.name.strip() else ""
    replies += ctx.reply(
        WELCOME_MESSAGE.format(first_name=first_name),
        buttons=await main_menu_buttons(ctx, group_id),
    )
    return replies


async def handle_back_callback(ctx: FlowContext, parts: List[str]) -> List[BotReply]:
    group_id = parse_int_arg(parts, 1)
    if group_id is None:
        return []
    # Leaving a submenu abandons whatever step was pending
    ctx.services.conversations.clear_state(ctx.person.id)
    return ctx.reply(MAIN_MENU_MESSAGE, buttons=await main_menu_buttons(ctx, group_id))


async def handle_bot_added(ctx: FlowContext) -> List[BotReply]:
    chat = ctx.event.chat
    group = await ctx.services.repository.get_or_create_group(chat.external_id, chat.title, chat.kind)
    logger.info(f"Bot added to '{group.title}'", extra={"group_id": group.id})
    return ctx.reply(BOT_ADDED_MESSAGE)


async def resolve_group_id(ctx: FlowContext) -> Optional[int]:
    """Internal ID of the group chat the event came from, if registered."""
    group = await ctx.services.repository.get_group_by_external_id(ctx.event.chat.external_id)
    return group.id if group else None
