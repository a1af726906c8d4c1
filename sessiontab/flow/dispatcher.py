"""
sessiontab/flow/dispatcher.py

Purpose: Central event dispatcher

- Receives normalized events from the webhook
- Routes callbacks, commands and free text to the right handler
- Free text in a private chat goes to the handler of the sender's state
- Turns domain errors into user-facing replies
"""

from typing import Awaitable, Callable, Dict, List, Optional

from sessiontab.core.exceptions import (
    AlreadyRevertedError,
    AuthorizationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from sessiontab.core.logging import LogContext, get_logger
from sessiontab.flow.context import FlowContext
from sessiontab.flow.handlers.group_commands import (
    handle_attendance_command,
    handle_report_command,
    handle_setrole_command,
    handle_undo_command,
)
from sessiontab.flow.handlers.menu import handle_back_callback, handle_bot_added, handle_start
from sessiontab.flow.handlers.rates import handle_rate_input, handle_set_rates_callback, handle_setrate_callback
from sessiontab.flow.handlers.registration import (
    handle_invoice_callback,
    handle_name_input,
    handle_register_callback,
    handle_role_callback,
)
from sessiontab.flow.handlers.settlement import (
    handle_settle_callback,
    handle_settle_sessions_input,
    handle_settle_user_callback,
)
from sessiontab.flow.states import ConversationState, get_state_metadata
from sessiontab.schemas.webhook import BotReply, InboundEvent
from sessiontab.services.container import Services
from utils.constants import ALREADY_REVERTED_MESSAGE, GENERIC_ERROR_MESSAGE, NOT_ADMIN_MESSAGE
from utils.validation_utils import parse_callback_data

logger = get_logger(__name__)

Replies = List[BotReply]

# callback action -> handler(ctx, parts)
CALLBACK_HANDLERS: Dict[str, Callable[[FlowContext, List[str]], Awaitable[Replies]]] = {
    "register": handle_register_callback,
    "edit": handle_register_callback,
    "role": handle_role_callback,
    "invoice": handle_invoice_callback,
    "set_rates": handle_set_rates_callback,
    "setrate": handle_setrate_callback,
    "settle": handle_settle_callback,
    "settle_user": handle_settle_user_callback,
    "back": handle_back_callback,
}

PRIVATE_COMMANDS: Dict[str, Callable[[FlowContext], Awaitable[Replies]]] = {
    "start": handle_start,
}

GROUP_COMMANDS: Dict[str, Callable[[FlowContext], Awaitable[Replies]]] = {
    "attendance": handle_attendance_command,
    "report": handle_report_command,
    "undo": handle_undo_command,
    "setrole": handle_setrole_command,
}

# state -> handler(ctx, payload)
STATE_HANDLERS = {
    ConversationState.AWAITING_NAME: handle_name_input,
    ConversationState.AWAITING_RATE: handle_rate_input,
    ConversationState.AWAITING_SETTLE_SESSIONS: handle_settle_sessions_input,
}


async def dispatch_event(services: Services, event: InboundEvent) -> Replies:
    """
    Main dispatcher for inbound chat events.

    Args:
        services: Wired core components
        event: Normalized event

    Returns:
        Replies to deliver, possibly empty
    """
    sender = event.sender
    try:
        person = await services.repository.get_or_create_person(sender.external_id, sender.name, sender.handle)
    except PersistenceError as e:
        logger.error(f"{e.code}: {e.message}", extra={"update_id": event.update_id})
        return [BotReply(chat_id=event.chat.external_id, text=GENERIC_ERROR_MESSAGE)]

    ctx = FlowContext(services=services, event=event, person=person)

    state = services.conversations.get_state(person.id)

    with LogContext(logger, person_id=person.id, update_id=event.update_id) as log:
        try:
            return await _route(ctx, state)

        except ValidationError as e:
            log.info(f"Rejected input: {e.message}")
            if _answers_state(event, state):
                return ctx.reply(get_state_metadata(state.state).retry_prompt)
            return ctx.reply(e.message)

        except AuthorizationError:
            log.warning("Admin action refused")
            return ctx.reply(NOT_ADMIN_MESSAGE)

        except AlreadyRevertedError as e:
            log.info(e.message)
            return ctx.reply(ALREADY_REVERTED_MESSAGE)

        except (NotFoundError, PersistenceError) as e:
            log.error(f"{e.code}: {e.message}")
            services.conversations.clear_state(person.id)
            return ctx.reply(GENERIC_ERROR_MESSAGE)

        except Exception as e:
            log.error(f"Dispatcher error: {e}", exc_info=True)
            services.conversations.clear_state(person.id)
            return ctx.reply(GENERIC_ERROR_MESSAGE)


def _answers_state(event: InboundEvent, state) -> bool:
    """True when the event is free text consumed by the sender's pending state."""
    return (
        state is not None
        and event.chat.is_private
        and event.callback_data is None
        and event.command is None
    )


async def _route(ctx: FlowContext, state) -> Replies:
    event = ctx.event

    if event.bot_added:
        return await handle_bot_added(ctx)

    if event.callback_data is not None:
        return await _route_callback(ctx, event.callback_data)

    command = event.command
    if command is not None:
        commands = PRIVATE_COMMANDS if event.chat.is_private else GROUP_COMMANDS
        handler = commands.get(command)
        if handler is None:
            logger.debug(f"Ignoring command /{command}")
            return []
        logger.info(f"Command /{command}")
        return await handler(ctx)

    if not event.chat.is_private or not event.text or state is None:
        return []

    return await _route_state(ctx, state)


async def _route_callback(ctx: FlowContext, data: str) -> Replies:
    parts = parse_callback_data(data)
    action = parts[0] if parts else ""
    if action == "noop":
        return []

    handler = CALLBACK_HANDLERS.get(action)
    if handler is None:
        logger.warning(f"Unknown callback action: {action!r}")
        return []

    logger.info(f"Callback {action}")
    return await handler(ctx, parts)


async def _route_state(ctx: FlowContext, state) -> Replies:
    handler: Optional[Callable] = STATE_HANDLERS.get(state.state)
    if handler is None:
        # Waiting on a button (e.g. role picker) or an unhandled state
        if state.state == ConversationState.AWAITING_ROLE:
            return ctx.reply(get_state_metadata(state.state).retry_prompt)
        logger.warning(f"No handler for state {state.state.value}, clearing", extra={"state": state.state.value})
        ctx.services.conversations.clear_state(ctx.person.id)
        return []

    return await handler(ctx, state)
