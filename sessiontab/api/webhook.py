"""
sessiontab/api/webhook.py

Purpose: Chat webhook endpoint

- Receives normalized events from the chat gateway
- Checks the shared secret header when one is configured
- Passes control to the flow dispatcher
- Returns the replies for the gateway to deliver
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Header, Request

from sessiontab.core.config import settings
from sessiontab.core.exceptions import AuthenticationError
from sessiontab.core.logging import get_logger
from sessiontab.flow.dispatcher import dispatch_event
from sessiontab.schemas.webhook import InboundEvent, WebhookResponse

logger = get_logger(__name__)
router = APIRouter()


def _check_secret(provided: Optional[str]) -> None:
    expected = settings.WEBHOOK_SECRET
    if not expected:
        return
    if provided is None or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise AuthenticationError("Invalid webhook secret")


@router.post("/webhook", response_model=WebhookResponse)
async def webhook_handler(
    event: InboundEvent,
    request: Request,
    x_webhook_secret: Optional[str] = Header(default=None),
):
    """
    Webhook endpoint for chat updates.

    The gateway posts one normalized event per request and delivers the
    returned replies in order.
    """
    _check_secret(x_webhook_secret)

    logger.info(
        f"Event from {event.sender.external_id} in {event.chat.kind} chat {event.chat.external_id}",
        extra={"update_id": event.update_id},
    )

    replies = await dispatch_event(request.app.state.services, event)
    if not replies:
        return WebhookResponse(status="ignored")
    return WebhookResponse(replies=replies)


@router.get("/webhook")
async def webhook_verification():
    """
    Webhook verification endpoint (for gateways that require GET verification)
    """
    return {"status": "ok", "message": "Webhook endpoint is active"}
