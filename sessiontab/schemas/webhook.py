"""
sessiontab/schemas/webhook.py

Purpose: Inbound event and reply schemas

- InboundEvent: normalized update handed over by the chat gateway
- BotReply: text plus optional button rows for the gateway to deliver
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Literal


class Sender(BaseModel):
    external_id: int = Field(..., description="Chat network user ID")
    name: str = Field(default="", description="Sender's display name")
    handle: Optional[str] = Field(default=None, description="Username without @")


class Chat(BaseModel):
    external_id: int = Field(..., description="Chat network chat ID")
    title: str = ""
    kind: Literal["private", "group", "supergroup", "channel"] = "private"

    @property
    def is_private(self) -> bool:
        return self.kind == "private"


class InboundEvent(BaseModel):
    """
    Normalized update for internal processing.

    Exactly one of ``text`` / ``callback_data`` is normally set; a
    ``bot_added`` event carries neither.
    """
    update_id: Optional[str] = None
    sender: Sender
    chat: Chat
    text: Optional[str] = None
    callback_data: Optional[str] = None
    bot_added: bool = False

    model_config = {
        "json_schema_extra": {
            "example": {
                "update_id": "1001",
                "sender": {"external_id": 42, "name": "Sara", "handle": "sara"},
                "chat": {"external_id": -100123, "title": "Friday futsal", "kind": "group"},
                "text": "/attendance @sara @omid",
            }
        }
    }

    @property
    def command(self) -> Optional[str]:
        """Command name without the slash or @botname suffix, if text is a command."""
        if not self.text or not self.text.startswith("/"):
            return None
        head = self.text.split(maxsplit=1)[0][1:]
        return head.split("@", 1)[0].lower() or None

    @property
    def command_args(self) -> List[str]:
        if self.command is None:
            return []
        return self.text.split()[1:]


class Button(BaseModel):
    text: str
    data: str


class BotReply(BaseModel):
    chat_id: int
    text: str
    buttons: List[List[Button]] = Field(default_factory=list)
    parse_mode: Optional[Literal["Markdown"]] = None


class WebhookResponse(BaseModel):
    status: Literal["success", "ignored"] = "success"
    replies: List[BotReply] = Field(default_factory=list)
