"""
sessiontab/flow/context.py

Purpose: Per-event handler context

- Bundles the services, the inbound event and the resolved sender
- Reply helpers so handlers stay short
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from sessiontab.models.person import Person
from sessiontab.schemas.webhook import BotReply, Button, InboundEvent
from sessiontab.services.container import Services


@dataclass
class FlowContext:
    services: Services
    event: InboundEvent
    person: Person

    @property
    def chat_id(self) -> int:
        return self.event.chat.external_id

    def reply(
        self,
        text: str,
        buttons: Optional[Sequence[Sequence[Tuple[str, str]]]] = None,
        markdown: bool = False,
    ) -> List[BotReply]:
        """
        Single reply to the chat the event came from.

        Args:
            text: Message body
            buttons: Rows of (label, callback data) pairs
            markdown: Ask the gateway to render Markdown
        """
        rows = [
            [Button(text=label, data=data) for label, data in row]
            for row in (buttons or [])
        ]
        return [BotReply(
            chat_id=self.chat_id,
            text=text,
            buttons=rows,
            parse_mode="Markdown" if markdown else None,
        )]
