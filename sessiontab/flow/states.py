"""
sessiontab/flow/states.py

Purpose: Defines all conversation states

- Enum of each step that waits for free-text or button input
- One typed payload per state carrying exactly what that step needs
- Metadata for each state (retry prompt, timeout)
"""

from enum import Enum
from typing import Annotated, Dict, Literal, Optional, Union
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from sessiontab.models.membership import Role
from utils.constants import (
    INVALID_NAME_MESSAGE,
    INVALID_NUMBER_MESSAGE,
    PROMPT_SELECT_ROLE,
)


class ConversationState(str, Enum):
    """
    Steps of the private-chat dialogues.
    Each state represents a question the bot is waiting to have answered.
    """

    # Registration / profile edit
    AWAITING_NAME = "awaiting_name"
    AWAITING_ROLE = "awaiting_role"

    # Admin: rate setting
    AWAITING_RATE = "awaiting_rate"

    # Admin: settlement
    AWAITING_SETTLE_SESSIONS = "awaiting_settle_sessions"


class _StatePayload(BaseModel):
    model_config = ConfigDict(frozen=True)


class AwaitingName(_StatePayload):
    state: Literal[ConversationState.AWAITING_NAME] = ConversationState.AWAITING_NAME
    group_id: int
    action: Literal["register", "edit"] = "register"


class AwaitingRole(_StatePayload):
    state: Literal[ConversationState.AWAITING_ROLE] = ConversationState.AWAITING_ROLE
    group_id: int
    person_id: int
    name: str = Field(..., min_length=1)
    action: Literal["register", "edit"] = "register"


class AwaitingRate(_StatePayload):
    state: Literal[ConversationState.AWAITING_RATE] = ConversationState.AWAITING_RATE
    group_id: int
    role: Role


class AwaitingSettleSessions(_StatePayload):
    state: Literal[ConversationState.AWAITING_SETTLE_SESSIONS] = ConversationState.AWAITING_SETTLE_SESSIONS
    group_id: int
    target_person_id: int


StatePayload = Annotated[
    Union[AwaitingName, AwaitingRole, AwaitingRate, AwaitingSettleSessions],
    Field(discriminator="state"),
]


@dataclass
class StateMetadata:
    """
    Metadata associated with each conversation state.
    """
    name: ConversationState
    display_name: str
    retry_prompt: str  # Sent when the answer fails validation; state is kept
    timeout_minutes: Optional[int] = None  # None = inherit store default
    description: str = ""


STATE_METADATA: Dict[ConversationState, StateMetadata] = {
    ConversationState.AWAITING_NAME: StateMetadata(
        name=ConversationState.AWAITING_NAME,
        display_name="Enter name",
        retry_prompt=INVALID_NAME_MESSAGE,
        description="Collect the display name used inside the group"
    ),
    ConversationState.AWAITING_ROLE: StateMetadata(
        name=ConversationState.AWAITING_ROLE,
        display_name="Select role",
        retry_prompt=PROMPT_SELECT_ROLE,
        description="Pick the pricing role; completes registration"
    ),
    ConversationState.AWAITING_RATE: StateMetadata(
        name=ConversationState.AWAITING_RATE,
        display_name="Enter rate",
        retry_prompt=INVALID_NUMBER_MESSAGE,
        timeout_minutes=15,
        description="Admin types the price per session for one role"
    ),
    ConversationState.AWAITING_SETTLE_SESSIONS: StateMetadata(
        name=ConversationState.AWAITING_SETTLE_SESSIONS,
        display_name="Enter settled sessions",
        retry_prompt=INVALID_NUMBER_MESSAGE,
        timeout_minutes=15,
        description="Admin types how many sessions the member paid for"
    ),
}


def get_state_metadata(state: ConversationState) -> StateMetadata:
    """
    Retrieves metadata for a given state.

    Args:
        state: Conversation state

    Returns:
        StateMetadata for the state
    """
    return STATE_METADATA.get(state, StateMetadata(
        name=state,
        display_name=state.value,
        retry_prompt="",
        description="Unknown state"
    ))
