"""Pydantic schemas for live chat, conversations and AI state."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MessageOrigin(str, Enum):
    """Who authored a conversation message."""

    USER = "user"
    OWNER = "owner"
    AI = "ai"


class ConnectionRole(str, Enum):
    """Role a live channel registers under."""

    USER = "user"
    OWNER = "owner"


class CamelModel(BaseModel):
    """Base model serialising to the camelCase keys the chat widget expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceRef(CamelModel):
    """Knowledge chunk cited by an AI reply."""

    file_name: str | None = None
    source_type: str | None = None
    relevance_score: float = 0.0


class ChatMessage(CamelModel):
    """One immutable entry of a user's conversation."""

    origin: MessageOrigin = Field(..., alias="from")
    text: str
    ts: int = Field(..., description="Epoch milliseconds at append time")
    seq: int | None = Field(default=None, description="Per-user append sequence")
    user_id: str | None = None
    owner_id: str | None = None
    context_used: bool | None = None
    sources: list[SourceRef] | None = None
    error: bool | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialise for a WebSocket frame or HTTP response."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ContactMetadata(CamelModel):
    """Contact details a user (or the dashboard) attaches to a conversation."""

    username: str | None = None
    useremail: str | None = None
    userphone: str | None = None
    owner_id: str | None = None

    def has_contact(self) -> bool:
        return bool(self.username or self.useremail or self.userphone)


class Conversation(CamelModel):
    """A user's conversation with its denormalised owner and contact fields."""

    user_id: str
    owner_id: str | None = None
    username: str | None = None
    useremail: str | None = None
    userphone: str | None = None
    created_at: datetime | None = None
    last_seen: datetime | None = None
    conversation: list[ChatMessage] = Field(default_factory=list)


class AiStateInfo(CamelModel):
    """Who currently answers a user."""

    user_id: str
    ai_active: bool
    status: str


class MetadataRequest(CamelModel):
    """Body for POST /chats/{user_id}/metadata."""

    username: str | None = None
    useremail: str | None = None
    userphone: str | None = None
    owner_id: str | None = None


class InboundFrame(BaseModel):
    """A JSON frame received on the live channel."""

    event: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
