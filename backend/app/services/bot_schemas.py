"""
Chat Bot Schemas - inbound events from the chat transport and outbound render requests.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


class Asset(BaseModel):
    """A binary file already uploaded by the transport (e.g. a vehicle photo)."""
    url: str = Field(..., description="Where the transport stored the file")
    storage_key: str = Field(..., description="Stable key of the stored object")
    size: int = Field(0, ge=0, description="Size in bytes")
    content_type: str = Field("image/jpeg", description="MIME type reported by the transport")


class _InboundEvent(BaseModel):
    actor_id: str = Field(..., description="Chat user id of the admin")
    conversation_id: str = Field(..., description="Chat (or thread) id the event arrived in")

    @field_validator("actor_id", "conversation_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        # Telegram-style transports send numeric ids
        if isinstance(value, int):
            return str(value)
        return value


class Directive(_InboundEvent):
    """A button press: a static action tag plus an optional target id."""
    action: str = Field(..., description="Action tag, e.g. 'policy_delete'")
    target_id: Optional[str] = Field(None, description="Record id (or compound target) the action applies to")


class FreeformInput(_InboundEvent):
    """Free text typed by the admin, meaningful only within an active session."""
    text: str = Field("", description="Raw message text")
    assets: List[Asset] = Field(default_factory=list, description="Files attached to the message")


class Button(BaseModel):
    label: str
    action: str
    target_id: Optional[str] = None


class RenderRequest(BaseModel):
    """Text plus rows of buttons for the next directive."""
    text: str
    buttons: List[List[Button]] = Field(default_factory=list)

    def actions(self) -> List[str]:
        """Flat list of the action tags offered, in display order."""
        return [button.action for row in self.buttons for button in row]


class DispatchResult(BaseModel):
    """Outcome of dispatching one inbound event."""
    handled: bool
    render: Optional[RenderRequest] = None

    @classmethod
    def unhandled(cls) -> "DispatchResult":
        return cls(handled=False)

    @classmethod
    def reply(cls, render: RenderRequest) -> "DispatchResult":
        return cls(handled=True, render=render)
