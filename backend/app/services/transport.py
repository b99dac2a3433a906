"""
Outbound chat transport for notices sent outside a request/response turn.
"""
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.core.logging import get_logger
from app.services.bot_schemas import RenderRequest

logger = get_logger(__name__)


class ChatTransport(ABC):
    """Delivers a render request to a chat."""

    @abstractmethod
    async def send(self, conversation_id: str, render: RenderRequest) -> None:
        pass


class HttpChatTransport(ChatTransport):
    """Posts render requests as JSON to the bot front-end's webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, conversation_id: str, render: RenderRequest) -> None:
        payload = {
            "conversation_id": conversation_id,
            **render.model_dump(),
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        logger.debug(f"Delivered notice to chat {conversation_id}")


class NullChatTransport(ChatTransport):
    """Transport used when no webhook is configured; notices are only logged."""

    async def send(self, conversation_id: str, render: RenderRequest) -> None:
        logger.info(f"Notice for chat {conversation_id} (no transport configured): {render.text}")


def create_chat_transport(settings) -> ChatTransport:
    if settings.TRANSPORT_WEBHOOK_URL:
        return HttpChatTransport(
            settings.TRANSPORT_WEBHOOK_URL,
            timeout=settings.TRANSPORT_TIMEOUT_SECONDS,
        )
    return NullChatTransport()
