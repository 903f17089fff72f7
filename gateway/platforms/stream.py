"""
Stream Chat platform adapter.

Uses the stream-chat server SDK for:
- Registering the bot user
- Posting replies and AI indicator events as the bot
- Updating replies in place while they stream
- Verifying webhook signatures

Inbound events arrive through the gateway webhook and are fed to
``dispatch``.
"""

import logging
from typing import Dict, Optional, Any

from stream_chat import StreamChatAsync

from gateway.config import Platform, PlatformConfig
from gateway.platforms.base import (
    BaseChannel,
    BasePlatformAdapter,
    ChatMessage,
)

logger = logging.getLogger(__name__)


class StreamChannel(BaseChannel):
    """A Stream channel, acting as the bot user."""

    def __init__(self, channel: Any, user_id: str):
        self._channel = channel
        self._user_id = user_id

    @property
    def cid(self) -> str:
        return self._channel.cid

    async def send_message(self, text: str, **fields: Any) -> ChatMessage:
        response = await self._channel.send_message({"text": text, **fields}, self._user_id)
        return ChatMessage.from_dict(response["message"])

    async def send_event(self, event: Dict[str, Any]) -> None:
        await self._channel.send_event(event, self._user_id)

    async def add_member(self, user_id: str) -> None:
        await self._channel.add_members([user_id])


class StreamChatAdapter(BasePlatformAdapter):
    """
    Stream Chat bot adapter.

    Handles:
    - Bot user registration
    - Channel handles for posting replies and status events
    - Partial message updates
    """

    def __init__(self, config: PlatformConfig, client: Optional[StreamChatAsync] = None):
        super().__init__(config, Platform.STREAM)
        self._client = client

    async def connect(self) -> bool:
        """Create the API client and register the bot user."""
        if not self.config.api_key or not self.config.api_secret:
            logger.error("[%s] No API key/secret configured", self.name)
            return False

        try:
            if self._client is None:
                self._client = StreamChatAsync(
                    api_key=self.config.api_key,
                    api_secret=self.config.api_secret,
                )
            await self._client.upsert_user({
                "id": self.bot_user_id,
                "name": self.config.bot_user_name,
                "role": "admin",
            })
            self._running = True
            logger.info("[%s] Connected as %s", self.name, self.bot_user_id)
            return True
        except Exception as e:
            logger.error("[%s] Failed to connect: %s", self.name, e)
            return False

    async def disconnect(self) -> None:
        """Close the API client."""
        if self._client:
            try:
                await self._client.close()
            except Exception as e:
                logger.warning("[%s] Error during disconnect: %s", self.name, e)

        self._running = False
        self._client = None
        logger.info("[%s] Disconnected", self.name)

    def _require_client(self) -> StreamChatAsync:
        if self._client is None:
            raise RuntimeError(f"{self.name} adapter is not connected")
        return self._client

    def channel(self, channel_type: str, channel_id: str) -> StreamChannel:
        client = self._require_client()
        return StreamChannel(client.channel(channel_type, channel_id), self.bot_user_id)

    async def partial_update_message(self, message_id: str, set_fields: Dict[str, Any]) -> None:
        client = self._require_client()
        await client.update_message_partial(message_id, {"set": set_fields}, self.bot_user_id)

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        if not signature or self._client is None:
            return False
        return self._client.verify_webhook(body, signature)
