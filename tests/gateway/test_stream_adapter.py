"""Tests for the Stream Chat adapter against a mocked SDK client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gateway.config import PlatformConfig
from gateway.platforms.stream import StreamChatAdapter


def _sdk_client():
    client = MagicMock()
    client.upsert_user = AsyncMock()
    client.update_message_partial = AsyncMock()
    client.close = AsyncMock()
    return client


def _adapter(client=None, **config):
    settings = {"enabled": True, "api_key": "key", "api_secret": "secret", **config}
    return StreamChatAdapter(PlatformConfig(**settings), client=client)


class TestConnect:

    @pytest.mark.asyncio
    async def test_connect_registers_bot_user(self):
        client = _sdk_client()
        adapter = _adapter(client, bot_user_id="quill-bot", bot_user_name="Quill")

        assert await adapter.connect()

        client.upsert_user.assert_awaited_once_with({"id": "quill-bot", "name": "Quill", "role": "admin"})
        assert adapter.is_connected

    @pytest.mark.asyncio
    async def test_connect_without_credentials(self):
        adapter = StreamChatAdapter(PlatformConfig(enabled=True))
        assert not await adapter.connect()
        assert not adapter.is_connected

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        client = _sdk_client()
        client.upsert_user = AsyncMock(side_effect=RuntimeError("401"))
        adapter = _adapter(client)
        assert not await adapter.connect()

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(self):
        client = _sdk_client()
        adapter = _adapter(client)
        await adapter.connect()

        await adapter.disconnect()

        client.close.assert_awaited_once()
        assert not adapter.is_connected

    def test_channel_requires_client(self):
        with pytest.raises(RuntimeError):
            StreamChatAdapter(PlatformConfig()).channel("messaging", "general")


class TestChannelOperations:

    @pytest.mark.asyncio
    async def test_send_message_as_bot(self):
        client = _sdk_client()
        sdk_channel = MagicMock()
        sdk_channel.cid = "messaging:general"
        sdk_channel.send_message = AsyncMock(return_value={"message": {
            "id": "reply-1", "cid": "messaging:general", "text": "", "ai_generated": True,
            "user": {"id": "ai-writing-assistant"},
        }})
        client.channel.return_value = sdk_channel
        adapter = _adapter(client)

        channel = adapter.channel("messaging", "general")
        reply = await channel.send_message("", ai_generated=True)

        client.channel.assert_called_once_with("messaging", "general")
        sdk_channel.send_message.assert_awaited_once_with({"text": "", "ai_generated": True}, "ai-writing-assistant")
        assert channel.cid == "messaging:general"
        assert reply.id == "reply-1"
        assert reply.ai_generated

    @pytest.mark.asyncio
    async def test_events_and_members(self):
        client = _sdk_client()
        sdk_channel = MagicMock()
        sdk_channel.cid = "messaging:general"
        sdk_channel.send_event = AsyncMock()
        sdk_channel.add_members = AsyncMock()
        client.channel.return_value = sdk_channel
        adapter = _adapter(client)
        channel = adapter.channel("messaging", "general")

        await channel.clear_ai_state("reply-1")
        await channel.add_member("ai-writing-assistant")

        sdk_channel.send_event.assert_awaited_once_with(
            {"type": "ai_indicator.clear", "cid": "messaging:general", "message_id": "reply-1"},
            "ai-writing-assistant",
        )
        sdk_channel.add_members.assert_awaited_once_with(["ai-writing-assistant"])

    @pytest.mark.asyncio
    async def test_partial_update(self):
        client = _sdk_client()
        adapter = _adapter(client)

        await adapter.partial_update_message("reply-1", {"text": "Hello"})

        client.update_message_partial.assert_awaited_once_with(
            "reply-1", {"set": {"text": "Hello"}}, "ai-writing-assistant",
        )


class TestWebhookVerification:

    def test_missing_signature_rejected(self):
        client = _sdk_client()
        assert not _adapter(client).verify_webhook(b"{}", None)
        client.verify_webhook.assert_not_called()

    def test_signature_checked_by_sdk(self):
        client = _sdk_client()
        client.verify_webhook.return_value = True
        assert _adapter(client).verify_webhook(b"{}", "sig")
        client.verify_webhook.assert_called_once_with(b"{}", "sig")
