"""Tests for the gateway HTTP server and agent manager."""

import json
import time
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from gateway.config import GatewayConfig
from gateway.server import AgentManager, create_app
from tests.fakes import FakeAdapter


class FakeAgent:
    def __init__(self, adapter, channel, config):
        self.adapter = adapter
        self.channel = channel
        self.config = config
        self.last_interaction = time.time()
        self.init = AsyncMock()
        self.dispose = AsyncMock()


class RecordingFactory:
    def __init__(self, fail_with=None):
        self.agents = []
        self.fail_with = fail_with

    def __call__(self, adapter, channel, config):
        agent = FakeAgent(adapter, channel, config)
        if self.fail_with is not None:
            agent.init.side_effect = self.fail_with
        self.agents.append(agent)
        return agent


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def factory():
    return RecordingFactory()


@pytest.fixture
def client(adapter, factory):
    app = create_app(GatewayConfig(), adapter=adapter, agent_factory=factory, reap_interval=3600)
    with TestClient(app) as test_client:
        yield test_client


# ── Endpoints ─────────────────────────────────────────────────────────────

class TestHealth:

    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {
            "message": "AI Writing Assistant Server is up and running",
            "active_agents": 0,
        }


class TestStartStop:

    def test_start_agent(self, client, adapter, factory):
        response = client.post("/start-ai-agent", json={"channel_id": "general"})

        assert response.status_code == 200
        assert response.json() == {"message": "AI agent started", "cid": "messaging:general"}
        assert adapter.channels["messaging:general"].members == ["ai-writing-assistant"]
        factory.agents[0].init.assert_awaited_once()
        assert client.get("/").json()["active_agents"] == 1

    def test_start_twice_reuses_agent(self, client, factory):
        client.post("/start-ai-agent", json={"channel_id": "general"})
        response = client.post("/start-ai-agent", json={"channel_id": "general"})

        assert response.status_code == 200
        assert len(factory.agents) == 1

    def test_start_requires_channel_id(self, client):
        assert client.post("/start-ai-agent", json={"channel_id": "  "}).status_code == 400
        assert client.post("/start-ai-agent", json={}).status_code == 422

    def test_start_failure(self, adapter):
        factory = RecordingFactory(fail_with=ValueError("OpenAI API key is required"))
        app = create_app(GatewayConfig(), adapter=adapter, agent_factory=factory, reap_interval=3600)
        with TestClient(app) as client:
            response = client.post("/start-ai-agent", json={"channel_id": "general"})
            assert response.status_code == 500
            assert "OpenAI API key is required" in response.json()["detail"]
            assert client.get("/").json()["active_agents"] == 0

    def test_stop_agent(self, client, factory):
        client.post("/start-ai-agent", json={"channel_id": "general", "channel_type": "team"})

        response = client.post("/stop-ai-agent", json={"channel_id": "general", "channel_type": "team"})

        assert response.status_code == 200
        assert response.json()["cid"] == "team:general"
        factory.agents[0].dispose.assert_awaited_once()

    def test_stop_unknown_agent(self, client):
        response = client.post("/stop-ai-agent", json={"channel_id": "nobody"})
        assert response.status_code == 404


class TestWebhook:

    def test_event_is_dispatched(self, client, adapter):
        received = []

        async def on_stop(event):
            received.append(event)

        adapter.on("ai_indicator.stop", on_stop)
        payload = {"type": "ai_indicator.stop", "cid": "messaging:general", "message_id": "m1"}

        response = client.post("/webhook", content=json.dumps(payload), headers={"x-signature": "sig"})

        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "type": "ai_indicator.stop"}
        assert [e.message_id for e in received] == ["m1"]

    def test_bad_signature(self, adapter, factory):
        adapter.signature_valid = False
        app = create_app(GatewayConfig(), adapter=adapter, agent_factory=factory, reap_interval=3600)
        with TestClient(app) as client:
            response = client.post("/webhook", content=b"{}")
        assert response.status_code == 401

    def test_body_must_be_json_object(self, client):
        assert client.post("/webhook", content=b"not json").status_code == 400
        assert client.post("/webhook", content=b"[1, 2]").status_code == 400


class TestLifespan:

    def test_shutdown_stops_agents_and_disconnects(self, adapter, factory):
        app = create_app(GatewayConfig(), adapter=adapter, agent_factory=factory, reap_interval=3600)
        with TestClient(app) as client:
            assert adapter.is_connected
            client.post("/start-ai-agent", json={"channel_id": "general"})

        factory.agents[0].dispose.assert_awaited_once()
        assert adapter.disconnected

    def test_connect_failure_aborts_startup(self, factory):
        adapter = FakeAdapter()
        adapter.connect = AsyncMock(return_value=False)
        app = create_app(GatewayConfig(), adapter=adapter, agent_factory=factory)
        with pytest.raises(RuntimeError):
            with TestClient(app):
                pass


# ── Idle reaping ──────────────────────────────────────────────────────────

class TestReaper:

    @pytest.mark.asyncio
    async def test_idle_agents_are_stopped(self):
        factory = RecordingFactory()
        manager = AgentManager(FakeAdapter(), GatewayConfig(idle_minutes=60), factory)
        idle = await manager.start_agent("messaging", "quiet")
        active = await manager.start_agent("messaging", "busy")
        now = time.time()
        idle.last_interaction = now - 61 * 60
        active.last_interaction = now - 5 * 60

        reaped = await manager.reap_idle(now=now)

        assert reaped == 1
        idle.dispose.assert_awaited_once()
        active.dispose.assert_not_awaited()
        assert list(manager.agents) == ["messaging:busy"]

    @pytest.mark.asyncio
    async def test_stop_all(self):
        manager = AgentManager(FakeAdapter(), GatewayConfig(), RecordingFactory())
        await manager.start_agent("messaging", "a")
        await manager.start_agent("messaging", "b")

        await manager.stop_all()

        assert manager.agents == {}
