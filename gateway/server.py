"""
Gateway HTTP server.

Exposes:
- GET  /                health check
- POST /start-ai-agent  attach a writing assistant to a channel
- POST /stop-ai-agent   detach it
- POST /webhook         inbound chat events (message.new, ai_indicator.stop)

Agents that see no user messages for ``idle_minutes`` are stopped by a
background reaper.
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from agent.assistant import AssistantAgent
from gateway.config import GatewayConfig, Platform, PlatformConfig, load_gateway_config
from gateway.platforms.base import BaseChannel, BasePlatformAdapter, ChatEvent

logger = logging.getLogger(__name__)

REAP_INTERVAL_SECONDS = 60.0

AgentFactory = Callable[[BasePlatformAdapter, BaseChannel, GatewayConfig], AssistantAgent]


class AgentRequest(BaseModel):
    channel_id: str
    channel_type: str = "messaging"


def default_agent_factory(
    adapter: BasePlatformAdapter,
    channel: BaseChannel,
    config: GatewayConfig,
) -> AssistantAgent:
    return AssistantAgent(
        adapter,
        channel,
        config.assistant,
        tavily_api_key=config.tavily_api_key,
        update_interval=config.update_interval,
    )


class AgentManager:
    """Tracks one AssistantAgent per channel cid."""

    def __init__(
        self,
        adapter: BasePlatformAdapter,
        config: GatewayConfig,
        agent_factory: AgentFactory = default_agent_factory,
    ):
        self.adapter = adapter
        self.config = config
        self._agent_factory = agent_factory
        self._agents: Dict[str, AssistantAgent] = {}
        self._lock = asyncio.Lock()

    @property
    def agents(self) -> Dict[str, AssistantAgent]:
        return dict(self._agents)

    def get(self, cid: str) -> Optional[AssistantAgent]:
        return self._agents.get(cid)

    async def start_agent(self, channel_type: str, channel_id: str) -> AssistantAgent:
        """Start (or return the running) agent for a channel."""
        async with self._lock:
            channel = self.adapter.channel(channel_type, channel_id)
            existing = self._agents.get(channel.cid)
            if existing is not None:
                return existing

            await channel.add_member(self.adapter.bot_user_id)
            agent = self._agent_factory(self.adapter, channel, self.config)
            await agent.init()
            self._agents[channel.cid] = agent
            logger.info("Started agent for %s", channel.cid)
            return agent

    async def stop_agent(self, cid: str) -> bool:
        agent = self._agents.pop(cid, None)
        if agent is None:
            return False
        await agent.dispose()
        logger.info("Stopped agent for %s", cid)
        return True

    async def stop_all(self) -> None:
        for cid in list(self._agents):
            await self.stop_agent(cid)

    async def reap_idle(self, now: Optional[float] = None) -> int:
        """Stop agents idle for longer than the configured timeout."""
        now = time.time() if now is None else now
        max_idle = self.config.idle_minutes * 60
        idle = [cid for cid, agent in self._agents.items() if now - agent.last_interaction > max_idle]
        for cid in idle:
            logger.info("Agent for %s idle for over %d minutes", cid, self.config.idle_minutes)
            await self.stop_agent(cid)
        return len(idle)

    async def run_reaper(self, interval: float = REAP_INTERVAL_SECONDS) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.reap_idle()
            except Exception:
                logger.exception("Idle agent cleanup failed")


def create_adapter(config: GatewayConfig) -> BasePlatformAdapter:
    from gateway.platforms.stream import StreamChatAdapter

    return StreamChatAdapter(config.get_platform(Platform.STREAM) or PlatformConfig())


def create_app(
    config: Optional[GatewayConfig] = None,
    adapter: Optional[BasePlatformAdapter] = None,
    agent_factory: AgentFactory = default_agent_factory,
    reap_interval: float = REAP_INTERVAL_SECONDS,
) -> FastAPI:
    config = config or load_gateway_config()
    adapter = adapter or create_adapter(config)
    manager = AgentManager(adapter, config, agent_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not adapter.is_connected and not await adapter.connect():
            raise RuntimeError(f"Failed to connect to {adapter.name}")

        reaper = asyncio.create_task(manager.run_reaper(reap_interval))
        try:
            yield
        finally:
            reaper.cancel()
            try:
                await reaper
            except asyncio.CancelledError:
                pass
            await manager.stop_all()
            await adapter.disconnect()

    app = FastAPI(title="Quill Gateway", lifespan=lifespan)
    app.state.config = config
    app.state.adapter = adapter
    app.state.agents = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def health() -> dict:
        return {
            "message": "AI Writing Assistant Server is up and running",
            "active_agents": len(manager.agents),
        }

    @app.post("/start-ai-agent")
    async def start_ai_agent(request: AgentRequest) -> dict:
        if not request.channel_id.strip():
            raise HTTPException(status_code=400, detail="channel_id is required")
        try:
            agent = await manager.start_agent(request.channel_type, request.channel_id)
        except Exception as e:
            logger.exception("Failed to start agent for %s", request.channel_id)
            raise HTTPException(status_code=500, detail=f"Failed to start AI agent: {e}")
        return {"message": "AI agent started", "cid": agent.channel.cid}

    @app.post("/stop-ai-agent")
    async def stop_ai_agent(request: AgentRequest) -> dict:
        cid = f"{request.channel_type}:{request.channel_id}"
        if not await manager.stop_agent(cid):
            raise HTTPException(status_code=404, detail=f"No AI agent running for {cid}")
        return {"message": "AI agent stopped", "cid": cid}

    @app.post("/webhook")
    async def webhook(request: Request, background_tasks: BackgroundTasks) -> dict:
        body = await request.body()
        if not adapter.verify_webhook(body, request.headers.get("x-signature")):
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
        try:
            payload = json.loads(body)
        except ValueError:
            raise HTTPException(status_code=400, detail="Webhook body must be JSON")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")

        event = ChatEvent.from_dict(payload)
        background_tasks.add_task(adapter.dispatch, event)
        return {"status": "accepted", "type": event.type}

    return app


def run_server(config: Optional[GatewayConfig] = None) -> None:
    """Run the gateway in the foreground."""
    import uvicorn

    config = config or load_gateway_config()
    uvicorn.run(create_app(config), host=config.host, port=config.port)
