"""Assistant agent -- one per chat channel.

Owns the hosted assistant and its conversation thread, listens for new
channel messages, and starts one StreamingResponseHandler per reply.
"""

import asyncio
import functools
import logging
import time
from typing import Any, List, Optional, Set

from openai import AsyncOpenAI

from agent.prompt_builder import build_writing_assistant_prompt, build_writing_context
from agent.response_handler import StreamingResponseHandler
from agent.throttle import UpdateThrottler
from gateway.config import AssistantSettings
from gateway.platforms.base import (
    AIState,
    BaseChannel,
    BasePlatformAdapter,
    ChatEvent,
    EVENT_MESSAGE_NEW,
    Subscription,
)
from model_tools import get_tool_definitions, handle_function_call

logger = logging.getLogger(__name__)


class AssistantAgent:
    """
    Writing assistant bound to a single channel.

    Call ``init()`` before use; ``dispose()`` stops listening and tears down
    every reply still streaming.
    """

    def __init__(
        self,
        adapter: BasePlatformAdapter,
        channel: BaseChannel,
        settings: AssistantSettings,
        tavily_api_key: Optional[str] = None,
        update_interval: float = 1.0,
        client: Optional[Any] = None,
    ):
        self.adapter = adapter
        self.channel = channel
        self.settings = settings
        self.tavily_api_key = tavily_api_key
        self.update_interval = update_interval

        self._client = client
        self.assistant_id: Optional[str] = None
        self.thread_id: Optional[str] = None
        self._last_interaction = time.time()

        self._handlers: List[StreamingResponseHandler] = []
        self._tasks: Set[asyncio.Task] = set()
        self._subscription: Optional[Subscription] = None

    @property
    def user_id(self) -> str:
        return self.adapter.bot_user_id

    @property
    def last_interaction(self) -> float:
        """Unix time of the last user message handled."""
        return self._last_interaction

    @property
    def handlers(self) -> List[StreamingResponseHandler]:
        return list(self._handlers)

    @property
    def is_initialized(self) -> bool:
        return bool(self._client and self.assistant_id and self.thread_id)

    async def init(self) -> None:
        """Create the assistant and its thread, then start listening."""
        if self._client is None:
            if not self.settings.api_key:
                raise ValueError("OpenAI API key is required")
            self._client = AsyncOpenAI(api_key=self.settings.api_key)

        assistant = await self._client.beta.assistants.create(
            name=self.settings.name,
            instructions=build_writing_assistant_prompt(),
            model=self.settings.model,
            tools=get_tool_definitions(),
            temperature=self.settings.temperature,
        )
        self.assistant_id = assistant.id

        thread = await self._client.beta.threads.create()
        self.thread_id = thread.id

        self._subscription = self.adapter.on(EVENT_MESSAGE_NEW, self._handle_message)
        logger.info("Agent for %s ready (assistant=%s, thread=%s)", self.channel.cid, self.assistant_id, self.thread_id)

    async def dispose(self) -> None:
        if self._subscription is not None:
            self.adapter.off(self._subscription)
            self._subscription = None

        for handler in list(self._handlers):
            handler.dispose()
        self._handlers = []

    async def _handle_message(self, event: ChatEvent) -> None:
        if not self.is_initialized:
            logger.info("AI is not initialized")
            return

        if event.cid != self.channel.cid:
            return

        message = event.message
        if message is None or message.ai_generated or message.user_id == self.user_id:
            return
        if not message.text:
            return

        self._last_interaction = time.time()

        writing_task = message.custom.get("writingTask") if message.custom else None
        instructions = build_writing_assistant_prompt(build_writing_context(writing_task))

        await self._client.beta.threads.messages.create(
            self.thread_id,
            role="user",
            content=message.text,
        )

        reply = await self.channel.send_message("", ai_generated=True)
        await self.channel.update_ai_state(AIState.THINKING, reply.id)

        # The handler starts the run; creation errors land on the reply
        open_stream = functools.partial(
            self._client.beta.threads.runs.create,
            self.thread_id,
            assistant_id=self.assistant_id,
            instructions=instructions,
            stream=True,
        )

        handler: Optional[StreamingResponseHandler] = None

        def remove_handler() -> None:
            self._remove_handler(handler)

        handler = StreamingResponseHandler(
            self._client,
            self.thread_id,
            None,
            self.adapter,
            self.channel,
            reply,
            remove_handler,
            tool_invoker=functools.partial(handle_function_call, tavily_api_key=self.tavily_api_key),
            throttler=UpdateThrottler(self.update_interval),
            open_stream=open_stream,
        )
        self._handlers.append(handler)

        task = asyncio.create_task(handler.run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _remove_handler(self, handler: Optional[StreamingResponseHandler]) -> None:
        self._handlers = [h for h in self._handlers if h is not handler]
