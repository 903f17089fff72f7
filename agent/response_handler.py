"""Streaming response handler -- one per AI-generated reply.

Consumes the event stream of an assistant run and mirrors it into a chat
reply: text deltas are accumulated and pushed (throttled), tool calls are
executed and their outputs submitted to resume the run, and status events
drive the channel's AI indicator. The handler disposes itself exactly once,
whether the run completes, fails, or the user stops it.

A stop request claims the handler before its first await. From then on the
stream loop and the error path stand down; only the stop path talks to the
channel, and it finishes with the disposal.

Phases of a run session::

    STREAMING --requires_action--> RESUBMITTING --outputs submitted--> STREAMING
    STREAMING --completed / failed / ended / disposed--> DONE
"""

import json
import logging
from enum import Enum
from typing import Any, AsyncIterable, Awaitable, Callable, Dict, List, Optional

from agent.run_events import (
    RunEvent,
    RunEventKind,
    ToolCallRequest,
    ToolOutput,
    classify_event,
)
from agent.throttle import UpdateThrottler
from gateway.platforms.base import (
    AIState,
    BaseChannel,
    BasePlatformAdapter,
    ChatEvent,
    ChatMessage,
    EVENT_AI_INDICATOR_STOP,
)
from model_tools import handle_function_call

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred while generating the message."
TOOL_CALL_FAILED = json.dumps({"error": "Failed to call tool"})

ToolInvoker = Callable[[str, Dict[str, Any]], Awaitable[str]]
StreamOpener = Callable[[], Awaitable[AsyncIterable[Any]]]


class RunFailedError(Exception):
    """The assistant run reported failure."""


class RunPhase(Enum):
    STREAMING = "streaming"
    RESUBMITTING = "resubmitting"
    DONE = "done"


class StreamingResponseHandler:
    """
    Drives one assistant run into one chat reply.

    Args:
        client: AsyncOpenAI client (``beta.threads.runs`` is used)
        thread_id: The assistant thread the run belongs to
        stream: The run's initial event stream, or None with ``open_stream``
        adapter: Platform adapter (message updates, stop signal)
        channel: Channel the reply lives in
        message: The reply being filled
        on_dispose: Called once when the handler is torn down
        tool_invoker: ``(name, args) -> JSON str``; defaults to handle_function_call
        throttler: Partial update throttle; defaults to one push per second
        open_stream: Starts the run when ``run()`` begins, so a failure to
            create it is reported on the reply like any run failure
    """

    def __init__(
        self,
        client: Any,
        thread_id: str,
        stream: Optional[AsyncIterable[Any]],
        adapter: BasePlatformAdapter,
        channel: BaseChannel,
        message: ChatMessage,
        on_dispose: Callable[[], None],
        tool_invoker: Optional[ToolInvoker] = None,
        throttler: Optional[UpdateThrottler] = None,
        open_stream: Optional[StreamOpener] = None,
    ):
        if stream is None and open_stream is None:
            raise ValueError("Either stream or open_stream is required")

        self._client = client
        self.thread_id = thread_id
        self._stream = stream
        self._open_stream = open_stream
        self._adapter = adapter
        self._channel = channel
        self.message = message
        self._on_dispose = on_dispose
        self._tool_invoker = tool_invoker or handle_function_call
        self._throttler = throttler or UpdateThrottler()

        self.message_text = ""
        self.chunk_counter = 0
        self.run_id = ""
        self._disposed = False
        self._stopping = False
        self._pending_outputs: List[ToolOutput] = []

        self._stop_subscription = adapter.on(
            EVENT_AI_INDICATOR_STOP,
            self._handle_stop_generating,
            message_id=message.id,
        )

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def is_active(self) -> bool:
        """False once disposed or once a stop request has claimed the handler."""
        return not (self._disposed or self._stopping)

    async def run(self) -> None:
        """Run the reply to completion. A no-op once disposed or stopped."""
        if not self.is_active:
            return

        phase = RunPhase.STREAMING
        try:
            stream = self._stream
            if stream is None:
                stream = await self._open_stream()
            while phase is not RunPhase.DONE:
                if phase is RunPhase.STREAMING:
                    phase = await self._consume(stream)
                else:
                    stream = await self._submit_tool_outputs()
                    phase = RunPhase.STREAMING
        except Exception as error:
            logger.exception("An error occurred during run %s", self.run_id or "<pending>")
            await self._handle_error(error)
        finally:
            # A pending stop finishes the teardown itself
            if not self._stopping:
                self.dispose()

    def dispose(self) -> None:
        """Tear down: drop the stop listener and notify the owner. Runs once."""
        if self._disposed:
            return
        self._disposed = True
        self._adapter.off(self._stop_subscription)
        self._on_dispose()

    # ------------------------------------------------------------------
    # Stream consumption
    # ------------------------------------------------------------------

    async def _consume(self, stream: AsyncIterable[Any]) -> RunPhase:
        """Read one stream segment and return the phase that follows it."""
        try:
            async for raw_event in stream:
                if not self.is_active:
                    return RunPhase.DONE

                event = classify_event(raw_event)
                await self._handle_stream_event(event)

                if event.kind is RunEventKind.REQUIRES_ACTION:
                    self.run_id = event.run_id or self.run_id
                    await self._collect_tool_outputs(event.tool_calls)
                    if not self.is_active:
                        return RunPhase.DONE
                    return RunPhase.RESUBMITTING

                if event.kind in (RunEventKind.RUN_COMPLETED, RunEventKind.RUN_ENDED):
                    return RunPhase.DONE

                if event.kind in (RunEventKind.RUN_FAILED, RunEventKind.STREAM_ERROR):
                    await self._handle_error(RunFailedError(event.error_message))
                    return RunPhase.DONE
        finally:
            await _close_stream(stream)

        if self.is_active:
            logger.warning("Run %s stream ended without a terminal event", self.run_id or "<pending>")
        return RunPhase.DONE

    async def _handle_stream_event(self, event: RunEvent) -> None:
        if event.kind is RunEventKind.RUN_CREATED:
            self.run_id = event.run_id or ""

        elif event.kind is RunEventKind.MESSAGE_DELTA:
            if not event.text:
                return
            self.message_text += event.text
            if self._throttler.ready():
                await self._push_text(self.message_text)
                self._throttler.record()
            self.chunk_counter += 1

        elif event.kind is RunEventKind.MESSAGE_COMPLETED:
            final_text = event.text if event.text is not None else self.message_text
            await self._push_text(final_text)
            await self._clear_ai_state()

        elif event.kind is RunEventKind.MESSAGE_STEP_CREATED:
            await self._set_ai_state(AIState.CHECKING_SOURCES)

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    async def _collect_tool_outputs(self, tool_calls: List[ToolCallRequest]) -> None:
        await self._set_ai_state(AIState.EXTERNAL_SOURCES)

        self._pending_outputs = []
        for call in tool_calls:
            if not self.is_active:
                return
            output = await self._invoke_tool(call)
            self._pending_outputs.append(ToolOutput(tool_call_id=call.call_id, output=output))

    async def _invoke_tool(self, call: ToolCallRequest) -> str:
        try:
            args = call.parse_arguments()
            logger.info("Calling tool %s for run %s", call.name, self.run_id)
            result = await self._tool_invoker(call.name, args)
        except Exception as e:
            logger.warning("Error parsing the tool arguments or calling %s: %s", call.name, e)
            return TOOL_CALL_FAILED

        if not isinstance(result, str):
            result = json.dumps(result, default=str)
        return result

    async def _submit_tool_outputs(self) -> AsyncIterable[Any]:
        outputs = [output.to_dict() for output in self._pending_outputs]
        self._pending_outputs = []
        logger.info("Submitting %d tool output(s) to run %s", len(outputs), self.run_id)
        return await self._client.beta.threads.runs.submit_tool_outputs(
            self.run_id,
            thread_id=self.thread_id,
            tool_outputs=outputs,
            stream=True,
        )

    # ------------------------------------------------------------------
    # Channel side effects (all no-ops once disposed or stopping)
    # ------------------------------------------------------------------

    async def _push_text(self, text: str) -> None:
        await self._update_message({"text": text})

    async def _update_message(self, set_fields: Dict[str, Any]) -> None:
        if not self.is_active:
            return
        self.message.text = set_fields["text"]
        await self._adapter.partial_update_message(self.message.id, set_fields)

    async def _set_ai_state(self, state: AIState) -> None:
        if not self.is_active:
            return
        await self._channel.update_ai_state(state, self.message.id)

    async def _clear_ai_state(self) -> None:
        if not self.is_active:
            return
        await self._channel.clear_ai_state(self.message.id)

    # ------------------------------------------------------------------
    # Terminal paths
    # ------------------------------------------------------------------

    async def _handle_error(self, error: BaseException) -> None:
        if not self.is_active:
            return
        try:
            await self._set_ai_state(AIState.ERROR)
            await self._update_message({
                "text": str(error) or GENERIC_ERROR_MESSAGE,
                "error_details": f"{type(error).__name__}: {error}",
            })
        except Exception:
            logger.exception("Failed to report error on message %s", self.message.id)
        finally:
            if not self._stopping:
                self.dispose()

    async def _handle_stop_generating(self, event: ChatEvent) -> None:
        if not self.is_active or event.message_id != self.message.id:
            return

        self._stopping = True
        if self.run_id:
            try:
                await self._client.beta.threads.runs.cancel(self.run_id, thread_id=self.thread_id)
            except Exception as e:
                logger.warning("Error cancelling run %s: %s", self.run_id, e)
        else:
            logger.info("Stop requested for message %s before the run was created", self.message.id)

        try:
            # The owner may have disposed the handler while cancel was in flight
            if not self._disposed:
                await self._channel.clear_ai_state(self.message.id)
        finally:
            self.dispose()


async def _close_stream(stream: Any) -> None:
    # AsyncStream exposes close(); async generators expose aclose()
    close = getattr(stream, "close", None) or getattr(stream, "aclose", None)
    if close is None:
        return
    try:
        await close()
    except Exception as e:
        logger.debug("Ignoring error while closing run stream: %s", e)
