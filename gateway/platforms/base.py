"""
Base platform adapter interface.

Platform adapters (Stream Chat today) inherit from this and implement the
transport methods. The base class owns the inbound event bus, so agents and
response handlers subscribe here regardless of how events arrive
(webhooks, websockets, tests).
"""

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Callable, Awaitable
from enum import Enum

from gateway.config import Platform, PlatformConfig

logger = logging.getLogger(__name__)


# Chat event types the gateway reacts to
EVENT_MESSAGE_NEW = "message.new"
EVENT_AI_INDICATOR_UPDATE = "ai_indicator.update"
EVENT_AI_INDICATOR_CLEAR = "ai_indicator.clear"
EVENT_AI_INDICATOR_STOP = "ai_indicator.stop"


class AIState(Enum):
    """States shown by the AI status indicator in a channel."""
    THINKING = "AI_STATE_THINKING"
    CHECKING_SOURCES = "AI_STATE_CHECKING_SOURCES"
    EXTERNAL_SOURCES = "AI_STATE_EXTERNAL_SOURCES"
    ERROR = "AI_STATE_ERROR"


@dataclass
class ChatMessage:
    """
    A chat-side message.

    For replies being streamed, ``text`` is a local mirror of what has been
    pushed to the platform, not the authoritative copy.
    """
    id: str
    cid: Optional[str] = None
    text: str = ""
    ai_generated: bool = False
    user_id: Optional[str] = None
    custom: Dict[str, Any] = field(default_factory=dict)

    # Keys Stream returns that are not custom fields
    _KNOWN_KEYS = ("id", "cid", "text", "ai_generated", "user", "user_id")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        user = data.get("user") or {}
        user_id = data.get("user_id") or (user.get("id") if isinstance(user, dict) else None)
        custom = data.get("custom")
        if not isinstance(custom, dict):
            # Stream flattens custom fields into the message body
            custom = {k: v for k, v in data.items() if k not in cls._KNOWN_KEYS}
        return cls(
            id=str(data.get("id", "")),
            cid=data.get("cid"),
            text=data.get("text") or "",
            ai_generated=bool(data.get("ai_generated", False)),
            user_id=user_id,
            custom=custom,
        )


@dataclass
class ChatEvent:
    """
    Inbound event from a platform.

    Normalized representation that all adapters produce.
    """
    type: str
    cid: Optional[str] = None
    message_id: Optional[str] = None
    message: Optional[ChatMessage] = None
    user_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatEvent":
        message = None
        if isinstance(data.get("message"), dict):
            message = ChatMessage.from_dict(data["message"])

        message_id = data.get("message_id")
        if message_id is None and message is not None:
            message_id = message.id

        user = data.get("user") or {}
        cid = data.get("cid")
        if cid is None and message is not None:
            cid = message.cid
        return cls(
            type=data.get("type", ""),
            cid=cid,
            message_id=str(message_id) if message_id is not None else None,
            message=message,
            user_id=user.get("id") if isinstance(user, dict) else None,
            raw=data,
        )


# Type for event listeners
EventHandler = Callable[[ChatEvent], Awaitable[None]]


@dataclass(eq=False)
class Subscription:
    """
    Token returned by ``BasePlatformAdapter.on``.

    When ``message_id`` is set the listener only receives events carrying
    that message id.
    """
    id: int
    event_type: str
    handler: EventHandler
    message_id: Optional[str] = None
    active: bool = True

    def matches(self, event: ChatEvent) -> bool:
        if not self.active or event.type != self.event_type:
            return False
        return self.message_id is None or self.message_id == event.message_id


class BaseChannel(ABC):
    """A conversation on the platform that the bot can post into."""

    @property
    @abstractmethod
    def cid(self) -> str:
        """Platform-wide channel id, e.g. ``messaging:general``."""

    @abstractmethod
    async def send_message(self, text: str, **fields: Any) -> ChatMessage:
        """Post a message as the bot and return it."""

    @abstractmethod
    async def send_event(self, event: Dict[str, Any]) -> None:
        """Send a custom channel event (fire-and-forget on the client side)."""

    async def add_member(self, user_id: str) -> None:
        """Add a user to the channel. Override if the platform has members."""
        pass

    async def update_ai_state(self, state: AIState, message_id: str) -> None:
        """Show an AI status indicator for a message."""
        await self.send_event({
            "type": EVENT_AI_INDICATOR_UPDATE,
            "ai_state": state.value,
            "cid": self.cid,
            "message_id": message_id,
        })

    async def clear_ai_state(self, message_id: str) -> None:
        """Remove the AI status indicator for a message."""
        await self.send_event({
            "type": EVENT_AI_INDICATOR_CLEAR,
            "cid": self.cid,
            "message_id": message_id,
        })


class BasePlatformAdapter(ABC):
    """
    Base class for platform adapters.

    Subclasses implement platform-specific logic for:
    - Connecting and authenticating
    - Opening channels
    - Updating messages in place
    - Verifying inbound webhooks
    """

    def __init__(self, config: PlatformConfig, platform: Platform):
        self.config = config
        self.platform = platform
        self._running = False

        # Key: event type, Value: subscriptions in registration order
        self._listeners: Dict[str, List[Subscription]] = {}
        self._subscription_ids = itertools.count(1)

    @property
    def name(self) -> str:
        """Human-readable name for this adapter."""
        return self.platform.value.title()

    @property
    def is_connected(self) -> bool:
        """Check if adapter is currently connected."""
        return self._running

    @property
    def bot_user_id(self) -> str:
        return self.config.bot_user_id

    @abstractmethod
    async def connect(self) -> bool:
        """
        Connect to the platform.

        Returns True if connection was successful.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the platform."""
        pass

    @abstractmethod
    def channel(self, channel_type: str, channel_id: str) -> BaseChannel:
        """Return a handle for a channel."""
        pass

    @abstractmethod
    async def partial_update_message(self, message_id: str, set_fields: Dict[str, Any]) -> None:
        """
        Overwrite fields of an existing message.

        Args:
            message_id: The message to update
            set_fields: Fields to set, e.g. ``{"text": "..."}``
        """
        pass

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Check an inbound webhook signature.

        Override in subclasses; the default accepts everything.
        """
        return True

    # ------------------------------------------------------------------
    # Event bus
    # ------------------------------------------------------------------

    def on(
        self,
        event_type: str,
        handler: EventHandler,
        message_id: Optional[str] = None,
    ) -> Subscription:
        """
        Register a listener for an event type.

        Args:
            event_type: Event type to listen for (e.g. ``message.new``)
            handler: Coroutine function receiving the ChatEvent
            message_id: Only deliver events for this message

        Returns:
            Subscription token to pass to ``off``
        """
        subscription = Subscription(
            id=next(self._subscription_ids),
            event_type=event_type,
            handler=handler,
            message_id=message_id,
        )
        self._listeners.setdefault(event_type, []).append(subscription)
        return subscription

    def off(self, subscription: Subscription) -> None:
        """Remove a listener. Safe to call more than once."""
        subscription.active = False
        listeners = self._listeners.get(subscription.event_type)
        if not listeners:
            return
        if subscription in listeners:
            listeners.remove(subscription)
        if not listeners:
            del self._listeners[subscription.event_type]

    def listener_count(self, event_type: Optional[str] = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(subs) for subs in self._listeners.values())

    async def dispatch(self, event: ChatEvent) -> int:
        """
        Deliver an event to every matching listener, in registration order.

        A failing listener is logged and does not stop delivery to the rest.

        Returns:
            Number of listeners the event was delivered to
        """
        # Snapshot: listeners may unsubscribe while handling the event
        subscriptions = list(self._listeners.get(event.type, []))
        delivered = 0
        for subscription in subscriptions:
            if not subscription.matches(event):
                continue
            delivered += 1
            try:
                await subscription.handler(event)
            except Exception:
                logger.exception("[%s] Listener for %s failed", self.name, event.type)
        return delivered
