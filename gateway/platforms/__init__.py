"""
Platform adapters for messaging integrations.

Each adapter handles:
- Connecting to a platform as the bot user
- Posting replies and status events
- Updating replies in place while they stream
- Delivering inbound events to subscribers
"""

from .base import (
    AIState,
    BaseChannel,
    BasePlatformAdapter,
    ChatEvent,
    ChatMessage,
    Subscription,
)

__all__ = [
    "AIState",
    "BaseChannel",
    "BasePlatformAdapter",
    "ChatEvent",
    "ChatMessage",
    "Subscription",
]
