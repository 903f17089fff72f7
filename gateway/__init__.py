"""
Quill Gateway - chat platform integration.

This module connects the writing assistant to Stream Chat channels with:
- Platform configuration (credentials, bot identity)
- An event bus for inbound chat events (new messages, stop requests)
- An HTTP server for webhooks and agent lifecycle
"""

from .config import (
    AssistantSettings,
    GatewayConfig,
    Platform,
    PlatformConfig,
    load_gateway_config,
    save_gateway_config,
)

__all__ = [
    # Config
    "AssistantSettings",
    "GatewayConfig",
    "Platform",
    "PlatformConfig",
    "load_gateway_config",
    "save_gateway_config",
]
