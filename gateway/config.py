"""
Gateway configuration management.

Handles loading and validating configuration for:
- The connected chat platform (Stream Chat)
- The AI assistant (model, temperature, credentials)
- Web search credentials
- Streaming and agent lifetime settings
- The HTTP server
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

import yaml

logger = logging.getLogger(__name__)


class Platform(Enum):
    """Supported messaging platforms."""
    STREAM = "stream"


def get_quill_home() -> Path:
    """Get the Quill home directory (~/.quill)."""
    return Path(os.getenv("QUILL_HOME", Path.home() / ".quill"))


@dataclass
class PlatformConfig:
    """Configuration for a single messaging platform."""
    enabled: bool = False
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    bot_user_id: str = "ai-writing-assistant"
    bot_user_name: str = "AI Writing Assistant"

    # Platform-specific settings
    extra: Dict[str, Any] = field(default_factory=dict)

    def is_configured(self) -> bool:
        return bool(self.enabled and self.api_key and self.api_secret)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "enabled": self.enabled,
            "bot_user_id": self.bot_user_id,
            "bot_user_name": self.bot_user_name,
            "extra": self.extra,
        }
        if self.api_key:
            result["api_key"] = self.api_key
        if self.api_secret:
            result["api_secret"] = self.api_secret
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlatformConfig":
        return cls(
            enabled=data.get("enabled", False),
            api_key=data.get("api_key"),
            api_secret=data.get("api_secret"),
            bot_user_id=data.get("bot_user_id", "ai-writing-assistant"),
            bot_user_name=data.get("bot_user_name", "AI Writing Assistant"),
            extra=data.get("extra", {}),
        )


@dataclass
class AssistantSettings:
    """
    Settings for the hosted assistant.

    The API key is required to start an agent; everything else has defaults.
    """
    api_key: Optional[str] = None
    model: str = "gpt-4.1"
    temperature: float = 0.7
    name: str = "AI Writing Assistant"

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "model": self.model,
            "temperature": self.temperature,
            "name": self.name,
        }
        if self.api_key:
            result["api_key"] = self.api_key
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssistantSettings":
        return cls(
            api_key=data.get("api_key"),
            model=data.get("model", "gpt-4.1"),
            temperature=data.get("temperature", 0.7),
            name=data.get("name", "AI Writing Assistant"),
        )


@dataclass
class GatewayConfig:
    """
    Main gateway configuration.

    Manages the platform connection, assistant settings, and server settings.
    """
    # Platform configurations
    platforms: Dict[Platform, PlatformConfig] = field(default_factory=dict)

    assistant: AssistantSettings = field(default_factory=AssistantSettings)

    # Web search (Tavily). Absent key means search is unavailable, not an error.
    tavily_api_key: Optional[str] = None

    # Minimum seconds between partial message updates while streaming
    update_interval: float = 1.0

    # Agents with no user messages for this long are stopped
    idle_minutes: int = 60

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])

    def get_connected_platforms(self) -> List[Platform]:
        """Return list of platforms that are enabled and configured."""
        return [p for p, c in self.platforms.items() if c.is_configured()]

    def get_platform(self, platform: Platform) -> Optional[PlatformConfig]:
        return self.platforms.get(platform)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "platforms": {
                p.value: c.to_dict() for p, c in self.platforms.items()
            },
            "assistant": self.assistant.to_dict(),
            "update_interval": self.update_interval,
            "idle_minutes": self.idle_minutes,
            "host": self.host,
            "port": self.port,
            "allowed_origins": self.allowed_origins,
        }
        if self.tavily_api_key:
            result["tavily_api_key"] = self.tavily_api_key
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewayConfig":
        platforms = {}
        for platform_name, platform_data in data.get("platforms", {}).items():
            try:
                platform = Platform(platform_name)
                platforms[platform] = PlatformConfig.from_dict(platform_data)
            except ValueError:
                pass  # Skip unknown platforms

        return cls(
            platforms=platforms,
            assistant=AssistantSettings.from_dict(data.get("assistant", {})),
            tavily_api_key=data.get("tavily_api_key"),
            update_interval=data.get("update_interval", 1.0),
            idle_minutes=data.get("idle_minutes", 60),
            host=data.get("host", "0.0.0.0"),
            port=data.get("port", 3000),
            allowed_origins=data.get("allowed_origins", ["*"]),
        )


def get_gateway_config_path() -> Path:
    return get_quill_home() / "gateway.json"


def get_cli_config_path() -> Path:
    return get_quill_home() / "config.yaml"


def _settings_from_cli_config(cli_config: Dict[str, Any]) -> Dict[str, Any]:
    """Map config.yaml keys onto the GatewayConfig.to_dict() shape."""
    data: Dict[str, Any] = {}

    assistant = {}
    for key in ("model", "temperature"):
        if key in cli_config:
            assistant[key] = cli_config[key]
    if assistant:
        data["assistant"] = assistant

    streaming = cli_config.get("streaming") or {}
    if "update_interval" in streaming:
        data["update_interval"] = streaming["update_interval"]

    agents = cli_config.get("agents") or {}
    if "idle_minutes" in agents:
        data["idle_minutes"] = agents["idle_minutes"]

    server = cli_config.get("server") or {}
    for key in ("host", "port", "allowed_origins"):
        if key in server:
            data[key] = server[key]

    return data


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_gateway_config() -> GatewayConfig:
    """
    Load gateway configuration from multiple sources.

    Priority (highest to lowest):
    1. Environment variables
    2. ~/.quill/gateway.json
    3. ~/.quill/config.yaml
    4. Defaults
    """
    data: Dict[str, Any] = {}

    cli_config_path = get_cli_config_path()
    if cli_config_path.exists():
        try:
            with open(cli_config_path) as f:
                cli_config = yaml.safe_load(f) or {}
            data = _settings_from_cli_config(cli_config)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to load %s: %s", cli_config_path, e)

    gateway_config_path = get_gateway_config_path()
    if gateway_config_path.exists():
        try:
            with open(gateway_config_path, "r") as f:
                data = _merge(data, json.load(f))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load %s: %s", gateway_config_path, e)

    config = GatewayConfig.from_dict(data)

    # Override with environment variables
    _apply_env_overrides(config)

    return config


def _apply_env_overrides(config: GatewayConfig) -> None:
    """Apply environment variable overrides to config."""

    # Stream Chat
    stream_key = os.getenv("STREAM_API_KEY")
    stream_secret = os.getenv("STREAM_API_SECRET")
    if stream_key or stream_secret:
        if Platform.STREAM not in config.platforms:
            config.platforms[Platform.STREAM] = PlatformConfig()
        stream = config.platforms[Platform.STREAM]
        stream.enabled = True
        if stream_key:
            stream.api_key = stream_key
        if stream_secret:
            stream.api_secret = stream_secret

    bot_user_id = os.getenv("STREAM_BOT_USER_ID")
    if bot_user_id and Platform.STREAM in config.platforms:
        config.platforms[Platform.STREAM].bot_user_id = bot_user_id

    # Assistant
    openai_key = os.getenv("OPENAI_API_KEY")
    if openai_key:
        config.assistant.api_key = openai_key

    model = os.getenv("OPENAI_MODEL")
    if model:
        config.assistant.model = model

    # Web search
    tavily_key = os.getenv("TAVILY_API_KEY")
    if tavily_key:
        config.tavily_api_key = tavily_key

    update_interval = os.getenv("QUILL_UPDATE_INTERVAL")
    if update_interval:
        try:
            config.update_interval = float(update_interval)
        except ValueError:
            pass

    idle_minutes = os.getenv("AGENT_IDLE_MINUTES")
    if idle_minutes:
        try:
            config.idle_minutes = int(idle_minutes)
        except ValueError:
            pass

    port = os.getenv("PORT")
    if port:
        try:
            config.port = int(port)
        except ValueError:
            pass


def save_gateway_config(config: GatewayConfig) -> None:
    """Save gateway configuration to ~/.quill/gateway.json."""
    gateway_config_path = get_gateway_config_path()
    gateway_config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(gateway_config_path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
