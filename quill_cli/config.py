"""
Configuration management for Quill.

Config files are stored in ~/.quill/ for easy access:
- ~/.quill/config.yaml   - Model, streaming, agent and server settings
- ~/.quill/.env          - API keys and secrets
- ~/.quill/gateway.json  - Platform settings (optional)

This module provides:
- quill config           - Show current configuration
- quill config set       - Set a specific value
- quill config path      - Print the config file path
- quill config env-path  - Print the secrets file path
"""

import os
import sys
from pathlib import Path
from typing import Dict, Any, Optional

import yaml
from dotenv import dotenv_values, set_key

from gateway.config import get_cli_config_path, get_quill_home, load_gateway_config

# ANSI colors
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

def color(text: str, *codes) -> str:
    if not sys.stdout.isatty():
        return text
    return "".join(codes) + text + Colors.RESET


# =============================================================================
# Config paths
# =============================================================================

def get_config_path() -> Path:
    """Get the main config file path."""
    return get_cli_config_path()

def get_env_path() -> Path:
    """Get the .env file path (for API keys)."""
    return get_quill_home() / ".env"

def get_project_root() -> Path:
    """Get the project installation directory."""
    return Path(__file__).parent.parent.resolve()

def ensure_quill_home():
    """Ensure ~/.quill exists."""
    get_quill_home().mkdir(parents=True, exist_ok=True)


# =============================================================================
# Config loading/saving
# =============================================================================

DEFAULT_CONFIG = {
    "model": "gpt-4.1",
    "temperature": 0.7,

    "streaming": {
        "update_interval": 1.0,
    },

    "agents": {
        "idle_minutes": 60,
    },

    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "allowed_origins": ["*"],
    },
}

# Keys that belong in .env rather than config.yaml
SECRET_KEYS = [
    "OPENAI_API_KEY",
    "STREAM_API_KEY",
    "STREAM_API_SECRET",
    "STREAM_BOT_USER_ID",
    "TAVILY_API_KEY",
]


def load_config() -> Dict[str, Any]:
    """Load configuration from ~/.quill/config.yaml merged over defaults."""
    config_path = get_config_path()

    config = {k: (dict(v) if isinstance(v, dict) else v) for k, v in DEFAULT_CONFIG.items()}

    if config_path.exists():
        try:
            with open(config_path) as f:
                user_config = yaml.safe_load(f) or {}

            # Deep merge
            for key, value in user_config.items():
                if isinstance(value, dict) and key in config and isinstance(config[key], dict):
                    config[key].update(value)
                else:
                    config[key] = value
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Failed to load config: {e}")

    return config


def save_config(config: Dict[str, Any]):
    """Save configuration to ~/.quill/config.yaml."""
    ensure_quill_home()
    with open(get_config_path(), 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def load_env() -> Dict[str, str]:
    """Load variables from ~/.quill/.env without touching os.environ."""
    env_path = get_env_path()
    if not env_path.exists():
        return {}
    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


def save_env_value(key: str, value: str):
    """Save or update a value in ~/.quill/.env."""
    ensure_quill_home()
    env_path = get_env_path()
    env_path.touch(exist_ok=True)
    set_key(str(env_path), key, value)


def get_env_value(key: str) -> Optional[str]:
    """Get a value from the environment or ~/.quill/.env."""
    if key in os.environ:
        return os.environ[key]
    return load_env().get(key)


# =============================================================================
# Config display
# =============================================================================

def redact_key(key: Optional[str]) -> str:
    """Redact an API key for display."""
    if not key:
        return color("(not set)", Colors.DIM)
    if len(key) < 12:
        return "***"
    return key[:4] + "..." + key[-4:]


def show_config():
    """Display current configuration."""
    config = load_gateway_config()

    print()
    print(color("◆ Paths", Colors.CYAN, Colors.BOLD))
    print(f"  Config:       {get_config_path()}")
    print(f"  Secrets:      {get_env_path()}")
    print(f"  Install:      {get_project_root()}")

    print()
    print(color("◆ API Keys", Colors.CYAN, Colors.BOLD))
    keys = [
        ("OPENAI_API_KEY", "OpenAI"),
        ("STREAM_API_KEY", "Stream key"),
        ("STREAM_API_SECRET", "Stream secret"),
        ("TAVILY_API_KEY", "Tavily"),
    ]
    for env_key, name in keys:
        print(f"  {name:<14} {redact_key(get_env_value(env_key))}")

    print()
    print(color("◆ Assistant", Colors.CYAN, Colors.BOLD))
    print(f"  Model:        {config.assistant.model}")
    print(f"  Temperature:  {config.assistant.temperature}")
    print(f"  Web search:   {'enabled' if config.tavily_api_key else color('unavailable', Colors.DIM)}")

    print()
    print(color("◆ Streaming", Colors.CYAN, Colors.BOLD))
    print(f"  Update every: {config.update_interval}s")
    print(f"  Idle timeout: {config.idle_minutes} min")

    print()
    print(color("◆ Server", Colors.CYAN, Colors.BOLD))
    print(f"  Listen:       {config.host}:{config.port}")
    print(f"  CORS origins: {', '.join(config.allowed_origins)}")
    print()


def set_config_value(key: str, value: str):
    """Set a configuration value."""
    if key.upper() in SECRET_KEYS:
        save_env_value(key.upper(), value)
        print(f"✓ Set {key.upper()} in {get_env_path()}")
        return

    config = load_config()

    # Handle nested keys (e.g., "server.port")
    parts = key.split('.')
    current = config
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]

    # Convert value to appropriate type
    parsed: Any = value
    if value.lower() in ('true', 'yes', 'on'):
        parsed = True
    elif value.lower() in ('false', 'no', 'off'):
        parsed = False
    elif value.isdigit():
        parsed = int(value)
    elif value.replace('.', '', 1).isdigit():
        parsed = float(value)

    current[parts[-1]] = parsed
    save_config(config)
    print(f"✓ Set {key} = {parsed} in {get_config_path()}")


# =============================================================================
# Command handler
# =============================================================================

def config_command(args):
    """Handle config subcommands."""
    subcmd = getattr(args, 'config_command', None)

    if subcmd is None or subcmd == "show":
        show_config()

    elif subcmd == "set":
        key = getattr(args, 'key', None)
        value = getattr(args, 'value', None)
        if not key or value is None:
            print("Usage: quill config set KEY VALUE")
            print()
            print("Examples:")
            print("  quill config set model gpt-4.1")
            print("  quill config set streaming.update_interval 0.5")
            print("  quill config set TAVILY_API_KEY tvly-...")
            sys.exit(1)
        set_config_value(key, value)

    elif subcmd == "path":
        print(get_config_path())

    elif subcmd == "env-path":
        print(get_env_path())

    else:
        print(f"Unknown config command: {subcmd}")
        sys.exit(1)
