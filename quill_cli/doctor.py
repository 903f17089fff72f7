"""
Doctor command for quill CLI.

Diagnoses issues with the Quill gateway setup.
"""

import sys

from quill_cli.config import Colors, color, get_config_path, get_env_value


def check_ok(text: str, detail: str = ""):
    print(f"  {color('✓', Colors.GREEN)} {text}" + (f" {color(detail, Colors.DIM)}" if detail else ""))

def check_warn(text: str, detail: str = ""):
    print(f"  {color('⚠', Colors.YELLOW)} {text}" + (f" {color(detail, Colors.DIM)}" if detail else ""))

def check_fail(text: str, detail: str = ""):
    print(f"  {color('✗', Colors.RED)} {text}" + (f" {color(detail, Colors.DIM)}" if detail else ""))


REQUIRED_PACKAGES = [
    ("openai", "OpenAI SDK"),
    ("stream_chat", "stream-chat"),
    ("aiohttp", "aiohttp"),
    ("fastapi", "FastAPI"),
    ("uvicorn", "Uvicorn"),
    ("dotenv", "python-dotenv"),
    ("yaml", "PyYAML"),
]

REQUIRED_KEYS = [
    ("OPENAI_API_KEY", "OpenAI API key"),
    ("STREAM_API_KEY", "Stream API key"),
    ("STREAM_API_SECRET", "Stream API secret"),
]


def run_doctor(args) -> int:
    """Run diagnostic checks. Returns the number of blocking issues."""
    issues = []

    print()
    print(color("◆ Python Environment", Colors.CYAN, Colors.BOLD))
    py_version = sys.version_info
    version_str = f"Python {py_version.major}.{py_version.minor}.{py_version.micro}"
    if py_version >= (3, 10):
        check_ok(version_str)
    else:
        check_fail(version_str, "(3.10+ required)")
        issues.append("Upgrade Python to 3.10+")

    in_venv = sys.prefix != sys.base_prefix
    if in_venv:
        check_ok("Virtual environment active")
    else:
        check_warn("Not in virtual environment", "(recommended)")

    print()
    print(color("◆ Required Packages", Colors.CYAN, Colors.BOLD))
    for module, name in REQUIRED_PACKAGES:
        try:
            __import__(module)
            check_ok(name)
        except ImportError:
            check_fail(name, "(missing)")
            issues.append(f"Install {name}: pip install -e .")

    print()
    print(color("◆ Credentials", Colors.CYAN, Colors.BOLD))
    for env_key, name in REQUIRED_KEYS:
        if get_env_value(env_key):
            check_ok(name)
        else:
            check_fail(name, f"({env_key} not set)")
            issues.append(f"Set {env_key}: quill config set {env_key} <value>")

    if get_env_value("TAVILY_API_KEY"):
        check_ok("Tavily API key")
    else:
        check_warn("Tavily API key", "(web search will be unavailable)")

    print()
    print(color("◆ Configuration", Colors.CYAN, Colors.BOLD))
    config_path = get_config_path()
    if config_path.exists():
        check_ok(f"Config file {config_path}")
    else:
        check_warn(f"No config file at {config_path}", "(defaults in use)")

    print()
    if issues:
        print(color(f"Found {len(issues)} issue(s):", Colors.YELLOW, Colors.BOLD))
        for issue in issues:
            print(f"  • {issue}")
    else:
        print(color("All checks passed.", Colors.GREEN, Colors.BOLD))
    print()

    return len(issues)
