#!/usr/bin/env python3
"""
Quill CLI - Main entry point.

Usage:
    quill serve                # Run the gateway server in the foreground
    quill config               # Show configuration
    quill config set KEY VAL   # Change a setting or secret
    quill doctor               # Check configuration and dependencies
    quill version              # Show version
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from quill_cli import __version__
from quill_cli.config import get_env_path, get_project_root

PROJECT_ROOT = get_project_root()


def load_environment():
    """Load ~/.quill/.env, then the project .env without overriding."""
    env_path = get_env_path()
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    load_dotenv(PROJECT_ROOT / ".env", override=False)


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cmd_serve(args):
    """Run the gateway HTTP server."""
    from gateway.config import load_gateway_config
    from gateway.server import run_server

    config = load_gateway_config()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    run_server(config)


def cmd_config(args):
    """Configuration management."""
    from quill_cli.config import config_command
    config_command(args)


def cmd_doctor(args):
    """Check configuration and dependencies."""
    from quill_cli.doctor import run_doctor
    if run_doctor(args):
        sys.exit(1)


def cmd_version(args):
    """Show version."""
    print(f"Quill v{__version__}")
    print(f"Project: {PROJECT_ROOT}")
    print(f"Python: {sys.version.split()[0]}")

    try:
        import openai
        print(f"OpenAI SDK: {openai.__version__}")
    except ImportError:
        print("OpenAI SDK: Not installed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quill",
        description="Quill - AI writing assistant for Stream Chat channels",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    quill serve --port 8080          Run the gateway on port 8080
    quill config                     View configuration
    quill config set model gpt-4.1   Set a config value
    quill doctor                     Diagnose setup problems

For more help on a command:
    quill <command> --help
"""
    )
    parser.add_argument(
        "--version", "-V",
        action="store_true",
        help="Show version and exit"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # =========================================================================
    # serve command
    # =========================================================================
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the gateway server",
        description="Run the webhook and agent management server in the foreground"
    )
    serve_parser.add_argument("--host", help="Interface to bind (default from config)")
    serve_parser.add_argument("--port", type=int, help="Port to listen on (default from config)")
    serve_parser.set_defaults(func=cmd_serve)

    # =========================================================================
    # config command
    # =========================================================================
    config_parser = subparsers.add_parser(
        "config",
        help="View and edit configuration",
        description="Manage Quill configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser("show", help="Show current configuration")
    config_set = config_subparsers.add_parser("set", help="Set a configuration value")
    config_set.add_argument("key", nargs="?", help="Configuration key (e.g., model, server.port)")
    config_set.add_argument("value", nargs="?", help="Value to set")
    config_subparsers.add_parser("path", help="Print config file path")
    config_subparsers.add_parser("env-path", help="Print .env file path")
    config_parser.set_defaults(func=cmd_config)

    # =========================================================================
    # doctor command
    # =========================================================================
    doctor_parser = subparsers.add_parser(
        "doctor",
        help="Check configuration and dependencies",
    )
    doctor_parser.set_defaults(func=cmd_doctor)

    # =========================================================================
    # version command
    # =========================================================================
    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv=None):
    """Main entry point for quill CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        cmd_version(args)
        return

    load_environment()
    setup_logging(args.verbose)

    if not getattr(args, "func", None):
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
