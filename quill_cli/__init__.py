"""
Quill CLI - command-line interface for the Quill writing assistant gateway.

Provides subcommands for:
- quill serve          - Run the gateway HTTP server in the foreground
- quill config         - Show or change configuration
- quill doctor         - Check configuration and dependencies
- quill version        - Show version
"""

__version__ = "0.1.0"
