#!/usr/bin/env python3
"""
Tools Package

This package contains the tool implementations the writing assistant can
call while a run is in progress:

- web_tools: Web search (Tavily)

The tools are imported into model_tools.py which provides a unified interface
for the assistant to access all capabilities.
"""

from .web_tools import (
    web_search_tool,
    check_tavily_api_key,
)

__all__ = [
    # Web tools
    'web_search_tool',
    'check_tavily_api_key',
]
