#!/usr/bin/env python3
"""
Standalone Web Tools Module

This module provides the web search tool the writing assistant calls while a
run is in progress. It uses Tavily as the backend.

Available tools:
- web_search_tool: Search the web for information

Backend compatibility:
- Tavily: https://docs.tavily.com/

Every tool returns a JSON string. Failures are returned as
``{"error": ..., "details": ...}`` payloads instead of raised, because each
tool call in a run must be answered with exactly one output.

Usage:
    from tools.web_tools import web_search_tool

    # Search the web
    results = await web_search_tool("Latest Python release")
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"
DEFAULT_SEARCH_DEPTH = "advanced"
DEFAULT_MAX_RESULTS = 5
DEFAULT_TIMEOUT_SECONDS = 30

SEARCH_UNAVAILABLE_MESSAGE = "Web Search is not available. The API Key is not configured."


def get_tavily_api_key() -> Optional[str]:
    return os.getenv("TAVILY_API_KEY") or None


def check_tavily_api_key() -> bool:
    """
    Check if the Tavily API key is available in environment variables.

    Returns:
        bool: True if API key is set, False otherwise
    """
    return bool(get_tavily_api_key())


def _error_payload(error: str, details: Any = None) -> str:
    payload: Dict[str, Any] = {"error": error}
    if details is not None:
        payload["details"] = details
    return json.dumps(payload, ensure_ascii=False)


async def _post_search(session: aiohttp.ClientSession, query: str, api_key: str, max_results: int) -> str:
    body = {
        "query": query,
        "search_depth": DEFAULT_SEARCH_DEPTH,
        "max_results": max_results,
        "include_answer": True,
        "include_raw_content": False,
    }
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    async with session.post(TAVILY_SEARCH_URL, json=body, headers=headers) as resp:
        if resp.status >= 400:
            details = await resp.text()
            logger.warning("Tavily search failed for %r with status %s: %s", query, resp.status, details)
            return _error_payload(
                f"Failed to perform web search with status {resp.status}",
                details or None,
            )
        data = await resp.json(content_type=None)

    logger.info("Tavily search successful for query: %r", query)
    return json.dumps(data, ensure_ascii=False)


async def web_search_tool(
    query: str,
    api_key: Optional[str] = None,
    max_results: int = DEFAULT_MAX_RESULTS,
    session: Optional[aiohttp.ClientSession] = None,
) -> str:
    """
    Search the web for information using Tavily.

    Never raises. A missing API key returns an error payload right away
    without touching the network.

    Args:
        query (str): The search query to look up
        api_key (str): Tavily key; falls back to TAVILY_API_KEY
        max_results (int): Maximum number of results to return (default: 5)
        session (aiohttp.ClientSession): Optional session to reuse

    Returns:
        str: The raw Tavily response as JSON, or a JSON object with an
             ``error`` key and optional ``details``
    """
    api_key = api_key or get_tavily_api_key()
    if not api_key:
        return _error_payload(SEARCH_UNAVAILABLE_MESSAGE)

    logger.info("Performing a web search for %r", query)

    try:
        if session is not None:
            return await _post_search(session, query, api_key, max_results)

        timeout = aiohttp.ClientTimeout(total=DEFAULT_TIMEOUT_SECONDS)
        async with aiohttp.ClientSession(timeout=timeout) as own_session:
            return await _post_search(own_session, query, api_key, max_results)

    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        status = getattr(e, "status", None)
        details = getattr(e, "message", None) or str(e) or type(e).__name__
        logger.warning("Tavily search failed for %r: %s", query, details)
        return _error_payload(f"Failed to perform web search with status {status}", details)

    except Exception as e:
        logger.error("Unexpected error during web search for %r: %s", query, e)
        return _error_payload("An unexpected error occurred during web search.")
