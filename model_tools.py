#!/usr/bin/env python3
"""
Model Tools Module

This module constructs the tool schemas registered on the assistant and
executes the function calls a run asks for.

Currently supports:
- Web search from tools/web_tools.py
- The hosted code interpreter (declared only; it runs on the provider side)

Usage:
    from model_tools import get_tool_definitions, handle_function_call

    # Get all tool definitions for the assistant
    tools = get_tool_definitions()

    # Handle function calls from a run
    result = await handle_function_call("web_search", {"query": "Python"})
"""

import json
import logging
from typing import Dict, Any, List, Optional

from tools.web_tools import web_search_tool, check_tavily_api_key

logger = logging.getLogger(__name__)

WEB_FUNCTIONS = ["web_search"]


def get_web_tool_definitions() -> List[Dict[str, Any]]:
    """
    Get tool definitions for web tools in OpenAI's expected format.

    Returns:
        List[Dict]: List of web tool definitions compatible with OpenAI API
    """
    return [
        {
            "type": "function",
            "function": {
                "name": "web_search",
                "description": "Search the web for current information, news, facts or research on any topic.",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "The search query to find information about."
                        }
                    },
                    "required": ["query"]
                }
            }
        }
    ]


def get_tool_definitions(include_code_interpreter: bool = True) -> List[Dict[str, Any]]:
    """
    Get the tool list to register on the assistant.

    Args:
        include_code_interpreter (bool): Also declare the hosted code interpreter

    Returns:
        List[Dict]: Tool definitions compatible with the Assistants API
    """
    tools: List[Dict[str, Any]] = []
    if include_code_interpreter:
        tools.append({"type": "code_interpreter"})
    tools.extend(get_web_tool_definitions())
    return tools


async def handle_web_function_call(
    function_name: str,
    function_args: Dict[str, Any],
    tavily_api_key: Optional[str] = None,
) -> str:
    """
    Handle function calls for web tools.

    Args:
        function_name (str): Name of the web function to call
        function_args (Dict): Arguments for the function
        tavily_api_key (str): Optional key overriding TAVILY_API_KEY

    Returns:
        str: Function result as JSON string
    """
    if function_name == "web_search":
        query = function_args.get("query", "")
        if not isinstance(query, str) or not query.strip():
            return json.dumps({"error": "web_search requires a non-empty 'query'"})
        return await web_search_tool(query, api_key=tavily_api_key)

    return json.dumps({"error": f"Unknown web function: {function_name}"})


async def handle_function_call(
    function_name: str,
    function_args: Dict[str, Any],
    tavily_api_key: Optional[str] = None,
) -> str:
    """
    Main function call dispatcher that routes calls to appropriate toolsets.

    Args:
        function_name (str): Name of the function to call
        function_args (Dict): Arguments for the function
        tavily_api_key (str): Optional key for the web search backend

    Returns:
        str: Function result as JSON string

    Raises:
        None: Returns error as JSON string instead of raising exceptions
    """
    try:
        # Route web tools
        if function_name in WEB_FUNCTIONS:
            return await handle_web_function_call(function_name, function_args, tavily_api_key)

        error_msg = f"Unknown function: {function_name}"
        logger.warning(error_msg)
        return json.dumps({"error": error_msg})

    except Exception as e:
        error_msg = f"Error executing {function_name}: {str(e)}"
        logger.error(error_msg)
        return json.dumps({"error": error_msg})


def check_toolset_requirements() -> Dict[str, bool]:
    """
    Check which toolsets have their credentials configured.

    Returns:
        Dict: Toolset name -> availability
    """
    return {
        "web_tools": check_tavily_api_key(),
    }
