"""System prompt assembly -- writing assistant identity, tool rules, context.

All functions are stateless. AssistantAgent calls
``build_writing_assistant_prompt`` once when the assistant is created and
again per message, with the message's writing task as context.
"""

import logging
from datetime import date
from typing import Optional

logger = logging.getLogger(__name__)

# =========================================================================
# Constants
# =========================================================================

DEFAULT_WRITING_CONTEXT = "General writing assistance."

CONTEXT_MAX_CHARS = 20_000
CONTEXT_TRUNCATE_HEAD_RATIO = 0.7
CONTEXT_TRUNCATE_TAIL_RATIO = 0.2

WRITING_ASSISTANT_PROMPT = """You are an expert AI Writing Assistant. Your primary purpose is to be a collaborative writing partner.

**Your Core Capabilities:**
- Content Creation, Improvement, Style Adaptation, Brainstorming, and Writing Coaching.
- **Web Search**: You have the ability to search the web for up-to-date information using the 'web_search' tool.
- **Current Date**: Today's date is {current_date}. Please use this for any time-sensitive queries.

**Crucial Instructions:**
1.  **ALWAYS use the 'web_search' tool when the user asks for current information, news, or facts.** Your internal knowledge is outdated.
2.  When you use the 'web_search' tool, you will receive a JSON object with search results. **You MUST base your response on the information provided in that search result.** Do not rely on your pre-existing knowledge for topics that require current information.
3.  Synthesize the information from the web search to provide a comprehensive and accurate answer. Cite sources if the results include URLs.

**Response Format:**
- Be direct and production-ready.
- Use clear formatting.
- Never begin responses with phrases like "Here's the edit:", "Here are the changes:", or similar introductory statements.
- Provide responses directly and professionally without unnecessary preambles.

**Writing Context**: {context}

Your goal is to provide accurate, current, and helpful written content. Failure to use web search for recent topics will result in an incorrect answer."""


def format_current_date(today: Optional[date] = None) -> str:
    """'October 18, 2026' style date, no zero padding."""
    today = today or date.today()
    return f"{today.strftime('%B')} {today.day}, {today.year}"


def _truncate_content(content: str, label: str, max_chars: int = CONTEXT_MAX_CHARS) -> str:
    """Head/tail truncation with a marker in the middle."""
    if len(content) <= max_chars:
        return content
    head_chars = int(max_chars * CONTEXT_TRUNCATE_HEAD_RATIO)
    tail_chars = int(max_chars * CONTEXT_TRUNCATE_TAIL_RATIO)
    logger.debug("Truncating %s from %d chars", label, len(content))
    marker = f"\n\n[...truncated {label}: kept {head_chars}+{tail_chars} of {len(content)} chars.]\n\n"
    return content[:head_chars] + marker + content[-tail_chars:]


def build_writing_context(writing_task: Optional[str]) -> Optional[str]:
    """Turn a message's writing task into the prompt's context line."""
    if not writing_task or not writing_task.strip():
        return None
    return f"Writing Task: {_truncate_content(writing_task.strip(), 'writing task')}"


def build_writing_assistant_prompt(context: Optional[str] = None, today: Optional[date] = None) -> str:
    return WRITING_ASSISTANT_PROMPT.format(
        current_date=format_current_date(today),
        context=context or DEFAULT_WRITING_CONTEXT,
    )
