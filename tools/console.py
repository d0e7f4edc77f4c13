# =============================================================================
# tools/console.py  —  Colour-coded tool logging
# =============================================================================
#
# Tool traffic is logged to STDERR (through the logging module) so it never
# mixes with the transcript on STDOUT, or with the MCP stdio transport when
# the tools are served over MCP.
#
#   CYAN    → incoming call (tool name + parameters)
#   YELLOW  → intermediate status
#   GREEN   → compact JSON response
# =============================================================================

import json
import logging

logger = logging.getLogger("tools")

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"

_MAX_RESPONSE_CHARS = 600


def log_request(tool_name: str, **params) -> None:
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    logger.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def log_status(message: str) -> None:
    logger.info(f"{_YELLOW}  → {message}{_RESET}")


def log_response(tool_name: str, result: dict) -> dict:
    """Log the response as compact JSON, then return it unchanged."""
    text = json.dumps(result, ensure_ascii=False, separators=(",", ":"))
    if len(text) > _MAX_RESPONSE_CHARS:
        text = text[:_MAX_RESPONSE_CHARS] + "…"
    logger.info(f"{_GREEN}  ← {tool_name} response: {text}{_RESET}")
    return result
