# =============================================================================
# agent/config.py  —  Agent Settings
# =============================================================================
#
# All knobs come from the environment (main.py loads .env first):
#
#   TRAVEL_AGENT_MODEL             litellm model string
#   TRAVEL_AGENT_API_KEY           passed to litellm when set
#   TRAVEL_AGENT_API_BASE          custom endpoint, optional
#   TRAVEL_AGENT_MAX_TOKENS        completion cap
#   TRAVEL_AGENT_TEMPERATURE       sampling temperature
#   TRAVEL_AGENT_MAX_STEPS         think/act ceiling
#   TRAVEL_AGENT_WORKFLOW_TIMEOUT  seconds to wait for a workflow answer
#   TRAVEL_AGENT_HISTORY_PATH      JSON file for saved conversations
#
# Data-source toggles (USE_LIVE_MAPS, USE_LIVE_FLIGHTS) are read by the
# provider dispatchers in core/, not here.
# =============================================================================

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from core.errors import ConfigurationError

DEFAULT_MODEL = "deepseek/deepseek-chat"


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclass(frozen=True)
class AgentSettings:
    model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    max_tokens: int = 4000
    temperature: float = 0.7
    max_steps: int = 10
    workflow_timeout: float = 60.0
    history_path: str = "./data/conversations.json"

    def __post_init__(self):
        if self.max_steps < 1:
            raise ConfigurationError("TRAVEL_AGENT_MAX_STEPS must be at least 1")
        if self.max_tokens < 1:
            raise ConfigurationError("TRAVEL_AGENT_MAX_TOKENS must be positive")
        if self.workflow_timeout <= 0:
            raise ConfigurationError("TRAVEL_AGENT_WORKFLOW_TIMEOUT must be positive")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AgentSettings":
        env = os.environ if env is None else env
        return cls(
            model=env.get("TRAVEL_AGENT_MODEL") or DEFAULT_MODEL,
            api_key=env.get("TRAVEL_AGENT_API_KEY") or None,
            api_base=env.get("TRAVEL_AGENT_API_BASE") or None,
            max_tokens=_number(env, "TRAVEL_AGENT_MAX_TOKENS", 4000, int),
            temperature=_number(env, "TRAVEL_AGENT_TEMPERATURE", 0.7, float),
            max_steps=_number(env, "TRAVEL_AGENT_MAX_STEPS", 10, int),
            workflow_timeout=_number(env, "TRAVEL_AGENT_WORKFLOW_TIMEOUT", 60.0, float),
            history_path=env.get("TRAVEL_AGENT_HISTORY_PATH") or "./data/conversations.json",
        )
