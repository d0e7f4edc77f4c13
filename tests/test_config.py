import pytest

from agent.config import DEFAULT_MODEL, AgentSettings
from core.errors import ConfigurationError


def test_defaults_from_empty_environment():
    settings = AgentSettings.from_env({})
    assert settings.model == DEFAULT_MODEL
    assert settings.api_key is None
    assert settings.max_steps == 10
    assert settings.workflow_timeout == 60.0
    assert settings.history_path == "./data/conversations.json"


def test_values_from_environment():
    settings = AgentSettings.from_env({
        "TRAVEL_AGENT_MODEL": "openai/gpt-4o",
        "TRAVEL_AGENT_API_KEY": "sk-test",
        "TRAVEL_AGENT_MAX_STEPS": "4",
        "TRAVEL_AGENT_TEMPERATURE": "0.1",
        "TRAVEL_AGENT_WORKFLOW_TIMEOUT": "30",
    })
    assert settings.model == "openai/gpt-4o"
    assert settings.api_key == "sk-test"
    assert settings.max_steps == 4
    assert settings.temperature == 0.1
    assert settings.workflow_timeout == 30.0


@pytest.mark.parametrize(
    "env",
    [
        {"TRAVEL_AGENT_MAX_STEPS": "ten"},
        {"TRAVEL_AGENT_MAX_STEPS": "0"},
        {"TRAVEL_AGENT_MAX_TOKENS": "-5"},
        {"TRAVEL_AGENT_WORKFLOW_TIMEOUT": "0"},
    ],
)
def test_bad_values_raise_configuration_error(env):
    with pytest.raises(ConfigurationError):
        AgentSettings.from_env(env)
