# =============================================================================
# tools/base.py  —  The Tool Contract
# =============================================================================
#
# Every capability the model can call is a Tool:
#
#   name          unique, snake_case; the model calls it by this name
#   description   the model reads this to decide WHEN to call the tool
#   parameters    JSON-schema properties of the argument object
#   required      names of the mandatory properties
#   execute()     async, takes the decoded argument dict, returns text
#
# to_api_format() renders the tool for the chat-completion request:
#   {type: "function", function: {name, description,
#                                 parameters: {type: "object", properties, required}}}
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any


class Tool(ABC):
    name: str = ""
    description: str = ""
    parameters: dict[str, dict] = {}
    required: tuple[str, ...] = ()

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> str:
        """Run the tool; may raise."""

    def to_api_format(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.parameters,
                    "required": list(self.required),
                },
            },
        }

    def missing_arguments(self, arguments: dict[str, Any]) -> list[str]:
        return [name for name in self.required if arguments.get(name) in (None, "", [])]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
