# =============================================================================
# core/errors.py  —  Error Taxonomy
# =============================================================================
#
# Every failure the agent can name lives here.  The tool layer, the chat
# client and the workflow orchestrator raise these; the agent service and
# the orchestrator turn them into natural-language messages before anything
# reaches the user-visible transcript.
#
#   TravelAgentError
#     ├── InvalidURL
#     ├── InvalidResponse
#     ├── HTTPError(code)
#     ├── NetworkError
#     ├── DecodingError
#     ├── ToolNotFound(name)
#     ├── ConfigurationError
#     ├── WorkflowDecompositionFailed
#     └── WorkflowAggregationFailed(key)
# =============================================================================

from typing import Optional


class TravelAgentError(Exception):
    """Base class for every error raised by the travel agent."""


class InvalidURL(TravelAgentError):
    def __init__(self, url: str = ""):
        self.url = url
        super().__init__(f"Invalid URL: {url}" if url else "Invalid URL")


class InvalidResponse(TravelAgentError):
    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(f"Invalid response: {detail}" if detail else "Invalid response")


class HTTPError(TravelAgentError):
    def __init__(self, code: int, detail: str = ""):
        self.code = code
        self.detail = detail
        message = f"HTTP error: {code}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class NetworkError(TravelAgentError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Network error: {detail}")


class DecodingError(TravelAgentError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Decoding error: {detail}")


class ToolNotFound(TravelAgentError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ConfigurationError(TravelAgentError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Configuration error: {detail}")


class WorkflowDecompositionFailed(TravelAgentError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Workflow decomposition failed: {detail}")


class WorkflowAggregationFailed(TravelAgentError):
    """No result entry could be rendered into a report section.

    ``key`` names one representative failing entry (the first one seen).
    """

    def __init__(self, key: Optional[str] = None):
        self.key = key
        detail = f"示例失败项：{key}" if key else "工作流没有返回任何数据"
        super().__init__(f"无法解析任何工具返回的结构化结果，请检查工具输出。{detail}")
