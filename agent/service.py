# =============================================================================
# agent/service.py  —  Agent Service (the public entry point)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   send_message(text) is the one call a front end needs.  It appends the
#   user's turn, picks a path and returns the final assistant text:
#
#     complex travel-planning request ──► WorkflowOrchestrator
#         (travel keyword + two or more     decompose, run tools in phases,
#          subtask triggers)                aggregate one report
#
#     anything else ──────────────────► think / act loop
#                                         think → tools → think → ... →
#                                         synthesize
#
# THE THINK / ACT LOOP:
#   Each iteration asks the model for its next move.  No tool calls means the
#   model is done: if tools ran earlier in the run, the answer is
#   re-synthesized on a reduced context; otherwise the model's text is used
#   as it is (after marker stripping).  Tool calls are executed concurrently
#   and their results appended as tool messages in call order.
#
#   The step counter stops the loop at max_steps (default 10).  Hitting the
#   ceiling is not an error: whatever was collected is synthesized and the
#   run finishes normally.
#
# FAILURES:
#   Tool failures become tool messages and the loop goes on.  A model
#   failure ends the run in the error state with an apology in the
#   transcript, and the history file is left untouched.
# =============================================================================

import logging
from typing import Optional

from agent.config import AgentSettings
from agent.conversation import ConversationManager
from agent.executor import AgentExecutor, ChatCompletion
from agent.llm import ChatClient
from agent.prompt import get_system_prompt
from agent.state_machine import ConversationStateMachine
from agent.workflow import TIMEOUT_REPLY, WorkflowOrchestrator
from core.decomposition import is_complex_request
from core.models import AgentState
from core.storage import ConversationStore, JsonFileConversationStore
from core.synthesis import FALLBACK_REPLY, finalize_reply
from tools.registry import ToolRegistry, default_registry

logger = logging.getLogger(__name__)


class AgentService:
    def __init__(
        self,
        client: ChatCompletion,
        registry: Optional[ToolRegistry] = None,
        store: Optional[ConversationStore] = None,
        settings: Optional[AgentSettings] = None,
        orchestrator: Optional[WorkflowOrchestrator] = None,
    ):
        self.settings = settings or AgentSettings()
        self.registry = registry if registry is not None else default_registry()
        self.conversation = ConversationManager(store)
        self.state_machine = ConversationStateMachine(self.settings.max_steps)
        self.executor = AgentExecutor(client, self.registry)
        self.orchestrator = orchestrator or WorkflowOrchestrator(self.registry)
        self.last_task_id: Optional[str] = None

    @property
    def state(self) -> AgentState:
        return self.state_machine.state

    def visible_messages(self):
        return self.conversation.visible_messages()

    async def load_history(self) -> bool:
        return await self.conversation.load_history()

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------
    async def send_message(self, text: str) -> Optional[str]:
        """Handle one user turn.  Returns the final assistant text, or None
        when the input was blank or another run is still active."""
        text = (text or "").strip()
        if not text:
            return None

        self.state_machine.reset()
        if not self.state_machine.start_thinking():
            return None

        if not self.conversation.has_system_prompt():
            self.conversation.add_system(get_system_prompt())
        self.conversation.add_user(text)

        if is_complex_request(text):
            logger.info("Routing to workflow: %r", text)
            return await self._run_workflow(text)
        logger.info("Routing to think/act loop: %r", text)
        return await self._run_agent()

    async def clear_conversation(self) -> None:
        await self.conversation.clear_history()
        self.state_machine.reset()
        logger.info("Conversation cleared")

    async def shutdown(self) -> None:
        await self.orchestrator.shutdown()

    # -------------------------------------------------------------------------
    # Workflow path
    # -------------------------------------------------------------------------
    async def _run_workflow(self, text: str) -> str:
        self.state_machine.start_acting()
        task_id = self.orchestrator.execute_request(text)
        self.last_task_id = task_id
        result = await self.orchestrator.wait_for_result(task_id, self.settings.workflow_timeout)
        if result is None:
            result = TIMEOUT_REPLY
        if result == TIMEOUT_REPLY:
            logger.warning("Workflow %s timed out; finishing the run anyway", task_id[:8])

        self.conversation.add_assistant(result)
        self.orchestrator.release(task_id)
        self.state_machine.finish()
        await self.conversation.save_history()
        return result

    # -------------------------------------------------------------------------
    # Think / act loop
    # -------------------------------------------------------------------------
    async def _run_agent(self) -> str:
        tools_ran = False
        while True:
            try:
                response = await self.executor.think(self.conversation.messages)
            except Exception as exc:
                return self._fail(exc)

            if self.executor.should_finish(response):
                if tools_ran:
                    return await self._finish_with_synthesis()
                return await self._finish(finalize_reply(response.content))

            self.state_machine.start_acting()
            self.conversation.add_assistant(response.content, response.tool_calls)
            for call_id, content in await self.executor.execute_tool_calls(response.tool_calls):
                self.conversation.add_tool(call_id, content)
            tools_ran = True

            self.state_machine.next_step()
            if self.state_machine.reached_limit():
                logger.warning("Step limit %d reached, summarizing what was collected", self.state_machine.max_steps)
                return await self._finish_with_synthesis()

    async def _finish_with_synthesis(self) -> str:
        try:
            final = await self.executor.synthesize(self.conversation.messages)
        except Exception as exc:
            return self._fail(exc)
        return await self._finish(final)

    async def _finish(self, final: str) -> str:
        self.conversation.add_assistant(final)
        self.state_machine.finish()
        await self.conversation.save_history()
        return final

    def _fail(self, exc: Exception) -> str:
        logger.error("Model call failed: %s", exc)
        self.state_machine.error(str(exc))
        self.conversation.add_assistant(FALLBACK_REPLY)
        return FALLBACK_REPLY


def build_service(settings: Optional[AgentSettings] = None) -> AgentService:
    """Service wired with the litellm client, built-in tools and the JSON store."""
    settings = settings or AgentSettings.from_env()
    return AgentService(
        client=ChatClient(settings),
        registry=default_registry(),
        store=JsonFileConversationStore(settings.history_path),
        settings=settings,
    )
