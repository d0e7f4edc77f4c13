# =============================================================================
# agent/workflow.py  —  Workflow Orchestrator
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Handles a complex travel-planning request end to end, in the background:
#
#     execute_request(text) ──► task_id        (returns immediately)
#
#     1. decompose   rule-based split into ordered subtasks
#     2. assign      first adapter whose can_handle() matches, else a
#                    keyword → tool-name fallback, else the subtask is
#                    dropped (logged, not an error)
#     3. execute     three phases over one shared WorkflowContext:
#
#          Phase A   flight_search ─┐
#                    budget_analyzer ├─ concurrent, joined by gather()
#                    (any other)    ─┘
#          Phase B   hotel_near_metro   reads Phase-A flight dates
#          Phase C   route_planner      starts from the first hotel
#
#     4. aggregate   one report; partial failures go to an appendix
#
#   A caller polls status_of(task_id) for a human-readable progress line,
#   or awaits wait_for_result(task_id, timeout) which wakes on a per-task
#   event instead of polling.
#   release(task_id) drops what is kept for a task once its answer has been
#   read; run() does this itself.
#
# FAILURE HANDLING:
#   A tool failure is stored as an ErrorEntry under that tool's key and the
#   pipeline goes on.  Only decomposition and aggregation failures end the
#   workflow as failed, and even then the final result is a sentence the
#   user can read.
# =============================================================================

import asyncio
import logging
from typing import Optional, Sequence

from core.aggregation import aggregate_results
from core.context import WorkflowContext, result_key
from core.decomposition import RuleBasedDecomposer, TaskDecomposer, contains_any
from core.errors import WorkflowAggregationFailed, WorkflowDecompositionFailed
from core.models import ErrorEntry, WorkflowState
from tools.enhanced import EnhancedTool, enhanced_tools
from tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

STATUS_STARTED = "开始分析请求..."
STATUS_DECOMPOSING = "正在分解任务..."
STATUS_EXECUTING = "正在执行工具..."
STATUS_AGGREGATING = "正在整合结果..."
STATUS_DONE = "完成"
STATUS_DECOMPOSITION_FAILED = "任务分解失败"
STATUS_AGGREGATION_FAILED = "结果整合失败"
STATUS_CANCELLED = "已取消"
STATUS_FAILED = "处理失败"

TIMEOUT_REPLY = "抱歉，旅行计划生成超时，请稍后再试。"
CANCELLED_REPLY = "旅行计划生成已取消。"

# Tools that read earlier results, in the order they must run.
PIPELINE_TOOLS = ("hotel_near_metro", "route_planner")

# Keyword → tool-name fragment, tried when no adapter claims a subtask.
_FALLBACK_KEYWORDS = (
    (("机票", "航班", "飞机"), "flight"),
    (("酒店", "住宿", "宾馆"), "hotel"),
    (("路线", "行程", "规划", "景点"), "route"),
    (("预算", "费用", "元"), "budget"),
)


class WorkflowOrchestrator:
    def __init__(
        self,
        registry: ToolRegistry,
        decomposer: Optional[TaskDecomposer] = None,
        adapters: Optional[Sequence[EnhancedTool]] = None,
    ):
        self.registry = registry
        self.decomposer: TaskDecomposer = decomposer or RuleBasedDecomposer()
        self.adapters: list[EnhancedTool] = list(adapters) if adapters is not None else enhanced_tools(registry)
        self._contexts: dict[str, WorkflowContext] = {}
        self._status: dict[str, str] = {}
        self._results: dict[str, str] = {}
        self._done: dict[str, asyncio.Event] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._released: set[str] = set()

    # -------------------------------------------------------------------------
    # Public surface
    # -------------------------------------------------------------------------
    def execute_request(self, request: str) -> str:
        """Start processing ``request`` in the background and return its task id.

        Must be called from inside a running event loop.
        """
        context = WorkflowContext(user_request=request)
        task_id = context.task_id
        self._contexts[task_id] = context
        self._done[task_id] = asyncio.Event()
        self._status[task_id] = STATUS_STARTED

        task = asyncio.create_task(self._process(context), name=f"workflow-{task_id[:8]}")
        self._tasks[task_id] = task
        task.add_done_callback(lambda t: self._on_task_done(task_id, t))
        logger.info("Workflow %s started for %r", task_id[:8], request)
        return task_id

    def status_of(self, task_id: str) -> Optional[str]:
        return self._status.get(task_id)

    def result_of(self, task_id: str) -> Optional[str]:
        """Final text, or None while the workflow is still running."""
        return self._results.get(task_id)

    def state_of(self, task_id: str) -> Optional[WorkflowState]:
        context = self._contexts.get(task_id)
        return context.state if context else None

    def context_of(self, task_id: str) -> Optional[WorkflowContext]:
        return self._contexts.get(task_id)

    async def wait_for_result(self, task_id: str, timeout: float) -> Optional[str]:
        """Wait up to ``timeout`` seconds for the final text.

        Returns TIMEOUT_REPLY when time runs out (the workflow keeps running)
        and None for an unknown task id.
        """
        event = self._done.get(task_id)
        if event is None:
            return None
        try:
            await asyncio.wait_for(event.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Workflow %s still running after %.1fs", task_id[:8], timeout)
            return TIMEOUT_REPLY
        return self._results.get(task_id)

    async def run(self, request: str, timeout: float = 60.0) -> str:
        """Start a workflow and wait for its answer."""
        task_id = self.execute_request(request)
        result = await self.wait_for_result(task_id, timeout)
        self.release(task_id)
        return result if result is not None else TIMEOUT_REPLY

    def release(self, task_id: str) -> bool:
        """Drop everything kept for a task once its answer has been read.

        A task that is still running is dropped when it finishes instead;
        returns False in that case.
        """
        if task_id in self._tasks:
            self._released.add(task_id)
            return False
        self._forget(task_id)
        return True

    def cancel(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None or task.done():
            return False
        logger.info("Cancelling workflow %s", task_id[:8])
        return task.cancel()

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Workflow orchestrator shut down (%d tasks cancelled)", len(tasks))

    # -------------------------------------------------------------------------
    # Tool assignment
    # -------------------------------------------------------------------------
    def find_best_tool(self, task: str) -> Optional[EnhancedTool]:
        for adapter in self.adapters:
            if adapter.can_handle(task):
                logger.info("Subtask %r → %s (can_handle)", task, adapter.name)
                return adapter

        lowered = task.lower()
        for keywords, fragment in _FALLBACK_KEYWORDS:
            if contains_any(lowered, keywords):
                for adapter in self.adapters:
                    if fragment in adapter.name.lower():
                        logger.info("Subtask %r → %s (keyword fallback)", task, adapter.name)
                        return adapter
        return None

    def assign_tools(self, subtasks: Sequence[str]) -> list[tuple[str, EnhancedTool]]:
        """One (subtask, adapter) pair per tool; the first subtask for a tool wins."""
        assignments: list[tuple[str, EnhancedTool]] = []
        seen: set[str] = set()
        for task in subtasks:
            adapter = self.find_best_tool(task)
            if adapter is None:
                logger.warning("No tool can handle subtask %r, skipping it", task)
                continue
            if adapter.name in seen:
                logger.info("Subtask %r shares %s with an earlier subtask, skipping it", task, adapter.name)
                continue
            seen.add(adapter.name)
            assignments.append((task, adapter))
        return assignments

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------
    async def _process(self, context: WorkflowContext) -> None:
        task_id = context.task_id
        context.state = WorkflowState.IN_PROGRESS
        try:
            self._status[task_id] = STATUS_DECOMPOSING
            try:
                subtasks = self.decomposer.decompose(context.user_request)
            except WorkflowDecompositionFailed as exc:
                logger.warning("Workflow %s: %s", task_id[:8], exc)
                self._fail(context, STATUS_DECOMPOSITION_FAILED, f"很抱歉，无法理解您的请求: {exc}", exc)
                return

            self._status[task_id] = f"已分解为{len(subtasks)}个子任务"
            for index, task in enumerate(subtasks):
                context.set(f"subtask_{index}", task)

            assignments = self.assign_tools(subtasks)
            self._status[task_id] = f"选择了{len(assignments)}个工具执行任务"
            await self._execute_plan(context, assignments)

            self._status[task_id] = STATUS_AGGREGATING
            try:
                final = aggregate_results(context.result_entries(), context.user_request)
            except WorkflowAggregationFailed as exc:
                logger.warning("Workflow %s: %s", task_id[:8], exc)
                self._fail(context, STATUS_AGGREGATION_FAILED, f"很抱歉，在整合结果时遇到了问题: {exc}", exc)
                return

            context.state = WorkflowState.COMPLETED
            self._finish(task_id, STATUS_DONE, final)
            logger.info("Workflow %s completed (%d chars)", task_id[:8], len(final))
        except asyncio.CancelledError:
            context.state = WorkflowState.FAILED
            context.error = STATUS_CANCELLED
            self._finish(task_id, STATUS_CANCELLED, CANCELLED_REPLY)
            logger.info("Workflow %s cancelled", task_id[:8])
            raise
        except Exception as exc:
            logger.exception("Workflow %s crashed", task_id[:8])
            self._fail(context, STATUS_FAILED, f"很抱歉，处理您的请求时遇到了问题: {exc}", exc)

    async def _execute_plan(self, context: WorkflowContext, assignments: Sequence[tuple[str, EnhancedTool]]) -> None:
        total = len(assignments)
        numbered = [(index + 1, task, adapter) for index, (task, adapter) in enumerate(assignments)]
        independent = [item for item in numbered if item[2].name not in PIPELINE_TOOLS]
        dependent = sorted(
            (item for item in numbered if item[2].name in PIPELINE_TOOLS),
            key=lambda item: PIPELINE_TOOLS.index(item[2].name),
        )

        self._status[context.task_id] = STATUS_EXECUTING
        if independent:
            logger.info("Phase A: %s", [adapter.name for _, _, adapter in independent])
            await asyncio.gather(
                *(self._run_assignment(context, i, total, task, adapter) for i, task, adapter in independent)
            )

        for i, task, adapter in dependent:
            logger.info("Phase %s: %s", "B" if adapter.name == PIPELINE_TOOLS[0] else "C", adapter.name)
            await self._run_assignment(context, i, total, task, adapter)

    async def _run_assignment(
        self,
        context: WorkflowContext,
        index: int,
        total: int,
        task: str,
        adapter: EnhancedTool,
    ) -> None:
        self._status[context.task_id] = f"正在执行: {adapter.name} ({index}/{total})"
        try:
            result = await adapter.execute(context, task)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Tool %s failed for %r: %s", adapter.name, task, exc)
            context.set(result_key(adapter.name), ErrorEntry(error=str(exc), query={"task": task}))
            return
        if not result.ok:
            logger.warning("Tool %s returned an error: %s", adapter.name, result.error)

    def _on_task_done(self, task_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(task_id, None)
        if task_id not in self._results:
            # Cancelled before its first step: _process never ran.
            context = self._contexts[task_id]
            context.state = WorkflowState.FAILED
            context.error = STATUS_CANCELLED
            self._finish(task_id, STATUS_CANCELLED, CANCELLED_REPLY)
        if task_id in self._released:
            self._forget(task_id)

    def _forget(self, task_id: str) -> None:
        self._released.discard(task_id)
        self._contexts.pop(task_id, None)
        self._status.pop(task_id, None)
        self._results.pop(task_id, None)
        self._done.pop(task_id, None)

    def _fail(self, context: WorkflowContext, status: str, reply: str, exc: Exception) -> None:
        context.state = WorkflowState.FAILED
        context.error = str(exc)
        self._finish(context.task_id, status, reply)

    def _finish(self, task_id: str, status: str, result: str) -> None:
        self._results[task_id] = result
        self._status[task_id] = status
        self._done[task_id].set()
