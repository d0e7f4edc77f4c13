# =============================================================================
# agent/state_machine.py  —  Conversation State Machine
# =============================================================================
#
#   idle ──start_thinking──► thinking ──start_acting──► acting
#                               ▲                          │
#                               └───────── next_step ──────┘
#
#   any state ──finish──► finished        any state ──error(msg)──► error
#   finished | error ──reset──► idle
#
# One machine drives one conversation, and only one run may be active at a
# time: start_thinking() refuses unless the machine is idle, finished or in
# error.  The step counter bounds the think/act loop; reaching max_steps is
# a normal stop, not an exception.
#
# The machine is guarded by a lock so the single-run rule holds even when
# send_message is called from more than one thread.
# =============================================================================

import logging
import threading
from typing import Optional

from core.models import AgentState

logger = logging.getLogger(__name__)

_STARTABLE = (AgentState.IDLE, AgentState.FINISHED, AgentState.ERROR)


class ConversationStateMachine:
    def __init__(self, max_steps: int = 10):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.max_steps = max_steps
        self._lock = threading.Lock()
        self._state = AgentState.IDLE
        self._step = 0
        self._error_message: Optional[str] = None

    @property
    def state(self) -> AgentState:
        with self._lock:
            return self._state

    @property
    def step(self) -> int:
        with self._lock:
            return self._step

    @property
    def error_message(self) -> Optional[str]:
        with self._lock:
            return self._error_message

    @property
    def is_running(self) -> bool:
        return self.state in (AgentState.THINKING, AgentState.ACTING)

    def can_start_new_conversation(self) -> bool:
        return self.state in _STARTABLE

    def start_thinking(self) -> bool:
        """Begin a new run.  Returns False (and changes nothing) if one is active."""
        with self._lock:
            if self._state not in _STARTABLE:
                logger.warning("Run rejected: agent is %s", self._state.value)
                return False
            self._state = AgentState.THINKING
            self._step = 0
            self._error_message = None
        logger.info("State → thinking")
        return True

    def start_acting(self) -> None:
        with self._lock:
            if self._state != AgentState.THINKING:
                logger.warning("start_acting ignored in state %s", self._state.value)
                return
            self._state = AgentState.ACTING
        logger.info("State → acting")

    def next_step(self) -> int:
        """Count one think/act iteration and go back to thinking."""
        with self._lock:
            self._step += 1
            if self._state == AgentState.ACTING:
                self._state = AgentState.THINKING
            step = self._step
        logger.info("Step %d/%d", step, self.max_steps)
        return step

    def reached_limit(self) -> bool:
        with self._lock:
            return self._step >= self.max_steps

    def finish(self) -> None:
        with self._lock:
            self._state = AgentState.FINISHED
        logger.info("State → finished")

    def error(self, message: str) -> None:
        with self._lock:
            self._state = AgentState.ERROR
            self._error_message = message
        logger.warning("State → error: %s", message)

    def reset(self) -> None:
        """finished | error → idle.  Other states are left alone."""
        with self._lock:
            if self._state not in (AgentState.FINISHED, AgentState.ERROR):
                return
            self._state = AgentState.IDLE
            self._step = 0
            self._error_message = None
        logger.info("State → idle")
