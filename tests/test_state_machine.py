import threading

import pytest

from agent.state_machine import ConversationStateMachine
from core.models import AgentState


def test_normal_lifecycle():
    machine = ConversationStateMachine()
    assert machine.state == AgentState.IDLE
    assert machine.start_thinking()
    assert machine.state == AgentState.THINKING
    machine.start_acting()
    assert machine.state == AgentState.ACTING
    assert machine.next_step() == 1
    assert machine.state == AgentState.THINKING
    machine.finish()
    assert machine.state == AgentState.FINISHED


@pytest.mark.parametrize("busy", ["thinking", "acting"])
def test_start_thinking_is_a_no_op_while_running(busy):
    machine = ConversationStateMachine()
    machine.start_thinking()
    machine.next_step()
    if busy == "acting":
        machine.start_acting()
    before = (machine.state, machine.step)

    assert not machine.can_start_new_conversation()
    assert not machine.start_thinking()
    assert (machine.state, machine.step) == before


@pytest.mark.parametrize("terminal", ["finish", "error"])
def test_can_restart_from_terminal_states(terminal):
    machine = ConversationStateMachine()
    machine.start_thinking()
    machine.next_step()
    if terminal == "finish":
        machine.finish()
    else:
        machine.error("boom")
    assert machine.can_start_new_conversation()
    assert machine.start_thinking()
    assert machine.step == 0
    assert machine.error_message is None


def test_reset_is_idempotent():
    machine = ConversationStateMachine()
    machine.start_thinking()
    machine.finish()
    machine.reset()
    machine.reset()
    assert machine.state == AgentState.IDLE
    assert machine.step == 0


def test_reset_ignores_running_machine():
    machine = ConversationStateMachine()
    machine.start_thinking()
    machine.reset()
    assert machine.state == AgentState.THINKING


def test_error_keeps_message_until_reset():
    machine = ConversationStateMachine()
    machine.start_thinking()
    machine.error("model unavailable")
    assert machine.state == AgentState.ERROR
    assert machine.error_message == "model unavailable"
    machine.reset()
    assert machine.state == AgentState.IDLE
    assert machine.error_message is None


def test_step_ceiling():
    machine = ConversationStateMachine(max_steps=10)
    machine.start_thinking()
    for _ in range(9):
        machine.start_acting()
        machine.next_step()
        assert not machine.reached_limit()
    machine.start_acting()
    machine.next_step()
    assert machine.reached_limit()
    assert machine.step == 10


def test_only_one_thread_can_start_a_run():
    machine = ConversationStateMachine()
    barrier = threading.Barrier(8)
    outcomes = []

    def attempt():
        barrier.wait()
        outcomes.append(machine.start_thinking())

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(True) == 1
    assert machine.state == AgentState.THINKING


def test_max_steps_must_be_positive():
    with pytest.raises(ValueError):
        ConversationStateMachine(max_steps=0)
