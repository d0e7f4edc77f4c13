# =============================================================================
# main.py  —  Entry Point for the Travel Master Agent
# =============================================================================
#
# HOW TO RUN:
#   python main.py
#
# WHAT HAPPENS:
#   1. Loads .env (model, API keys, USE_LIVE_* data-source toggles)
#   2. Builds the agent service: litellm chat client, the six built-in
#      tools, the workflow orchestrator and the JSON conversation store
#   3. Restores the last saved conversation, if any
#   4. Reads questions from the terminal and prints the answers
#
# TWO PATHS PER QUESTION:
#   "帮我规划从北京到上海的3天旅行，预算5000元"
#       → a complex planning request: decomposed into flight / hotel /
#         route / budget subtasks, run as a workflow, aggregated into one
#         plan
#   "现在几点？" or "帮我算一下 1200*3"
#       → the think / act loop: the model picks tools itself
#
# COMMANDS:
#   clear   forget the conversation (memory and history file)
#   quit    exit
#
# Logs (tool calls, phases, state changes) go to STDERR; the transcript is
# on STDOUT.  Redirect 2>agent.log for a clean console.
# =============================================================================

import asyncio
import logging
import sys

from dotenv import load_dotenv

# Must run before the settings and the providers read the environment.
load_dotenv()

from agent.config import AgentSettings
from agent.service import build_service
from core.errors import ConfigurationError


async def run_agent():
    """Interactive loop around AgentService.send_message."""
    print("=" * 70)
    print("  TRAVEL MASTER AGENT")
    print("  Powered by litellm + FastMCP tools")
    print("=" * 70)
    print("\n🔧 Initializing agent...")

    try:
        settings = AgentSettings.from_env()
    except ConfigurationError as exc:
        print(f"\n⚠️  {exc}")
        return

    service = build_service(settings)
    if await service.load_history():
        print(f"📂 Restored {len(service.visible_messages())} messages from {settings.history_path}")

    print(f"✅ Agent ready (model: {settings.model})\n")
    print("💬 问我任何旅行问题，例如：帮我规划从北京到上海的3天旅行，预算5000元")
    print("   (Type 'clear' to start over, 'quit' to exit)\n")
    print("-" * 70)

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "\n🧑 You: ")).strip()
            except (EOFError, KeyboardInterrupt):
                print("\n\n👋 Goodbye!")
                break

            if user_input.lower() in ("quit", "exit", "q"):
                print("\n👋 Goodbye!")
                break
            if user_input.lower() == "clear":
                await service.clear_conversation()
                print("\n🧹 Conversation cleared.")
                continue
            if not user_input:
                continue

            print("\n🤖 Agent is thinking...\n")
            print("-" * 70)
            reply = await service.send_message(user_input)

            if reply:
                print(f"\n🤖 Agent:\n\n{reply}")
            else:
                print("\n⚠️  No response generated. Another request may still be running.")
            print("\n" + "=" * 70)
    finally:
        await service.shutdown()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    asyncio.run(run_agent())


if __name__ == "__main__":
    main()
