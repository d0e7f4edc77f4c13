# =============================================================================
# agent/__init__.py
# =============================================================================
# This package contains the orchestration layer of the travel agent.
#
# ARCHITECTURAL ROLE:
#   The agent/ layer is the "brain" that coordinates everything.  It:
#     1. Receives the user's message and decides which path handles it
#     2. Runs the think / act loop: the model requests tools, the tools run,
#        the model is asked again
#     3. Or runs a workflow: the request is decomposed into subtasks and the
#        matching tools run in phases over a shared context
#     4. Produces one clean natural-language answer
#
# WHAT THE AGENT IS NOT:
#   - It is NOT the business logic (that's in core/)
#   - It is NOT the tool implementations (that's in tools/)
#
# THE LLM'S ROLE:
#   The model (any litellm-supported provider) is the reasoning engine of
#   the think / act loop.  The workflow path does not call it at all: its
#   decomposition is a fixed rule table.
# =============================================================================
