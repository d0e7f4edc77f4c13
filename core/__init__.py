# =============================================================================
# core/__init__.py
# =============================================================================
# This package contains ALL domain logic for the travel agent.
#
# CRITICAL ARCHITECTURAL RULE:
#   Nothing in this package imports litellm, FastMCP, or any orchestration
#   code.  Every module here is plain Python: data models, the error
#   taxonomy, JSON normalization, decomposition, aggregation, and the data
#   providers behind the tools (each with a deterministic mock).
#
# Live data sources are opt-in through environment toggles
# (USE_LIVE_MAPS, USE_LIVE_FLIGHTS); without them everything runs offline.
# =============================================================================
