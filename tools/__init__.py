# =============================================================================
# tools/__init__.py
# =============================================================================
# This package contains the tool layer.
#
# ARCHITECTURAL ROLE:
#   tools/ is the "translation layer" between the agent and core/.  It holds:
#     1. The Tool contract (name, description, parameter schema, execute)
#     2. The six built-in tools wrapping core/ providers
#     3. The ToolRegistry (lookup by name, catalog for the model)
#     4. Enhanced adapters that pull their own arguments out of free text
#        and a workflow context
#     5. A FastMCP server exposing the same tools to any MCP client
#
# TOOL CONTRACT QUALITY:
#   Each tool has a clear name, a description the model reads to decide
#   WHEN to call it, typed parameters, and a JSON result.  Every result is
#   normalized to JSON before anything downstream reads it.
# =============================================================================
