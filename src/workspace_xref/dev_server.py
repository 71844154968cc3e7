# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Development server module for testing with 'mcp dev' and 'fastmcp run'.

Exposes the FastMCP server instance as a global variable for MCP
development tools that expect a discoverable server object at import time.
The workspace root comes from $WORKSPACE_XREF_ROOT (default /app/workspace).

Usage:
    # With mcp dev (MCP Inspector) - run from repository root
    WORKSPACE_XREF_ROOT=/path/to/workspace mcp dev src/workspace_xref/dev_server.py:mcp

Note:
    This module is for development/testing purposes only.
    For production use, run the server via: python -m workspace_xref
"""

from workspace_xref.config import resolve_workspace_root
from workspace_xref.mcp_server import WorkspaceXrefMCPServer

_server = WorkspaceXrefMCPServer(resolve_workspace_root())
mcp = _server.mcp
