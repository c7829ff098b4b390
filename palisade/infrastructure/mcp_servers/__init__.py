"""
MCP Servers Package

Architectural Intent:
- Exposes the policy engine's two actions as MCP tools
- Tools = write operations (commands)
- Resources = read operations (queries)
"""

from palisade.infrastructure.mcp_servers.palisade_server import (
    MCPServer,
    MCPError,
    create_palisade_server,
    MCPTool,
    MCPResource,
)
from palisade.infrastructure.mcp_servers.stdio_transport import run_stdio

__all__ = [
    "MCPServer",
    "MCPError",
    "create_palisade_server",
    "MCPTool",
    "MCPResource",
    "run_stdio",
]
