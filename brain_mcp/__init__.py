"""Brain MCP - server-driven reasoning sessions exposed as MCP tools."""

__version__ = "1.0.0"
