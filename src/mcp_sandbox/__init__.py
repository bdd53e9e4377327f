"""MCP Sandbox: per-user sandbox containers exposed as MCP tools."""

__version__ = "0.1.0"
