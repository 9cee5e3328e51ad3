"""MCP server exposing a single explicit-lifecycle SSH session."""

__version__ = "0.1.0"
