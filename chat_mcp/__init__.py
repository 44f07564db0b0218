"""Chat MCP Bridge - exposes a chat-completion API as an MCP tool."""

__version__ = "1.0.0"
