"""MCP tool definitions for the Chat MCP Bridge.

This module contains the tool catalog returned by the tools/list method.
The bridge exposes exactly one tool, backed by the upstream chat-completion
endpoint.
"""

CHAT_COMPLETION_TOOL = "chat_completion"

TOOL_DEFINITIONS: list[dict] = [
    {
        "name": CHAT_COMPLETION_TOOL,
        "title": "Chat Completion",
        "description": "Generate chat completion using the configured model",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "The prompt to send to the chat model",
                },
                "model": {
                    "type": "string",
                    "description": "Model to use instead of the server default",
                },
            },
            "required": ["prompt"],
        },
    },
]
