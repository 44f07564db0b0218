"""Pydantic models for the chat_completion tool and the upstream API."""

from typing import Literal

from pydantic import BaseModel, Field

# ============ TOOL ARGUMENTS ============


class ToolCallArgs(BaseModel):
    """Arguments of the chat_completion tool."""

    prompt: str = Field(..., min_length=1, description="The prompt to send to the chat model")
    model: str | None = Field(default=None, description="Override the configured model")


# ============ UPSTREAM REQUEST ============


class ChatMessage(BaseModel):
    """A single chat message."""

    role: Literal["system", "user", "assistant"] = "user"
    content: str


class ChatCompletionRequest(BaseModel):
    """Body of ``POST {basePath}/chat/completions``."""

    model: str
    messages: list[ChatMessage]
    stream: bool = False

    @classmethod
    def from_tool_args(
        cls, args: ToolCallArgs, default_model: str, stream: bool
    ) -> "ChatCompletionRequest":
        """Build a single-turn request: one user message, no history."""
        return cls(
            model=args.model or default_model,
            messages=[ChatMessage(role="user", content=args.prompt)],
            stream=stream,
        )
