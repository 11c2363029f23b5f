"""Helper functions for tests."""

from typing import TYPE_CHECKING

from mcp.types import PromptMessage, TextContent

if TYPE_CHECKING:
    from fastmcp.client.client import CallToolResult


def get_text_content(result: "CallToolResult") -> str:
    """Extract text content from a CallToolResult.

    Raises:
        AssertionError: If content is not TextContent
    """
    assert len(result.content) > 0, "Result has no content"
    content = result.content[0]
    assert isinstance(content, TextContent), f"Expected TextContent, got {type(content)}"
    return content.text


def get_prompt_text(message: PromptMessage) -> str:
    """Extract text from a PromptMessage."""
    content = message.content
    assert isinstance(content, TextContent), f"Expected TextContent, got {type(content)}"
    return content.text
