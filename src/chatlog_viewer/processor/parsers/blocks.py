"""Typed content blocks for message content.

A message's ``content`` field is either a plain string or an array of typed
blocks. Blocks are parsed into one of four variants and rendered by a
``BlockVisitor`` subclass:

- ``TextBlock``: ``{"type": "text", "text": ...}``
- ``ToolUseBlock``: ``{"type": "tool_use", "name": ..., "input": {...}}``
- ``ToolResultBlock``: ``{"type": "tool_result", "content": ...}``
- ``OtherBlock``: anything else, kept verbatim
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "BlockVisitor",
    "ContentBlock",
    "OtherBlock",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "parse_blocks",
    "stringify",
]


def stringify(value: Any) -> str:
    """Return strings unchanged and serialize anything else as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


class ContentBlock(ABC):
    """Base class for content block variants."""

    @abstractmethod
    def accept(self, visitor: "BlockVisitor") -> Any:
        """Dispatch to the matching visitor method."""


@dataclass
class TextBlock(ContentBlock):
    text: str

    def accept(self, visitor: "BlockVisitor") -> Any:
        return visitor.visit_text(self)


@dataclass
class ToolUseBlock(ContentBlock):
    name: str
    input: dict[str, Any] | None = None
    id: str | None = None

    def accept(self, visitor: "BlockVisitor") -> Any:
        return visitor.visit_tool_use(self)


@dataclass
class ToolResultBlock(ContentBlock):
    content: Any = None
    tool_use_id: str | None = None

    def accept(self, visitor: "BlockVisitor") -> Any:
        return visitor.visit_tool_result(self)


@dataclass
class OtherBlock(ContentBlock):
    raw: Any = field(default_factory=dict)

    def accept(self, visitor: "BlockVisitor") -> Any:
        return visitor.visit_other(self)


class BlockVisitor(ABC):
    """Renders content blocks; subclasses pick the output format."""

    def render(self, blocks: list[ContentBlock]) -> str:
        """Render all blocks in order and join the pieces."""
        return "".join(block.accept(self) for block in blocks)

    @abstractmethod
    def visit_text(self, block: TextBlock) -> str: ...

    @abstractmethod
    def visit_tool_use(self, block: ToolUseBlock) -> str: ...

    def visit_tool_result(self, block: ToolResultBlock) -> str:
        return ""

    def visit_other(self, block: OtherBlock) -> str:
        return ""


def _parse_block(raw: Any) -> ContentBlock:
    if isinstance(raw, str):
        return TextBlock(text=raw)
    if not isinstance(raw, dict):
        return OtherBlock(raw=raw)

    block_type = raw.get("type")
    if block_type == "text":
        text = raw.get("text")
        return TextBlock(text=text if isinstance(text, str) else stringify(text or ""))
    if block_type == "tool_use":
        tool_input = raw.get("input")
        return ToolUseBlock(
            name=str(raw.get("name", "unknown")),
            input=tool_input if isinstance(tool_input, dict) else None,
            id=raw.get("id"),
        )
    if block_type == "tool_result":
        return ToolResultBlock(content=raw.get("content"), tool_use_id=raw.get("tool_use_id"))
    return OtherBlock(raw=raw)


def parse_blocks(content: Any) -> list[ContentBlock]:
    """Parse a message ``content`` field into typed blocks.

    Args:
        content: Either a string, an array of block objects, or None

    Returns:
        List of content blocks (a string becomes a single TextBlock)
    """
    if content is None:
        return []
    if isinstance(content, str):
        return [TextBlock(text=content)]
    if isinstance(content, list):
        return [_parse_block(item) for item in content]
    return [OtherBlock(raw=content)]
