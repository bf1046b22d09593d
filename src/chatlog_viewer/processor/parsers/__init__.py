"""Normalizers for chat transcript log formats."""

from .blocks import (
    BlockVisitor,
    ContentBlock,
    OtherBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    parse_blocks,
    stringify,
)
from .claude_code import (
    ClaudeCodeNormalizer,
    language_for_extension,
    normalize_entry,
    normalize_line,
    parse_entry,
    parse_timestamp,
    render_markdown,
)

__all__ = [
    "BlockVisitor",
    "ClaudeCodeNormalizer",
    "ContentBlock",
    "OtherBlock",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "language_for_extension",
    "normalize_entry",
    "normalize_line",
    "parse_blocks",
    "parse_entry",
    "parse_timestamp",
    "render_markdown",
    "stringify",
]
