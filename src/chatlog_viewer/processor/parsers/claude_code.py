"""Normalizer for Claude Code conversation transcripts.

Claude Code stores conversations as JSONL files at:
    ~/.claude/projects/<encoded-project-path>/<session-id>.jsonl

Each line is a JSON object with:
- type: "user", "assistant", "tool_result", "system", "summary", ...
- message.role: "user" or "assistant"
- message.content: string or array of content blocks
- message.model: model name (assistant records)
- timestamp: ISO 8601 timestamp
- isSidechain: true for sub-agent records that are not part of the main thread
"""

import json
import os
from datetime import datetime
from typing import Any

import markdown

from chatlog_viewer.logging import get_logger
from chatlog_viewer.models import (
    ROLE_ASSISTANT,
    ROLE_TOOL_RESULT,
    ROLE_USER,
    NormalizedMessage,
)
from chatlog_viewer.processor.parsers.blocks import (
    BlockVisitor,
    OtherBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    parse_blocks,
    stringify,
)

logger = get_logger("normalizer")

MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]

# Tool name -> whether the tool input must carry literal file content
FILE_TOOLS: dict[str, bool] = {"Write": True, "Read": False}

MARKDOWN_FILE_EXTENSIONS = frozenset({"md", "markdown"})

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "html": "html",
    "css": "css",
    "json": "json",
    "yml": "yaml",
    "yaml": "yaml",
    "xml": "xml",
    "sql": "sql",
    "sh": "bash",
    "bash": "bash",
}


def language_for_extension(extension: str) -> str:
    """Map a file extension (without dot) to a fenced-code language hint."""
    return LANGUAGE_BY_EXTENSION.get(extension.lower(), "text")


def render_markdown(text: str) -> str:
    """Render Markdown text to HTML."""
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)


def format_file_section(file_path: str, content: str | None) -> str:
    """Format file content from a file tool call under a base-name heading.

    Markdown files are shown between horizontal rules so they render as
    Markdown; all other files go into a fenced block tagged by extension.
    """
    file_name = file_path.replace("\\", "/").split("/")[-1]
    extension = os.path.splitext(file_name)[1].lstrip(".").lower()

    section = f"\n### {file_name}\n\n"
    if content is None:
        return section
    if extension in MARKDOWN_FILE_EXTENSIONS:
        return section + f"---\n\n{content}\n\n---\n\n"
    return section + f"```{language_for_extension(extension)}\n{content}\n```\n"


class DisplayRenderer(BlockVisitor):
    """Renders content blocks into Markdown text for display and search."""

    def visit_text(self, block: TextBlock) -> str:
        return block.text + "\n"

    def visit_tool_use(self, block: ToolUseBlock) -> str:
        text = f"\n**Tool Call: {block.name}**\n"
        if not block.input:
            return text

        file_path = block.input.get("file_path")
        if block.name in FILE_TOOLS and isinstance(file_path, str) and file_path:
            file_content = block.input.get("content")
            if not isinstance(file_content, str):
                file_content = None
            if file_content is not None or not FILE_TOOLS[block.name]:
                return text + format_file_section(file_path, file_content)

        return text + "```json\n" + json.dumps(block.input, indent=2) + "\n```\n"

    def visit_tool_result(self, block: ToolResultBlock) -> str:
        if block.content in (None, "", []):
            return ""
        return stringify(block.content) + "\n"

    def visit_other(self, block: OtherBlock) -> str:
        return stringify(block.raw) + "\n"


_renderer = DisplayRenderer()


def parse_timestamp(timestamp_str: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp string.

    Args:
        timestamp_str: ISO 8601 timestamp string (e.g., "2026-01-26T00:38:34.590Z")

    Returns:
        Timezone-aware datetime, or None if missing or unparseable
    """
    if not isinstance(timestamp_str, str) or not timestamp_str:
        return None

    try:
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        return datetime.fromisoformat(timestamp_str)
    except ValueError:
        return None


def parse_entry(line: str) -> dict[str, Any] | None:
    """Decode one log line into a JSON object.

    Returns None for blank lines, malformed JSON and non-object values.
    """
    line = line.strip()
    if not line:
        return None
    try:
        entry = json.loads(line)
    except (ValueError, RecursionError):
        # Covers JSONDecodeError and integers past the digit limit
        return None
    return entry if isinstance(entry, dict) else None


def _message_of(entry: dict[str, Any]) -> dict[str, Any] | None:
    message = entry.get("message")
    return message if isinstance(message, dict) else None


def normalize_entry(entry: dict[str, Any], sequence_index: int) -> NormalizedMessage | None:
    """Normalize one decoded log record.

    Record shapes are checked in order: user message, assistant message,
    tool-result/system record. Anything else (including sidechain records)
    is dropped.

    Args:
        entry: Decoded JSON object for one log line
        sequence_index: Index to assign if the record yields a message

    Returns:
        NormalizedMessage, or None if the record is dropped
    """
    if entry.get("isSidechain") is True:
        return None

    entry_type = entry.get("type")
    message = _message_of(entry)
    timestamp = parse_timestamp(entry.get("timestamp"))

    if entry_type == "user" and message is not None and message.get("role") == "user":
        raw_content = message.get("content")
        blocks = parse_blocks(raw_content)
        if isinstance(raw_content, str):
            content = raw_content
        else:
            content = _renderer.render(blocks).strip()
        return NormalizedMessage(
            role=ROLE_USER,
            content=content,
            sequence_index=sequence_index,
            rendered_content=render_markdown(content) if content else None,
            timestamp=timestamp,
            blocks=blocks,
        )

    if entry_type == "assistant" and message is not None and message.get("role") == "assistant":
        raw_content = message.get("content")
        blocks = parse_blocks(raw_content)
        if isinstance(raw_content, str):
            content = raw_content.strip()
        else:
            content = _renderer.render(blocks).strip()
        if not content:
            return None
        model = message.get("model")
        return NormalizedMessage(
            role=ROLE_ASSISTANT,
            content=content,
            sequence_index=sequence_index,
            rendered_content=render_markdown(content),
            timestamp=timestamp,
            model=model if isinstance(model, str) else None,
            blocks=blocks,
        )

    if entry_type in ("tool_result", "system"):
        raw_content = entry.get("content")
        if not raw_content and message is not None:
            raw_content = message.get("content")
        if not raw_content:
            return None
        content = stringify(raw_content).strip()
        if not content:
            return None
        return NormalizedMessage(
            role=ROLE_TOOL_RESULT,
            content=content,
            sequence_index=sequence_index,
            rendered_content=render_markdown(f"```\n{content}\n```"),
            timestamp=timestamp,
        )

    return None


def normalize_line(line: str, sequence_index: int) -> NormalizedMessage | None:
    """Parse and normalize one raw log line; never raises."""
    try:
        entry = parse_entry(line)
        if entry is None:
            return None
        return normalize_entry(entry, sequence_index)
    except Exception:
        logger.debug("Dropping unreadable record: index=%d", sequence_index, exc_info=True)
        return None


class ClaudeCodeNormalizer:
    """Normalizes the lines of a Claude Code JSONL transcript."""

    source_name = "claude_code"

    def normalize_lines(self, lines: list[str]) -> list[NormalizedMessage]:
        """Normalize all lines of one transcript.

        Dropped lines do not consume a sequence index, so indices are
        contiguous and follow file order.

        Args:
            lines: Raw lines of the transcript file

        Returns:
            List of normalized messages in file order
        """
        messages: list[NormalizedMessage] = []
        for line in lines:
            message = normalize_line(line, len(messages))
            if message is not None:
                messages.append(message)
        return messages
