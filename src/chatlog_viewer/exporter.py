"""Markdown export of a single conversation."""

import json
import re
from datetime import datetime

from chatlog_viewer.models import ROLE_ASSISTANT, ROLE_USER, Conversation, NormalizedMessage
from chatlog_viewer.processor.parsers.blocks import BlockVisitor, TextBlock, ToolUseBlock

EXPORT_TITLE = "Chat History"
ROLE_HEADINGS = {ROLE_USER: "You", ROLE_ASSISTANT: "Assistant"}
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def bold_matches(text: str, query: str | None) -> str:
    """Wrap every case-insensitive literal occurrence of ``query`` in ``**``."""
    if not query or not text:
        return text
    return re.sub(re.escape(query), lambda m: f"**{m.group(0)}**", text, flags=re.IGNORECASE)


def export_filename(conversation_id: str) -> str:
    """Default download filename for an exported conversation."""
    return f"chat-{conversation_id}.md"


class MarkdownExportRenderer(BlockVisitor):
    """Renders assistant content blocks for export.

    Text blocks become paragraphs and tool calls a labelled, pretty-printed
    JSON block. Tool results and other blocks are left out.
    """

    def __init__(self, query: str | None = None) -> None:
        self._query = query

    def visit_text(self, block: TextBlock) -> str:
        return f"{bold_matches(block.text, self._query)}\n\n"

    def visit_tool_use(self, block: ToolUseBlock) -> str:
        text = f"**Tool Call: {block.name}**\n\n"
        if block.input:
            payload = bold_matches(json.dumps(block.input, indent=2), self._query)
            text += f"```json\n{payload}\n```\n\n"
        return text


def _format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.astimezone().strftime(TIMESTAMP_FORMAT)


def _export_message(message: NormalizedMessage, query: str | None) -> str:
    heading = ROLE_HEADINGS.get(message.role)
    if heading is None:
        return ""

    text = f"## {heading}\n"
    timestamp = _format_timestamp(message.timestamp)
    if timestamp:
        text += f"*{timestamp}*\n\n"

    if message.role == ROLE_ASSISTANT and message.blocks:
        return text + MarkdownExportRenderer(query).render(message.blocks)
    return text + f"{bold_matches(message.content, query)}\n\n"


def export_conversation(
    conversation: Conversation,
    query: str | None = None,
    exported_at: datetime | None = None,
) -> str:
    """Render a conversation as a Markdown document.

    Args:
        conversation: Conversation to export
        query: Optional search term to bold throughout message text
        exported_at: Export time for the metadata block (defaults to now)

    Returns:
        Markdown document text
    """
    query = (query or "").strip() or None
    exported_at = exported_at or datetime.now()

    parts = [
        f"# {EXPORT_TITLE}\n\n",
        f"**Chat ID:** {conversation.id}\n",
        f"**Exported:** {exported_at.strftime(TIMESTAMP_FORMAT)}\n",
    ]
    if query:
        parts.append(f'**Search Term:** "{query}"\n')
    parts.append("\n---\n\n")

    parts.extend(_export_message(message, query) for message in conversation.messages)
    return "".join(parts)
