"""Aggregate the lines of one transcript file into a Conversation."""

from pathlib import Path

from chatlog_viewer.models import (
    ROLE_USER,
    Conversation,
    FileStats,
)
from chatlog_viewer.processor.parsers.claude_code import ClaudeCodeNormalizer, parse_entry
from chatlog_viewer.reader.sources import extract_project_name, read_log_lines, stat_log_file

NO_PREVIEW = "No preview available"

_normalizer = ClaudeCodeNormalizer()


def find_last_timestamp(lines: list[str]) -> str | None:
    """Return the raw timestamp of the last line that carries one."""
    for line in reversed(lines):
        entry = parse_entry(line)
        if entry is None:
            continue
        timestamp = entry.get("timestamp")
        if isinstance(timestamp, str) and timestamp:
            return timestamp
    return None


def build_conversation(
    lines: list[str],
    conversation_id: str,
    project_dir: str,
    stats: FileStats,
) -> Conversation:
    """Build a Conversation from the raw lines of its transcript.

    Args:
        lines: Raw lines of the transcript file
        conversation_id: Conversation ID (the file stem)
        project_dir: Encoded project directory name
        stats: File metadata for the transcript

    Returns:
        Conversation with messages, counts, preview and searchable text
    """
    messages = _normalizer.normalize_lines(lines)

    user_messages = [m for m in messages if m.role == ROLE_USER]
    other_messages = [m for m in messages if m.role != ROLE_USER]

    first_message = next((m.content for m in user_messages if m.content), "")

    searchable_text = " ".join(
        m.content for m in user_messages + other_messages
    ).lower()

    return Conversation(
        id=conversation_id,
        project_name=extract_project_name(project_dir),
        project_path_key=project_dir,
        messages=messages,
        message_count=sum(1 for line in lines if line.strip()),
        first_message_preview=first_message or NO_PREVIEW,
        searchable_text=searchable_text,
        created_at=stats.created_at,
        modified_at=stats.modified_at,
        last_message_timestamp=find_last_timestamp(lines),
        size=stats.size,
        user_message_count=len(user_messages),
    )


def load_conversation(path: Path) -> Conversation:
    """Read a transcript file from disk and build its Conversation.

    Raises:
        OSError: If the file cannot be read
    """
    stats = stat_log_file(path)
    lines = read_log_lines(path)
    return build_conversation(lines, path.stem, path.parent.name, stats)
