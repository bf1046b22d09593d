"""Canonical data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chatlog_viewer.processor.parsers.blocks import ContentBlock

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_TOOL_RESULT = "tool_result"


@dataclass
class NormalizedMessage:
    """A single log record normalized into a displayable message."""

    role: str  # user, assistant, tool_result
    content: str
    sequence_index: int  # Position in the conversation, used as the msg-<n> anchor
    rendered_content: str | None = None
    timestamp: datetime | None = None
    model: str | None = None
    blocks: list["ContentBlock"] = field(default_factory=list)

    @property
    def anchor_id(self) -> str:
        return f"msg-{self.sequence_index}"


@dataclass
class FileStats:
    """Filesystem metadata for a log file."""

    modified_at: datetime
    created_at: datetime
    size: int


@dataclass
class AccomplishmentAnchor:
    """A summary phrase linked back to the message it came from."""

    text: str
    message_index: int

    @property
    def anchor_id(self) -> str:
        return f"msg-{self.message_index}"


@dataclass
class ChatSummary:
    """Tier 1 summary: bullet lines plus the anchors they link to."""

    bullets: list[str]
    anchors: list[AccomplishmentAnchor] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(f"• {bullet}" for bullet in self.bullets)

    def links(self, chat_url: str) -> list[tuple[str, str | None]]:
        """Pair each bullet with its deep link, or None for unanchored bullets."""
        if not self.anchors:
            return [(bullet, None) for bullet in self.bullets]
        return [(anchor.text, f"{chat_url}#{anchor.anchor_id}") for anchor in self.anchors]


@dataclass
class EnhancedSummary:
    """Tier 2 summary produced by the heavier analysis pass."""

    one_line: str
    paragraph: str
    bullets: list[str]


@dataclass
class Conversation:
    """One chat transcript (one source log file) and its derived metadata."""

    id: str
    project_name: str
    project_path_key: str  # Encoded project directory name under the projects root
    messages: list[NormalizedMessage]
    message_count: int  # Raw non-blank line count, not len(messages)
    first_message_preview: str
    searchable_text: str
    created_at: datetime
    modified_at: datetime
    last_message_timestamp: str | None = None
    size: int = 0
    user_message_count: int = 0
    summary: ChatSummary | None = None
    enhanced_summary: EnhancedSummary | None = None

    @property
    def key(self) -> str:
        """Unique index key for this conversation."""
        return f"{self.project_name}:{self.id}"

    @property
    def filename(self) -> str:
        return f"{self.id}.jsonl"


@dataclass
class IndexEntry:
    """Persisted per-conversation metadata and summaries."""

    id: str
    project: str
    date: str  # ISO 8601 modification time
    first_sentence: str
    message_count: int
    last_message_timestamp: str | None = None
    one_line_summary: str | None = None
    bullet_summary: list[str] = field(default_factory=list)
    paragraph_summary: str | None = None
    needs_analysis: bool = False
    last_analyzed: str | None = None

    @property
    def key(self) -> str:
        return f"{self.project}:{self.id}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON record, omitting absent optional fields."""
        data: dict[str, Any] = {
            "id": self.id,
            "project": self.project,
            "date": self.date,
            "firstSentence": self.first_sentence,
        }
        if self.one_line_summary is not None:
            data["oneLineSummary"] = self.one_line_summary
        data["bulletSummary"] = list(self.bullet_summary)
        if self.paragraph_summary is not None:
            data["paragraphSummary"] = self.paragraph_summary
        data["messageCount"] = self.message_count
        data["lastMessageTimestamp"] = self.last_message_timestamp
        data["needsAnalysis"] = self.needs_analysis
        if self.last_analyzed is not None:
            data["lastAnalyzed"] = self.last_analyzed
        return data


@dataclass
class SearchMatch:
    """Match count for one conversation within a single query."""

    conversation_id: str
    match_count: int
