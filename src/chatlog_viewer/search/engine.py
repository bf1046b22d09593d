"""Literal-substring search, match ranking and highlighting."""

import dataclasses
import re
from dataclasses import dataclass, field
from html import escape, unescape

from chatlog_viewer.models import Conversation, NormalizedMessage, SearchMatch

HIGHLIGHT_TEMPLATE = '<a id="search_{n}" class="search-highlight">{match}</a>'

# Markdown file headings and their rendered form are never highlighted
_HEADING_LINE = re.compile(r"^\s*(?:### |<h3>)")
_HTML_TAG = re.compile(r"(<[^>]*>)")


def _query_pattern(query: str) -> re.Pattern[str]:
    return re.compile(re.escape(query), re.IGNORECASE)


def count_matches(text: str, query: str) -> int:
    """Count non-overlapping, case-insensitive literal occurrences of ``query``."""
    if not query or not text:
        return 0
    return len(_query_pattern(query).findall(text))


@dataclass
class SearchResult:
    """Conversations visible for one query, ranked by match count."""

    conversations: list[Conversation]
    matches: list[SearchMatch] = field(default_factory=list)
    query: str = ""

    @property
    def total_match_count(self) -> int:
        return sum(match.match_count for match in self.matches)

    def match_count(self, conversation_id: str) -> int:
        for match in self.matches:
            if match.conversation_id == conversation_id:
                return match.match_count
        return 0


def filter_by_message_count(
    conversations: list[Conversation], min_messages: int | None
) -> list[Conversation]:
    """Hide conversations whose message count is at or below ``min_messages``."""
    if min_messages is None:
        return list(conversations)
    return [c for c in conversations if c.message_count > min_messages]


def search(
    conversations: list[Conversation],
    query: str | None,
    min_messages: int | None = None,
) -> SearchResult:
    """Filter and rank conversations by how often they mention ``query``.

    An empty query leaves the (message-count filtered) list untouched.
    Otherwise conversations without a match are left out and the rest are
    ordered by descending match count; ties keep their original order.

    Args:
        conversations: Conversations in display order
        query: Search text, matched literally and case-insensitively
        min_messages: Optional minimum-message-count filter

    Returns:
        SearchResult with ranked conversations and per-conversation counts
    """
    candidates = filter_by_message_count(conversations, min_messages)
    query = (query or "").strip()
    if not query:
        return SearchResult(conversations=candidates)

    needle = query.lower()
    scored: list[tuple[Conversation, int]] = []
    for conversation in candidates:
        count = count_matches(conversation.searchable_text, needle)
        if count > 0:
            scored.append((conversation, count))

    # sorted() is stable, so equal counts keep encounter order
    scored = sorted(scored, key=lambda item: item[1], reverse=True)

    return SearchResult(
        conversations=[conversation for conversation, _ in scored],
        matches=[SearchMatch(conversation_id=c.id, match_count=n) for c, n in scored],
        query=query,
    )


class Highlighter:
    """Wraps query matches in numbered markers.

    One instance is shared across a whole conversation so marker numbers are
    unique and increase in document order.
    """

    def __init__(self, query: str, template: str = HIGHLIGHT_TEMPLATE) -> None:
        self._pattern = _query_pattern(query) if query else None
        self._template = template
        self.count = 0

    def _replace(self, match: re.Match[str]) -> str:
        self.count += 1
        return self._template.format(n=self.count, match=match.group(0))

    def _highlight_text_node(self, node: str) -> str:
        # Match against the decoded text so entities are never split and
        # "&" in a query finds "&amp;"
        text = unescape(node)
        if not self._pattern.search(text):
            return node
        pieces: list[str] = []
        last = 0
        for match in self._pattern.finditer(text):
            pieces.append(escape(text[last : match.start()], quote=False))
            self.count += 1
            marked = escape(match.group(0), quote=False)
            pieces.append(self._template.format(n=self.count, match=marked))
            last = match.end()
        pieces.append(escape(text[last:], quote=False))
        return "".join(pieces)

    def _highlight_line(self, line: str, html: bool) -> str:
        if _HEADING_LINE.match(line):
            return line
        if not html:
            return self._pattern.sub(self._replace, line)
        # Odd indices are tags, left as they are so attributes stay intact
        parts = _HTML_TAG.split(line)
        return "".join(
            part if i % 2 else self._highlight_text_node(part) for i, part in enumerate(parts)
        )

    def highlight(self, text: str | None, html: bool = True) -> str | None:
        """Return ``text`` with every match wrapped in a marker.

        Set ``html`` to False for plain text, where "<" is not a tag.
        """
        if self._pattern is None or not text:
            return text
        return "\n".join(self._highlight_line(line, html) for line in text.split("\n"))


def highlight_messages(
    messages: list[NormalizedMessage],
    query: str | None,
    template: str = HIGHLIGHT_TEMPLATE,
    use_rendered: bool = True,
) -> tuple[list[NormalizedMessage], int]:
    """Highlight ``query`` across a conversation's messages.

    The rendered content is highlighted when present (and ``use_rendered``
    is set); otherwise the plain content is, so no occurrence is counted
    twice.

    Returns:
        Tuple of (highlighted message copies, total number of highlights)
    """
    query = (query or "").strip()
    if not query:
        return list(messages), 0

    highlighter = Highlighter(query, template)
    highlighted: list[NormalizedMessage] = []
    for message in messages:
        if use_rendered and message.rendered_content:
            rendered = highlighter.highlight(message.rendered_content)
            highlighted.append(dataclasses.replace(message, rendered_content=rendered))
        else:
            content = highlighter.highlight(message.content, html=False)
            highlighted.append(dataclasses.replace(message, content=content))
    return highlighted, highlighter.count
