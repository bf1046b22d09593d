"""Persistent JSON index of per-conversation metadata and summaries.

The index is a single pretty-printed JSON array of entries, sorted newest
first, rewritten wholesale whenever its content changes. Summaries are only
ever merged forward: a field missing from a fresh scan keeps its previously
persisted value.

Callers drive the index as ``load() -> merge() -> persist()``; ``update()``
and ``run_analysis()`` run that sequence under the store's lock so that
overlapping calls within one process are serialized. Separate processes
writing the same file are last-writer-wins.
"""

import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from chatlog_viewer.config import SummarizerConfig
from chatlog_viewer.logging import get_logger
from chatlog_viewer.models import Conversation, IndexEntry, NormalizedMessage
from chatlog_viewer.processor.summarizer import analyze_chat

logger = get_logger("index")

# Field names written by earlier index formats, newest name first
LEGACY_FIELD_NAMES: dict[str, tuple[str, ...]] = {
    "oneLineSummary": ("oneLineSummary", "oneLine"),
    "bulletSummary": ("bulletSummary", "enhancedBullets"),
    "paragraphSummary": ("paragraphSummary", "paragraph"),
}

FIRST_MESSAGE_PREVIEW_LENGTH = 50


def _read_field(data: dict[str, Any], name: str) -> Any:
    for candidate in LEGACY_FIELD_NAMES.get(name, (name,)):
        value = data.get(candidate)
        if value:
            return value
    return None


def entry_from_dict(data: dict[str, Any]) -> IndexEntry:
    """Read a persisted index record, accepting legacy field names.

    Raises:
        KeyError: If the record lacks an id or project
    """
    bullets = _read_field(data, "bulletSummary")
    one_line = _read_field(data, "oneLineSummary")
    paragraph = _read_field(data, "paragraphSummary")
    message_count = data.get("messageCount")
    timestamp = data.get("lastMessageTimestamp")
    last_analyzed = data.get("lastAnalyzed")

    return IndexEntry(
        id=str(data["id"]),
        project=str(data["project"]),
        date=str(data.get("date") or ""),
        first_sentence=str(data.get("firstSentence") or ""),
        message_count=message_count if isinstance(message_count, int) else 0,
        last_message_timestamp=timestamp if isinstance(timestamp, str) else None,
        one_line_summary=one_line if isinstance(one_line, str) else None,
        bullet_summary=[str(b) for b in bullets] if isinstance(bullets, list) else [],
        paragraph_summary=paragraph if isinstance(paragraph, str) else None,
        needs_analysis=bool(data.get("needsAnalysis", False)),
        last_analyzed=last_analyzed if isinstance(last_analyzed, str) else None,
    )


def first_sentence(text: str) -> str:
    """Return the first sentence of ``text``, or its first line if it has none."""
    end = next((i for i, ch in enumerate(text) if ch in ".!?"), None)
    if end is not None:
        return text[: end + 1].strip()
    return text.split("\n")[0].strip()


def _isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


@dataclass
class MergeResult:
    """Outcome of merging observed conversations into the index."""

    entries: list[IndexEntry]
    changed: bool
    changed_keys: list[str] = field(default_factory=list)

    @property
    def needs_analysis_count(self) -> int:
        return sum(1 for e in self.entries if e.needs_analysis)


@dataclass
class AnalyzedChat:
    """Timing record for one chat re-analysed in an analysis run."""

    project: str
    chat_id: str
    first_message: str
    duration_ms: int


@dataclass
class AnalysisReport:
    """Summary of one analysis run."""

    check_duration_ms: int = 0
    analysis_duration_ms: int = 0
    total_duration_ms: int = 0
    chats_updated: int = 0
    chats_analyzed: list[AnalyzedChat] = field(default_factory=list)
    chats_skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checkDuration": self.check_duration_ms,
            "analysisDuration": self.analysis_duration_ms,
            "totalDuration": self.total_duration_ms,
            "numberOfChatsUpdated": self.chats_updated,
            "chatsAnalyzed": [
                {
                    "project": chat.project,
                    "chatId": chat.chat_id,
                    "firstMessage": chat.first_message,
                    "duration": chat.duration_ms,
                }
                for chat in self.chats_analyzed
            ],
            "chatsSkipped": list(self.chats_skipped),
        }


# Given an index entry, return the conversation's messages, or None if its
# source can no longer be found.
MessageLocator = Callable[[IndexEntry], list[NormalizedMessage] | None]


def _needs_analysis(entry: IndexEntry) -> bool:
    return entry.needs_analysis or not entry.one_line_summary or not entry.paragraph_summary


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class IndexStore:
    """Manages the persisted history index document.

    Reads tolerate a missing or corrupt file by treating it as empty.
    """

    def __init__(self, index_path: Path, settings: SummarizerConfig | None = None) -> None:
        """Initialize the store.

        Args:
            index_path: Path to the JSON index file. Parent directories are
                        created on first write.
            settings: Summarizer constants used for Tier 2 analysis
        """
        self._index_path = index_path
        self._settings = settings
        self.lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._index_path

    def read_raw(self) -> list[dict[str, Any]]:
        """Read the persisted document as raw JSON records.

        Returns an empty list if the file is absent, unreadable or not a
        JSON array.
        """
        try:
            with open(self._index_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError):
            logger.warning("Index unreadable, starting fresh: path=%s", self._index_path)
            return []

        if not isinstance(data, list):
            logger.warning("Index is not a list, starting fresh: path=%s", self._index_path)
            return []
        return [record for record in data if isinstance(record, dict)]

    def load(self) -> list[IndexEntry]:
        """Load all entries, skipping records that lack an id or project."""
        entries: list[IndexEntry] = []
        for record in self.read_raw():
            try:
                entries.append(entry_from_dict(record))
            except KeyError:
                logger.debug("Skipping index record without key: record=%s", record)
        return entries

    def persist(self, entries: list[IndexEntry]) -> None:
        """Overwrite the index document with ``entries``."""
        self._index_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False)
        tmp_path = self._index_path.with_suffix(self._index_path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self._index_path)
        logger.info("Wrote history index: path=%s entries=%d", self._index_path, len(entries))

    def merge(
        self,
        conversations: list[Conversation],
        existing: list[dict[str, Any]],
    ) -> MergeResult:
        """Merge freshly scanned conversations with persisted records.

        Args:
            conversations: Conversations observed in this scan, each with a
                           Tier 1 summary attached
            existing: Raw persisted records (as returned by read_raw())

        Returns:
            MergeResult with the new document and whether it differs from
            the persisted one
        """
        existing_by_key: dict[str, tuple[IndexEntry, dict[str, Any]]] = {}
        for record in existing:
            try:
                entry = entry_from_dict(record)
            except KeyError:
                continue
            existing_by_key[entry.key] = (entry, record)

        # Project names can collide, so one key may be scanned twice; the newest file wins
        newest: dict[str, Conversation] = {}
        for conversation in conversations:
            current = newest.get(conversation.key)
            if current is None or conversation.modified_at > current.modified_at:
                newest[conversation.key] = conversation

        merged: list[IndexEntry] = []
        changed_keys: list[str] = []

        for conversation in newest.values():
            previous, raw = existing_by_key.get(conversation.key, (None, None))
            tier1_bullets = conversation.summary.bullets if conversation.summary else []

            entry = IndexEntry(
                id=conversation.id,
                project=conversation.project_name,
                date=_isoformat(conversation.modified_at),
                first_sentence=first_sentence(conversation.first_message_preview),
                message_count=conversation.message_count,
                last_message_timestamp=conversation.last_message_timestamp,
            )

            if previous is None:
                entry.bullet_summary = list(tier1_bullets)
                entry.needs_analysis = True
            else:
                entry.one_line_summary = previous.one_line_summary
                entry.bullet_summary = previous.bullet_summary or list(tier1_bullets)
                entry.paragraph_summary = previous.paragraph_summary
                entry.last_analyzed = previous.last_analyzed
                entry.needs_analysis = (
                    previous.message_count != conversation.message_count
                    or previous.last_message_timestamp != conversation.last_message_timestamp
                    or not previous.one_line_summary
                    or not previous.paragraph_summary
                )

            if raw is None or entry.to_dict() != raw:
                changed_keys.append(entry.key)
            merged.append(entry)

        merged.sort(key=lambda e: e.date, reverse=True)

        # Catches removals and reorderings as well as per-entry changes
        changed = bool(changed_keys) or [e.to_dict() for e in merged] != existing
        return MergeResult(entries=merged, changed=changed, changed_keys=changed_keys)

    def update(self, conversations: list[Conversation]) -> MergeResult:
        """Load, merge and persist (only when the document changed)."""
        with self.lock:
            result = self.merge(conversations, self.read_raw())
            if result.changed:
                self.persist(result.entries)
            else:
                logger.debug("History index unchanged: entries=%d", len(result.entries))
            return result

    def run_analysis(self, locate: MessageLocator) -> AnalysisReport:
        """Run Tier 2 analysis for every entry that needs it.

        Entries whose source conversation cannot be located are skipped and
        left in place. The index is rewritten if at least one entry was
        updated.

        Args:
            locate: Callable returning an entry's messages, or None

        Returns:
            AnalysisReport with timings and updated chats
        """
        start = time.monotonic()
        report = AnalysisReport()

        with self.lock:
            entries = self.load()
            pending = [entry for entry in entries if _needs_analysis(entry)]
            report.check_duration_ms = _elapsed_ms(start)

            if not pending:
                report.total_duration_ms = _elapsed_ms(start)
                return report

            analysis_start = time.monotonic()
            for entry in pending:
                chat_start = time.monotonic()
                try:
                    messages = locate(entry)
                except OSError:
                    logger.exception("Error reading chat: project=%s id=%s", entry.project, entry.id)
                    messages = None

                if messages is None:
                    logger.info("Skipping chat without source: project=%s id=%s", entry.project, entry.id)
                    report.chats_skipped.append(entry.key)
                    continue

                opening = entry.first_sentence or (messages[0].content if messages else None)
                summary = analyze_chat(messages, opening, self._settings)

                entry.one_line_summary = summary.one_line
                entry.paragraph_summary = summary.paragraph
                entry.bullet_summary = summary.bullets
                entry.last_analyzed = _isoformat(datetime.now(timezone.utc))
                entry.needs_analysis = False

                report.chats_updated += 1
                report.chats_analyzed.append(
                    AnalyzedChat(
                        project=entry.project,
                        chat_id=entry.id,
                        first_message=(entry.first_sentence or "No preview available")[
                            :FIRST_MESSAGE_PREVIEW_LENGTH
                        ]
                        + "...",
                        duration_ms=_elapsed_ms(chat_start),
                    )
                )

            if report.chats_updated:
                self.persist(entries)

            report.analysis_duration_ms = _elapsed_ms(analysis_start)

        report.total_duration_ms = _elapsed_ms(start)
        logger.info(
            "Analysis complete: updated=%d skipped=%d duration_ms=%d",
            report.chats_updated,
            len(report.chats_skipped),
            report.total_duration_ms,
        )
        return report
