"""Request-level pipeline: scan, summarize, index, analyse and enrich.

Each call drives the pipeline end to end from the filesystem. A file or
project that cannot be read is logged and skipped without affecting its
siblings.
"""

from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from pathlib import Path

from chatlog_viewer.config import Config, SummarizerConfig
from chatlog_viewer.exporter import export_conversation
from chatlog_viewer.logging import get_logger
from chatlog_viewer.models import Conversation, EnhancedSummary, IndexEntry, NormalizedMessage
from chatlog_viewer.processor.builder import load_conversation
from chatlog_viewer.processor.index_store import AnalysisReport, IndexStore
from chatlog_viewer.processor.summarizer import generate_chat_summary
from chatlog_viewer.reader.sources import (
    discover_log_files,
    discover_projects,
    extract_project_name,
)
from chatlog_viewer.search.engine import HIGHLIGHT_TEMPLATE, highlight_messages

logger = get_logger("pipeline")


class ConversationNotFoundError(LookupError):
    """The requested conversation does not exist under the projects root."""


class IndexNotFoundError(LookupError):
    """No history index has been written yet."""


@dataclass
class ListingStats:
    total_conversations: int = 0
    total_messages: int = 0
    total_projects: int = 0


@dataclass
class Listing:
    """Conversations grouped by project, newest first."""

    projects: dict[str, list[Conversation]]
    sorted_projects: list[str]
    stats: ListingStats
    analysis: AnalysisReport | None = None

    def conversations(self) -> list[Conversation]:
        """All conversations in display order."""
        return [c for name in self.sorted_projects for c in self.projects[name]]


@dataclass
class ChatView:
    """A single conversation prepared for display."""

    conversation: Conversation
    messages: list[NormalizedMessage]
    search_term: str | None = None
    search_count: int = 0
    original_messages: list[NormalizedMessage] = field(default_factory=list)


def scan_project(project_dir: Path, settings: SummarizerConfig | None = None) -> list[Conversation]:
    """Load and summarize every transcript in one project directory.

    Returns:
        Conversations sorted by modification time, newest first
    """
    conversations: list[Conversation] = []
    for path in discover_log_files(project_dir):
        try:
            conversation = load_conversation(path)
            conversation.summary = generate_chat_summary(conversation.messages, settings)
        except Exception:
            logger.exception("Error reading transcript: path=%s", path)
            continue
        conversations.append(conversation)

    conversations.sort(key=lambda c: c.modified_at, reverse=True)
    return conversations


def scan_projects(
    projects_root: Path, settings: SummarizerConfig | None = None
) -> dict[str, list[Conversation]]:
    """Scan all project directories under the projects root.

    Directories that decode to the same project name are combined.

    Returns:
        Mapping of project name to its conversations, newest first
    """
    projects: dict[str, list[Conversation]] = {}
    for project_dir in discover_projects(projects_root):
        try:
            conversations = scan_project(project_dir, settings)
        except OSError:
            logger.exception("Error reading project: path=%s", project_dir)
            continue
        if not conversations:
            continue

        name = extract_project_name(project_dir.name)
        if name in projects:
            projects[name].extend(conversations)
            projects[name].sort(key=lambda c: c.modified_at, reverse=True)
        else:
            projects[name] = conversations

    return projects


def sort_projects(projects: dict[str, list[Conversation]]) -> list[str]:
    """Order project names by their most recently modified conversation."""
    return sorted(projects, key=lambda name: projects[name][0].modified_at, reverse=True)


def compute_stats(projects: dict[str, list[Conversation]]) -> ListingStats:
    """Aggregate totals across all projects."""
    return ListingStats(
        total_conversations=sum(len(chats) for chats in projects.values()),
        total_messages=sum(c.message_count for chats in projects.values() for c in chats),
        total_projects=len(projects),
    )


def enrich_conversations(conversations: list[Conversation], entries: list[IndexEntry]) -> None:
    """Attach Tier 2 summaries from the index to analysed conversations."""
    by_key = {entry.key: entry for entry in entries}
    for conversation in conversations:
        entry = by_key.get(conversation.key)
        if entry is None or not entry.paragraph_summary:
            continue
        conversation.enhanced_summary = EnhancedSummary(
            one_line=entry.one_line_summary or conversation.first_message_preview,
            paragraph=entry.paragraph_summary,
            bullets=list(entry.bullet_summary),
        )


def find_project_dir(projects_root: Path, project: str, chat_id: str) -> Path | None:
    """Find the project directory holding a conversation named in the index."""
    encoded = project.replace("/", "-")
    filename = f"{chat_id}.jsonl"
    for project_dir in discover_projects(projects_root):
        if extract_project_name(project_dir.name) != project and encoded not in project_dir.name:
            continue
        if (project_dir / filename).is_file():
            return project_dir
    return None


def find_conversation_messages(
    projects_root: Path, entry: IndexEntry
) -> list[NormalizedMessage] | None:
    """Re-read an indexed conversation's messages from its source file.

    Returns None if the source can no longer be found.
    """
    project_dir = find_project_dir(projects_root, entry.project, entry.id)
    if project_dir is None:
        return None
    return load_conversation(project_dir / f"{entry.id}.jsonl").messages


def build_listing(config: Config, store: IndexStore) -> Listing:
    """Scan all projects, refresh the index and return the listing.

    Args:
        config: Application configuration
        store: History index store

    Returns:
        Listing with conversations enriched from the index
    """
    projects = scan_projects(config.projects_root, config.summarizer)
    sorted_projects = sort_projects(projects)
    stats = compute_stats(projects)
    listing = Listing(projects=projects, sorted_projects=sorted_projects, stats=stats)

    conversations = listing.conversations()
    store.update(conversations)

    if config.auto_analyze:
        listing.analysis = store.run_analysis(
            partial(find_conversation_messages, config.projects_root)
        )

    enrich_conversations(conversations, store.load())

    logger.info(
        "Scanned projects: projects=%d conversations=%d messages=%d",
        stats.total_projects,
        stats.total_conversations,
        stats.total_messages,
    )
    return listing


def locate_conversation(projects_root: Path, project_dir_name: str, chat_id: str) -> Path:
    """Resolve a conversation file from its project directory name and ID.

    Raises:
        ConversationNotFoundError: If the file does not exist or the names
            would point outside the projects root
    """
    for part in (project_dir_name, chat_id):
        if not part or part in (".", "..") or "/" in part or "\\" in part:
            raise ConversationNotFoundError(f"Chat not found: {project_dir_name}/{chat_id}")

    path = projects_root / project_dir_name / f"{chat_id}.jsonl"
    if not path.is_file():
        raise ConversationNotFoundError(f"Chat not found: {project_dir_name}/{chat_id}")
    return path


def _load(projects_root: Path, project_dir_name: str, chat_id: str) -> Conversation:
    path = locate_conversation(projects_root, project_dir_name, chat_id)
    try:
        return load_conversation(path)
    except OSError as e:
        raise ConversationNotFoundError(f"Chat not found: {project_dir_name}/{chat_id}") from e


def load_chat_view(
    projects_root: Path,
    project_dir_name: str,
    chat_id: str,
    query: str | None = None,
    template: str = HIGHLIGHT_TEMPLATE,
    use_rendered: bool = True,
) -> ChatView:
    """Load one conversation with search matches highlighted.

    Raises:
        ConversationNotFoundError: If the conversation cannot be found
    """
    conversation = _load(projects_root, project_dir_name, chat_id)
    query = (query or "").strip() or None
    messages, count = highlight_messages(conversation.messages, query, template, use_rendered)
    return ChatView(
        conversation=conversation,
        messages=messages,
        search_term=query,
        search_count=count,
        original_messages=list(conversation.messages),
    )


def export_chat(
    projects_root: Path,
    project_dir_name: str,
    chat_id: str,
    query: str | None = None,
    exported_at: datetime | None = None,
) -> str:
    """Export one conversation as Markdown.

    Raises:
        ConversationNotFoundError: If the conversation cannot be found
    """
    conversation = _load(projects_root, project_dir_name, chat_id)
    return export_conversation(conversation, query, exported_at)


def dump_index(store: IndexStore) -> str:
    """Return the persisted index document verbatim.

    Raises:
        IndexNotFoundError: If the index has not been written yet
    """
    try:
        return store.path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise IndexNotFoundError(f"History index not found: {store.path}") from e
