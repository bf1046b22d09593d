"""Log file discovery for chat transcript projects.

Transcripts are stored as JSONL files at:
    <projects_root>/<encoded-project-path>/<conversation-id>.jsonl

The encoded project path is the project's absolute directory with every
slash replaced by a dash (e.g. ``-home-user-myproject``).
"""

from datetime import datetime, timezone
from pathlib import Path

from chatlog_viewer.logging import get_logger
from chatlog_viewer.models import FileStats

logger = get_logger("sources")

UNKNOWN_PROJECT = "Unknown Project"


def extract_project_name(encoded_path: str) -> str:
    """Extract a display name from an encoded project directory name.

    Drops the leading dash, turns the remaining dashes back into slashes and
    keeps the last path segment. Names that themselves contain dashes are
    truncated to their last dash-separated part.

    Args:
        encoded_path: Directory name such as "-home-user-myproject"

    Returns:
        Project name (e.g. "myproject"), or "Unknown Project" when empty
    """
    decoded = encoded_path[1:].replace("-", "/")
    return decoded.split("/")[-1] or UNKNOWN_PROJECT


def discover_projects(projects_root: Path) -> list[Path]:
    """List project directories under the projects root.

    Returns an empty list if the root does not exist.
    """
    if not projects_root.is_dir():
        logger.debug("Projects root missing: root=%s", projects_root)
        return []

    return sorted(path for path in projects_root.iterdir() if path.is_dir())


def discover_log_files(project_dir: Path) -> list[Path]:
    """List .jsonl transcript files directly inside a project directory."""
    return sorted(
        path for path in project_dir.iterdir() if path.suffix == ".jsonl" and path.is_file()
    )


def stat_log_file(path: Path) -> FileStats:
    """Read modification time, creation time and size for a log file.

    Creation time uses st_birthtime where the platform provides it and falls
    back to st_ctime otherwise.
    """
    stat = path.stat()
    created = getattr(stat, "st_birthtime", stat.st_ctime)
    return FileStats(
        modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        created_at=datetime.fromtimestamp(created, tz=timezone.utc),
        size=stat.st_size,
    )


def read_log_lines(path: Path) -> list[str]:
    """Read a log file and return its lines without trailing newlines.

    Undecodable bytes are replaced rather than aborting the read.
    """
    with open(path, encoding="utf-8", errors="replace") as f:
        return f.read().split("\n")
