"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_VERBS: tuple[str, ...] = (
    "created",
    "built",
    "implemented",
    "added",
    "fixed",
    "updated",
    "installed",
    "configured",
    "deployed",
    "setup",
    "wrote",
    "designed",
    "developed",
    "optimized",
    "refactored",
    "debugged",
    "resolved",
    "completed",
)

DEFAULT_FILE_EXTENSIONS: tuple[str, ...] = (
    "js", "py", "html", "css", "json", "md", "txt", "yml", "yaml",
    "xml", "sql", "sh", "bat", "ejs", "ts", "tsx", "jsx",
)

DEFAULT_TIER2_FILE_EXTENSIONS: tuple[str, ...] = (
    "js", "ts", "jsx", "tsx", "json", "md", "py", "html", "css", "yml", "yaml",
)


@dataclass
class SummarizerConfig:
    """Tunable constants for the heuristic summarizer."""

    verbs: tuple[str, ...] = DEFAULT_VERBS
    tier2_verbs: tuple[str, ...] = ("created", "built", "implemented")
    # Phrase lengths are exclusive bounds on the cleaned text
    min_phrase_length: int = 10
    max_phrase_length: int = 100
    max_phrases: int = 5
    max_bullets: int = 3
    file_fallback_threshold: int = 3
    max_file_mentions: int = 2
    file_extensions: tuple[str, ...] = DEFAULT_FILE_EXTENSIONS
    tier2_file_extensions: tuple[str, ...] = DEFAULT_TIER2_FILE_EXTENSIONS
    tier2_max_files: int = 3
    tier2_max_accomplishment_bullets: int = 5
    tier2_max_bullets: int = 8


@dataclass
class Config:
    projects_root: Path = field(default_factory=lambda: Path.home() / ".claude" / "projects")
    index_path: Path = field(
        default_factory=lambda: Path.home() / ".chatlog-viewer" / "history-index.json"
    )
    log_dir: Path = field(default_factory=lambda: Path.home() / ".chatlog-viewer" / "logs")
    min_messages: int | None = None
    auto_analyze: bool = True
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def _parse_summarizer(data: dict) -> SummarizerConfig:
    defaults = SummarizerConfig()
    return SummarizerConfig(
        verbs=tuple(data.get("verbs", defaults.verbs)),
        tier2_verbs=tuple(data.get("tier2_verbs", defaults.tier2_verbs)),
        min_phrase_length=data.get("min_phrase_length", defaults.min_phrase_length),
        max_phrase_length=data.get("max_phrase_length", defaults.max_phrase_length),
        max_phrases=data.get("max_phrases", defaults.max_phrases),
        max_bullets=data.get("max_bullets", defaults.max_bullets),
        file_fallback_threshold=data.get(
            "file_fallback_threshold", defaults.file_fallback_threshold
        ),
        max_file_mentions=data.get("max_file_mentions", defaults.max_file_mentions),
        file_extensions=tuple(data.get("file_extensions", defaults.file_extensions)),
        tier2_file_extensions=tuple(
            data.get("tier2_file_extensions", defaults.tier2_file_extensions)
        ),
        tier2_max_files=data.get("tier2_max_files", defaults.tier2_max_files),
        tier2_max_accomplishment_bullets=data.get(
            "tier2_max_accomplishment_bullets", defaults.tier2_max_accomplishment_bullets
        ),
        tier2_max_bullets=data.get("tier2_max_bullets", defaults.tier2_max_bullets),
    )


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "chatlog-viewer" / "config.yaml",
            Path("/etc/chatlog-viewer/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    defaults = Config()

    projects_root = data.get("projects_root")
    index_path = data.get("index_path")
    log_dir = data.get("log_dir")

    min_messages = data.get("min_messages")
    if isinstance(min_messages, str):
        min_messages = int(expand_env_var(min_messages))

    return Config(
        projects_root=expand_path(projects_root) if projects_root else defaults.projects_root,
        index_path=expand_path(index_path) if index_path else defaults.index_path,
        log_dir=expand_path(log_dir) if log_dir else defaults.log_dir,
        min_messages=min_messages,
        auto_analyze=data.get("auto_analyze", True),
        summarizer=_parse_summarizer(data.get("summarizer") or {}),
    )
