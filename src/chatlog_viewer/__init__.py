"""Chat log viewer: parse, summarize, index and search JSONL transcripts."""

__version__ = "0.1.0"
