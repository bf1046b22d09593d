"""Tests for the Claude Code entry normalizer."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from chatlog_viewer.models import NormalizedMessage
from chatlog_viewer.processor.parsers import (
    ClaudeCodeNormalizer,
    language_for_extension,
    normalize_entry,
    normalize_line,
    parse_entry,
    parse_timestamp,
)


@pytest.fixture
def normalizer() -> ClaudeCodeNormalizer:
    """Create a fresh normalizer instance."""
    return ClaudeCodeNormalizer()


def assistant_entry(content: object, **extra: object) -> dict:
    entry = {
        "type": "assistant",
        "timestamp": "2026-01-26T00:38:38.771Z",
        "message": {"role": "assistant", "model": "claude-sonnet", "content": content},
    }
    entry.update(extra)
    return entry


def tool_use(name: str, tool_input: dict | None) -> dict:
    block = {"type": "tool_use", "id": "toolu_123", "name": name}
    if tool_input is not None:
        block["input"] = tool_input
    return block


@pytest.fixture
def sample_jsonl_file(tmp_path: Path) -> Path:
    """Create a sample Claude Code JSONL file."""
    file_path = tmp_path / "980dc406-0dbf-49b5-86fa-675e1e6e1998.jsonl"

    lines = [
        # Queue operation (dropped)
        {"type": "queue-operation", "operation": "dequeue", "timestamp": "2026-01-26T00:38:34.590Z"},
        {
            "type": "user",
            "cwd": "/home/user/project",
            "timestamp": "2026-01-26T00:38:34.754Z",
            "message": {"role": "user", "content": "Hello, please help me with my code."},
        },
        assistant_entry([{"type": "text", "text": "I'll help you with your code."}]),
        assistant_entry(
            [
                {"type": "text", "text": "Let me read the file."},
                tool_use("Bash", {"command": "ls -la"}),
            ]
        ),
        {
            "type": "tool_result",
            "timestamp": "2026-01-26T00:38:42.290Z",
            "content": "total 0",
        },
    ]

    with open(file_path, "w") as f:
        for line in lines:
            f.write(json.dumps(line) + "\n")

    return file_path


class TestParseEntry:
    """Tests for decoding raw lines."""

    def test_decodes_json_object(self) -> None:
        """Should decode a JSON object line."""
        assert parse_entry('{"type": "user"}') == {"type": "user"}

    @pytest.mark.parametrize("line", ["", "   ", "not valid json", "[1, 2]", "42", '"text"', "{"])
    def test_returns_none_for_unusable_lines(self, line: str) -> None:
        """Blank, malformed and non-object lines should be dropped."""
        assert parse_entry(line) is None

    @pytest.mark.parametrize(
        "line",
        ['{"n": ' + "1" * 5000 + "}", '{"a": ' + "[" * 100_000 + "]" * 100_000 + "}"],
        ids=["oversized-int", "deep-nesting"],
    )
    def test_returns_none_for_lines_json_rejects(self, line: str) -> None:
        """Lines the decoder refuses without a JSONDecodeError are dropped too."""
        assert parse_entry(line) is None


class TestParseTimestamp:
    """Tests for timestamp parsing."""

    def test_parses_zulu_timestamp(self) -> None:
        """Should parse ISO 8601 timestamps with a Z suffix."""
        result = parse_timestamp("2026-01-26T00:38:34.590Z")
        assert result == datetime(2026, 1, 26, 0, 38, 34, 590000, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 1706000000])
    def test_returns_none_for_invalid_values(self, value: object) -> None:
        """Should return None for missing or unparseable timestamps."""
        assert parse_timestamp(value) is None


class TestUserMessages:
    """Tests for user records."""

    def test_user_string_content(self) -> None:
        """User content should be taken verbatim."""
        entry = {
            "type": "user",
            "timestamp": "2026-01-26T00:38:34.754Z",
            "message": {"role": "user", "content": "Hello **there**"},
        }
        message = normalize_entry(entry, 0)

        assert message is not None
        assert message.role == "user"
        assert message.content == "Hello **there**"
        assert message.rendered_content == "<p>Hello <strong>there</strong></p>"
        assert message.timestamp is not None

    def test_user_record_requires_user_role(self) -> None:
        """A user record whose message role is not user is dropped."""
        entry = {"type": "user", "message": {"role": "assistant", "content": "hi"}}
        assert normalize_entry(entry, 0) is None

    def test_user_record_without_message_dropped(self) -> None:
        """A user record without an embedded message object is dropped."""
        assert normalize_entry({"type": "user", "content": "hi"}, 0) is None
        assert normalize_entry({"type": "user", "message": "hi"}, 0) is None

    def test_user_tool_result_blocks_serialized(self) -> None:
        """Array user content (tool results) should be rendered as text."""
        entry = {
            "type": "user",
            "message": {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "toolu_123", "content": "File contents here"}
                ],
            },
        }
        message = normalize_entry(entry, 3)

        assert message is not None
        assert message.content == "File contents here"
        assert message.sequence_index == 3

    def test_empty_user_content_has_no_rendering(self) -> None:
        """Rendered content is only computed for non-empty content."""
        entry = {"type": "user", "message": {"role": "user", "content": ""}}
        message = normalize_entry(entry, 0)

        assert message is not None
        assert message.content == ""
        assert message.rendered_content is None


class TestAssistantMessages:
    """Tests for assistant records and content blocks."""

    def test_string_content(self) -> None:
        """Plain string assistant content should be kept."""
        message = normalize_entry(assistant_entry("Sure thing."), 1)

        assert message is not None
        assert message.role == "assistant"
        assert message.content == "Sure thing."
        assert message.model == "claude-sonnet"

    def test_text_blocks_concatenated(self) -> None:
        """Text blocks should be concatenated in order."""
        message = normalize_entry(
            assistant_entry([{"type": "text", "text": "First."}, {"type": "text", "text": "Second."}]),
            0,
        )

        assert message is not None
        assert message.content == "First.\nSecond."

    def test_tool_use_rendered_with_json_input(self) -> None:
        """Tool calls should show the name and pretty-printed input."""
        message = normalize_entry(assistant_entry([tool_use("Bash", {"command": "ls -la"})]), 0)

        assert message is not None
        assert "**Tool Call: Bash**" in message.content
        assert '```json\n{\n  "command": "ls -la"\n}\n```' in message.content

    def test_tool_use_without_input(self) -> None:
        """Tool calls without input only show the label."""
        message = normalize_entry(assistant_entry([tool_use("TodoRead", None)]), 0)

        assert message is not None
        assert message.content == "**Tool Call: TodoRead**"

    def test_write_markdown_file_uses_delimited_block(self) -> None:
        """Markdown file writes render between rules, not in a fence."""
        message = normalize_entry(
            assistant_entry([tool_use("Write", {"file_path": "/repo/docs/notes.md", "content": "# Hi"})]),
            0,
        )

        assert message is not None
        assert "### notes.md" in message.content
        assert "---\n\n# Hi\n\n---" in message.content
        assert "```" not in message.content
        assert "/repo/docs" not in message.content

    def test_write_python_file_uses_fenced_block(self) -> None:
        """Other file writes render in a fenced block tagged by language."""
        message = normalize_entry(
            assistant_entry([tool_use("Write", {"file_path": "/repo/notes.py", "content": "# Hi"})]),
            0,
        )

        assert message is not None
        assert "### notes.py" in message.content
        assert "```python\n# Hi\n```" in message.content

    def test_write_unknown_extension_uses_text_hint(self) -> None:
        """Unknown extensions fall back to the text hint."""
        message = normalize_entry(
            assistant_entry([tool_use("Write", {"file_path": "/repo/Makefile.in", "content": "all:"})]),
            0,
        )

        assert message is not None
        assert "```text\nall:\n```" in message.content

    def test_write_without_content_falls_back_to_json(self) -> None:
        """A write without literal content is shown as plain tool input."""
        message = normalize_entry(
            assistant_entry([tool_use("Write", {"file_path": "/repo/app.py"})]),
            0,
        )

        assert message is not None
        assert "### app.py" not in message.content
        assert '"file_path": "/repo/app.py"' in message.content

    def test_read_file_shows_heading(self) -> None:
        """A read names the file under a heading."""
        message = normalize_entry(
            assistant_entry([tool_use("Read", {"file_path": "/repo/src/app.ts"})]),
            0,
        )

        assert message is not None
        assert "**Tool Call: Read**" in message.content
        assert "### app.ts" in message.content
        assert "file_path" not in message.content

    def test_tool_result_and_unknown_blocks_appended(self) -> None:
        """Tool results and unknown blocks are serialized and appended."""
        message = normalize_entry(
            assistant_entry(
                [
                    {"type": "text", "text": "Done."},
                    {"type": "tool_result", "content": [{"type": "text", "text": "ok"}]},
                    {"type": "thinking", "thinking": "hmm"},
                ]
            ),
            0,
        )

        assert message is not None
        assert message.content.startswith("Done.")
        assert '[{"type": "text", "text": "ok"}]' in message.content
        assert '{"type": "thinking", "thinking": "hmm"}' in message.content

    def test_empty_assistant_content_dropped(self) -> None:
        """Assistant records without any content are dropped."""
        assert normalize_entry(assistant_entry([]), 0) is None
        assert normalize_entry(assistant_entry("   "), 0) is None

    def test_rendered_content_is_html(self) -> None:
        """Rendered content should be Markdown rendered to HTML."""
        message = normalize_entry(
            assistant_entry([tool_use("Write", {"file_path": "/repo/notes.py", "content": "x = 1"})]),
            0,
        )

        assert message is not None
        assert message.rendered_content is not None
        assert "<h3>notes.py</h3>" in message.rendered_content
        assert "<code" in message.rendered_content


class TestToolResultRecords:
    """Tests for tool_result and system records."""

    def test_direct_content(self) -> None:
        """tool_result records use their direct content field."""
        message = normalize_entry({"type": "tool_result", "content": "total 0"}, 2)

        assert message is not None
        assert message.role == "tool_result"
        assert message.content == "total 0"
        assert message.rendered_content is not None
        assert "<code>" in message.rendered_content

    def test_system_message_content(self) -> None:
        """system records fall back to the embedded message content."""
        message = normalize_entry(
            {"type": "system", "message": {"content": {"level": "info", "text": "compacted"}}},
            0,
        )

        assert message is not None
        assert message.role == "tool_result"
        assert message.content == '{"level": "info", "text": "compacted"}'

    def test_empty_tool_result_dropped(self) -> None:
        """Records without content are dropped."""
        assert normalize_entry({"type": "system"}, 0) is None
        assert normalize_entry({"type": "tool_result", "content": ""}, 0) is None


class TestDroppedRecords:
    """Tests for records that yield no message."""

    @pytest.mark.parametrize(
        "entry",
        [
            {"type": "summary", "summary": "Refactor"},
            {"type": "queue-operation", "operation": "dequeue"},
            {"message": {"role": "user", "content": "no type"}},
            {},
        ],
    )
    def test_unknown_shapes_dropped(self, entry: dict) -> None:
        """Unrecognized record shapes should be dropped."""
        assert normalize_entry(entry, 0) is None

    def test_sidechain_records_dropped(self) -> None:
        """Sidechain records are not part of the conversation."""
        entry = assistant_entry("Sub-agent output", isSidechain=True)
        assert normalize_entry(entry, 0) is None

    def test_normalize_line_never_raises(self) -> None:
        """Odd field types are dropped rather than raising."""
        weird = json.dumps({"type": "assistant", "message": {"role": "assistant", "content": 12}})
        assert normalize_line("{{{{", 0) is None
        message = normalize_line(weird, 0)
        assert message is None or isinstance(message, NormalizedMessage)


class TestNormalizeLines:
    """Tests for whole-file normalization."""

    def test_normalizes_file(
        self, normalizer: ClaudeCodeNormalizer, sample_jsonl_file: Path
    ) -> None:
        """Should keep user, assistant and tool-result messages in file order."""
        lines = sample_jsonl_file.read_text().split("\n")
        messages = normalizer.normalize_lines(lines)

        assert [m.role for m in messages] == ["user", "assistant", "assistant", "tool_result"]

    def test_sequence_indices_contiguous(
        self, normalizer: ClaudeCodeNormalizer, sample_jsonl_file: Path
    ) -> None:
        """Dropped lines do not consume sequence indices."""
        lines = ["garbage"] + sample_jsonl_file.read_text().split("\n")
        messages = normalizer.normalize_lines(lines)

        assert [m.sequence_index for m in messages] == [0, 1, 2, 3]
        assert [m.anchor_id for m in messages] == ["msg-0", "msg-1", "msg-2", "msg-3"]

    def test_every_line_yields_at_most_one_message(self, normalizer: ClaudeCodeNormalizer) -> None:
        """Parsing is total: one message or nothing per line."""
        lines = [
            "not json",
            json.dumps({"type": "user", "message": {"role": "user", "content": "a"}}),
            "",
            json.dumps(assistant_entry("b")),
            json.dumps([1, 2, 3]),
        ]
        messages = normalizer.normalize_lines(lines)

        assert [m.content for m in messages] == ["a", "b"]


class TestLanguageForExtension:
    """Tests for extension to language mapping."""

    @pytest.mark.parametrize(
        ("extension", "language"),
        [
            ("py", "python"),
            ("ts", "typescript"),
            ("tsx", "typescript"),
            ("js", "javascript"),
            ("jsx", "javascript"),
            ("YML", "yaml"),
            ("sh", "bash"),
            ("rs", "text"),
            ("", "text"),
        ],
    )
    def test_maps_extensions(self, extension: str, language: str) -> None:
        """Known extensions map to hints; others default to text."""
        assert language_for_extension(extension) == language
