"""Tests for the command line entry points."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from chatlog_viewer.processor.__main__ import cli as processor_cli
from chatlog_viewer.search.__main__ import cli as search_cli


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config pointing at a temp projects root with one chat."""
    project_dir = tmp_path / "projects" / "-home-user-webapp"
    project_dir.mkdir(parents=True)
    lines = [
        {
            "type": "user",
            "timestamp": "2026-01-26T10:00:00.000Z",
            "message": {"role": "user", "content": "Fix the auth bug"},
        },
        {
            "type": "assistant",
            "timestamp": "2026-01-26T10:00:05.000Z",
            "message": {
                "role": "assistant",
                "content": [{"type": "text", "text": "The auth bug is fixed in app.py"}],
            },
        },
    ]
    (project_dir / "chat-1.jsonl").write_text("\n".join(json.dumps(line) for line in lines) + "\n")

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"projects_root: {tmp_path / 'projects'}\n"
        f"index_path: {tmp_path / 'state' / 'history-index.json'}\n"
        f"log_dir: {tmp_path / 'logs'}\n"
    )
    return config_path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestProcessorCli:
    """Tests for the chatlog-viewer command."""

    def test_scan(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(processor_cli, ["--config", str(config_file), "scan"])

        assert result.exit_code == 0
        assert "Projects: 1 | Conversations: 1 | Messages: 2" in result.output
        assert "Updated 1 chats" in result.output

    def test_rescan_is_up_to_date(self, runner: CliRunner, config_file: Path) -> None:
        runner.invoke(processor_cli, ["--config", str(config_file), "scan"])

        result = runner.invoke(processor_cli, ["--config", str(config_file), "scan"])

        assert result.exit_code == 0
        assert "All chats are up to date" in result.output

    def test_scan_then_analyze(self, runner: CliRunner, config_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(processor_cli, ["--config", str(config_file), "scan", "--no-analyze"])
        assert result.exit_code == 0
        assert "Updated" not in result.output
        records = json.loads((tmp_path / "state" / "history-index.json").read_text())
        assert records[0]["needsAnalysis"] is True

        result = runner.invoke(processor_cli, ["--config", str(config_file), "analyze"])

        assert result.exit_code == 0
        assert "Updated 1 chats" in result.output
        records = json.loads((tmp_path / "state" / "history-index.json").read_text())
        assert records[0]["needsAnalysis"] is False

    def test_index_missing(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(processor_cli, ["--config", str(config_file), "index"])

        assert result.exit_code == 1
        assert "History index not found" in result.output

    def test_index_dump(self, runner: CliRunner, config_file: Path) -> None:
        runner.invoke(processor_cli, ["--config", str(config_file), "scan"])

        result = runner.invoke(processor_cli, ["--config", str(config_file), "index"])

        assert result.exit_code == 0
        assert json.loads(result.output)[0]["id"] == "chat-1"


class TestSearchCli:
    """Tests for the chatlog-search command."""

    def test_list(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(search_cli, ["--config", str(config_file), "list"])

        assert result.exit_code == 0
        assert "1 conversations, 2 messages, 1 projects" in result.output
        assert "== webapp (1)" in result.output
        assert "ID: -home-user-webapp chat-1" in result.output

    def test_list_min_messages(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(search_cli, ["--config", str(config_file), "list", "--min-messages", "2"])

        assert result.exit_code == 0
        assert "== webapp" not in result.output

    def test_search(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(search_cli, ["--config", str(config_file), "search", "auth"])

        assert result.exit_code == 0
        assert "Found 2 matches in 1 conversations (showing 1):" in result.output
        assert "Matches: 2" in result.output

    def test_search_no_results(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(search_cli, ["--config", str(config_file), "search", "kubernetes"])

        assert result.exit_code == 0
        assert "Found 0 matches in 0 conversations" in result.output

    def test_show(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(
            search_cli,
            ["--config", str(config_file), "show", "-s", "auth", "--", "-home-user-webapp", "chat-1"],
        )

        assert result.exit_code == 0
        assert 'Search "auth": 2 matches' in result.output
        assert "[msg-0] user" in result.output
        assert "[2]auth" in result.output

    def test_show_missing(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(
            search_cli, ["--config", str(config_file), "show", "--", "-home-user-webapp", "nope"]
        )

        assert result.exit_code == 1
        assert "Chat not found" in result.output

    def test_export_to_file(self, runner: CliRunner, config_file: Path, tmp_path: Path) -> None:
        output = tmp_path / "out.md"

        result = runner.invoke(
            search_cli,
            [
                "--config",
                str(config_file),
                "export",
                "-s",
                "auth",
                "-o",
                str(output),
                "--",
                "-home-user-webapp",
                "chat-1",
            ],
        )

        assert result.exit_code == 0
        assert f"Exported to {output}" in result.output
        text = output.read_text()
        assert text.startswith("# Chat History")
        assert "Fix the **auth** bug" in text

    def test_export_to_stdout(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(
            search_cli,
            ["--config", str(config_file), "export", "-o", "-", "--", "-home-user-webapp", "chat-1"],
        )

        assert result.exit_code == 0
        assert result.output.startswith("# Chat History")
