"""Tests for the command-line interface."""

import openpyxl
import pytest
from click.testing import CliRunner

from gradebook_sync import cli
from gradebook_sync.types import RunSummary


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("GRADEBOOK_SYNC_API_TOKEN", raising=False)
    path = tmp_path / "gradebook_sync.yaml"
    path.write_text(
        "lms:\n"
        "  domain: lms.example.edu\n"
        "  course_id: 7\n"
        "sheet:\n"
        f"  workbook: {tmp_path / 'grades.xlsx'}\n"
        "operational:\n"
        f"  log_path: {tmp_path / 'sync.log'}\n"
    )
    return path


class TestCli:
    def test_missing_token_is_reported(self, config_file):
        result = CliRunner().invoke(cli.main, ["--config", str(config_file), "pull-roster"])

        assert result.exit_code == 1
        assert "Missing configuration" in result.output
        assert "lms.api_token" in result.output

    def test_push_exits_non_zero_when_rows_fail(self, config_file, monkeypatch):
        calls = {}

        def fake_push(config, assignment, column, notifier, on_progress=None):
            calls["args"] = (assignment, column, notifier.assume_yes)
            return RunSummary(success=2, failed=1)

        monkeypatch.setattr(cli, "push_grades", fake_push)

        result = CliRunner().invoke(
            cli.main,
            ["--config", str(config_file), "push-grades", "--assignment", "Quiz 1", "--column", "D", "--yes"],
        )

        assert calls["args"] == ("Quiz 1", "D", True)
        assert result.exit_code == 1

    def test_push_succeeds(self, config_file, monkeypatch):
        monkeypatch.setattr(cli, "push_grades", lambda *args, **kwargs: RunSummary(success=3))

        result = CliRunner().invoke(
            cli.main,
            ["--config", str(config_file), "push-grades", "--assignment", "101", "--column", "D", "--yes"],
        )

        assert result.exit_code == 0

    @pytest.mark.parametrize("command", ["pull-roster", "pull-gradebook"])
    def test_missing_workbook_is_reported(self, config_file, monkeypatch, command):
        monkeypatch.setenv("GRADEBOOK_SYNC_API_TOKEN", "token")

        result = CliRunner().invoke(cli.main, ["--config", str(config_file), command])

        assert result.exit_code == 1
        assert "Workbook not found" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_missing_worksheet_is_reported(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRADEBOOK_SYNC_API_TOKEN", "token")
        workbook = tmp_path / "grades.xlsx"
        openpyxl.Workbook().save(workbook)
        path = tmp_path / "gradebook_sync.yaml"
        path.write_text(
            "lms:\n"
            "  domain: lms.example.edu\n"
            "  course_id: 7\n"
            "sheet:\n"
            f"  workbook: {workbook}\n"
            "  sheet: Grades\n"
            "operational:\n"
            f"  log_path: {tmp_path / 'sync.log'}\n"
        )

        result = CliRunner().invoke(cli.main, ["--config", str(path), "pull-roster"])

        assert result.exit_code == 1
        assert "Error: Worksheet 'Grades' not found" in result.output


class TestTqdmProgress:
    def test_unknown_total_replaces_previous_total(self):
        progress = cli.TqdmProgress("Fetching")
        try:
            progress(3, 3, "assignments")
            assert progress.bar.total == 3

            progress(1, None, "submissions")

            assert progress.bar.total is None
            assert progress.bar.n == 1
        finally:
            progress.close()
