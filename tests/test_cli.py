from __future__ import annotations

from pathlib import Path

import allure
import pytest
from click.testing import CliRunner
from fakes import FlakyTransformer, UppercaseTransformer

from fixmd import main as main_module
from fixmd.batch.controllers import FixCliController
from fixmd.main import fixmd

pytestmark = [
    allure.epic("Setup"),
    allure.feature("CLI"),
]


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("FIXMD_INITIAL_BACKOFF_SECONDS", "0.001")
    monkeypatch.setenv("FIXMD_MAX_BACKOFF_SECONDS", "0.002")
    monkeypatch.setenv("FIXMD_MAX_ATTEMPTS", "2")
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "a.md").write_text("alpha\n", encoding="utf-8")
    (docs / "b.md").write_text("beta\n", encoding="utf-8")
    (docs / "skip.txt").write_text("plain\n", encoding="utf-8")
    (docs / "sub").mkdir()
    (docs / "sub" / "c.md").write_text("gamma\n", encoding="utf-8")
    return tmp_path


def _use_transformer(monkeypatch: pytest.MonkeyPatch, transformer) -> None:
    monkeypatch.setattr(
        main_module,
        "FIX_CONTROLLER",
        FixCliController(transformer_factory=lambda _settings: transformer),
    )


def test_directory_run_backs_up_and_rewrites_top_level_files(
    workspace: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    transformer = UppercaseTransformer()
    _use_transformer(monkeypatch, transformer)

    result = CliRunner().invoke(fixmd, ["docs"])

    assert result.exit_code == 0, result.output
    assert "Found 2 markdown files to process" in result.output
    assert "=== Creating Backups ===" in result.output
    assert "[2/2] Backup created:" in result.output
    assert "Completed: 2/2 (100%) | Success: 2 | Failed: 0" in result.output
    assert "Processing complete!" in result.output
    assert (workspace / "docs" / "a.md").read_text(encoding="utf-8") == "ALPHA\n"
    assert (workspace / "backup" / "docs" / "a.md.bak").read_text(encoding="utf-8") == "alpha\n"
    assert (workspace / "docs" / "sub" / "c.md").read_text(encoding="utf-8") == "gamma\n"
    assert sorted(transformer.calls) == ["alpha\n", "beta\n"]


def test_recursive_flag_includes_nested_files(
    workspace: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _use_transformer(monkeypatch, UppercaseTransformer())

    result = CliRunner().invoke(fixmd, ["-r", "docs"])

    assert result.exit_code == 0, result.output
    assert (workspace / "docs" / "sub" / "c.md").read_text(encoding="utf-8") == "GAMMA\n"
    assert (workspace / "backup" / "docs" / "sub" / "c.md.bak").exists()


def test_per_file_failures_keep_exit_code_zero(
    workspace: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _use_transformer(
        monkeypatch,
        FlakyTransformer(failures=100, fail_on=lambda content: content == "beta\n"),
    )

    result = CliRunner().invoke(fixmd, ["docs"])

    assert result.exit_code == 0, result.output
    assert "Success: 1 | Failed: 1" in result.output
    assert "failed:" in result.output
    assert (workspace / "docs" / "b.md").read_text(encoding="utf-8") == "beta\n"
    assert (workspace / "docs" / "a.md").read_text(encoding="utf-8") == "ALPHA\n"


def test_missing_api_key_fails_before_any_file_io(
    workspace: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("GEMINI_API_KEY")
    transformer = UppercaseTransformer()
    _use_transformer(monkeypatch, transformer)

    result = CliRunner().invoke(fixmd, ["docs"])

    assert result.exit_code == 1
    assert "GEMINI_API_KEY" in result.output
    assert not (workspace / "backup").exists()
    assert transformer.calls == []


def test_backup_failure_exits_non_zero_without_transforming(
    workspace: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    (workspace / "backup").write_text("a file where the backup root should be", encoding="utf-8")
    transformer = UppercaseTransformer()
    _use_transformer(monkeypatch, transformer)

    result = CliRunner().invoke(fixmd, ["docs"])

    assert result.exit_code == 1
    assert transformer.calls == []
    assert (workspace / "docs" / "a.md").read_text(encoding="utf-8") == "alpha\n"
    assert (workspace / "docs" / "b.md").read_text(encoding="utf-8") == "beta\n"


def test_missing_path_exits_non_zero(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _use_transformer(monkeypatch, UppercaseTransformer())

    result = CliRunner().invoke(fixmd, ["nope"])

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_non_markdown_file_is_skipped(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    transformer = UppercaseTransformer()
    _use_transformer(monkeypatch, transformer)

    result = CliRunner().invoke(fixmd, ["docs/skip.txt"])

    assert result.exit_code == 0
    assert "Skipping non-markdown file" in result.output
    assert transformer.calls == []
    assert not (workspace / "backup").exists()


def test_directory_without_markdown_reports_nothing_to_do(
    workspace: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    (workspace / "empty").mkdir()
    _use_transformer(monkeypatch, UppercaseTransformer())

    result = CliRunner().invoke(fixmd, ["empty"])

    assert result.exit_code == 0
    assert "No markdown files found to process." in result.output


def test_single_file_outside_work_dir_uses_flattened_backup(
    workspace: Path,
    tmp_path_factory: pytest.TempPathFactory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    outside = tmp_path_factory.mktemp("outside") / "far.md"
    outside.write_text("far away\n", encoding="utf-8")
    _use_transformer(monkeypatch, UppercaseTransformer())

    result = CliRunner().invoke(fixmd, [str(outside)])

    assert result.exit_code == 0, result.output
    backups = list((workspace / "backup").iterdir())
    assert len(backups) == 1
    assert backups[0].name.endswith("_far.md.bak")
    assert backups[0].read_text(encoding="utf-8") == "far away\n"
    assert outside.read_text(encoding="utf-8") == "FAR AWAY\n"
