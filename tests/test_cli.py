from __future__ import annotations

import json
import textwrap
from pathlib import Path

import yaml
from typer.testing import CliRunner

from revise.cli import app


def _project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text("def main():\n    return 1\n", encoding="utf-8")
    config_path = tmp_path / "revise.yaml"
    config_path.write_text(
        textwrap.dedent(
            """
            workspace:
              root: project
            logging:
              level: WARNING
            """
        ).strip()
        + "\n",
        encoding="utf-8",
    )
    return config_path


def _response(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "response.txt"
    path.write_text("Here you go:\n```json\n" + json.dumps(payload) + "\n```\n", encoding="utf-8")
    return path


def test_init_writes_default_config(tmp_path: Path) -> None:
    config_path = tmp_path / "revise.yaml"
    runner = CliRunner()

    result = runner.invoke(app, ["init", "--config", str(config_path)], catch_exceptions=False)
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(config_path.read_text(encoding="utf-8"))["review"]["confirm_file_threshold"] == 8

    again = runner.invoke(app, ["init", "--config", str(config_path)], catch_exceptions=False)
    assert again.exit_code == 1
    assert "already exists" in again.output


def test_diff_reports_line_counts(tmp_path: Path) -> None:
    old = tmp_path / "old.txt"
    new = tmp_path / "new.txt"
    old.write_text("a\nb\nc\n", encoding="utf-8")
    new.write_text("a\nB\nc\nd\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["diff", str(old), str(new)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "+2 -1"


def test_apply_patch_writes_output(tmp_path: Path) -> None:
    target = tmp_path / "app.py"
    target.write_text("x = 1\ny = 2\n", encoding="utf-8")
    patch = tmp_path / "change.diff"
    patch.write_text("--- a/app.py\n+++ b/app.py\n@@ -1,2 +1,2 @@\n x = 1\n-y = 2\n+y = 3\n", encoding="utf-8")
    output = tmp_path / "out.py"

    result = CliRunner().invoke(
        app,
        ["apply-patch", str(target), str(patch), "--output", str(output)],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert output.read_text(encoding="utf-8") == "x = 1\ny = 3\n"
    assert target.read_text(encoding="utf-8") == "x = 1\ny = 2\n"


def test_apply_patch_reports_failure(tmp_path: Path) -> None:
    target = tmp_path / "app.py"
    target.write_text("x = 1\n", encoding="utf-8")
    patch = tmp_path / "change.diff"
    patch.write_text("@@ -1 +1 @@\n-z = 9\n+z = 10\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["apply-patch", str(target), str(patch)])

    assert result.exit_code == 1
    assert "Patch failed" in result.output


def test_review_without_apply_leaves_files(tmp_path: Path) -> None:
    config_path = _project(tmp_path)
    response = _response(
        tmp_path,
        {
            "assistant_message": "Bump the return value.",
            "edits": [
                {
                    "op": "patch",
                    "path": "src/app.py",
                    "content": "@@ -1,2 +1,2 @@\n def main():\n-    return 1\n+    return 2\n",
                }
            ],
        },
    )

    result = CliRunner().invoke(app, ["review", str(response), "--config", str(config_path)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "Bump the return value." in result.output
    assert "[write] src/app.py (+1 -1)" in result.output
    assert (tmp_path / "project" / "src" / "app.py").read_text(encoding="utf-8") == "def main():\n    return 1\n"


def test_review_apply_with_confirmation_bypass(tmp_path: Path) -> None:
    config_path = _project(tmp_path)
    response = _response(
        tmp_path,
        {
            "assistant_message": "Add docs.",
            "edits": [
                {"op": "write", "path": "./docs/guide.md", "content": "guide\n"},
                {"op": "run", "command": "make docs"},
            ],
        },
    )

    result = CliRunner().invoke(
        app,
        ["review", str(response), "--config", str(config_path), "--apply", "--yes"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "1 new file(s) will be created" in result.output
    assert "Change set applied." in result.output
    assert "Queued command: make docs" in result.output
    assert "./docs/guide.md -> docs/guide.md" in result.output
    assert (tmp_path / "project" / "docs" / "guide.md").read_text(encoding="utf-8") == "guide\n"


def test_review_declined_confirmation(tmp_path: Path) -> None:
    config_path = _project(tmp_path)
    response = _response(tmp_path, {"edits": [{"op": "delete", "path": "src/app.py"}]})

    result = CliRunner().invoke(
        app,
        ["review", str(response), "--config", str(config_path), "--apply"],
        input="n\n",
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "Change set not applied." in result.output
    assert (tmp_path / "project" / "src" / "app.py").exists()


def test_review_with_nothing_recoverable(tmp_path: Path) -> None:
    config_path = _project(tmp_path)
    response = tmp_path / "response.txt"
    response.write_text("I am not sure what you mean.", encoding="utf-8")

    result = CliRunner().invoke(app, ["review", str(response), "--config", str(config_path)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "No edits proposed." in result.output


def test_status_requires_config(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["status", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_status_reports_workspace(tmp_path: Path) -> None:
    config_path = _project(tmp_path)

    result = CliRunner().invoke(app, ["status", "--config", str(config_path)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "Files: 1" in result.output
    assert "Applied state: per file" in result.output
