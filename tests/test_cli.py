"""Tests for the linecalc CLI.

Tests cover:
1. eval: text and JSON output, exit code 1 on error results
2. eval: missing input file (exit code 2, INVALID_INPUT)
3. eval: invalid settings from the environment (exit code 2, INVALID_SETTINGS)
4. units: category listing and unknown category (exit code 2, INVALID_CATEGORY)
"""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from linecalc.cli import main


def _write(tmp_path: Path, *lines: str) -> str:
    path = tmp_path / "doc.calc"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LINECALC_DECIMAL_PLACES", raising=False)
    monkeypatch.delenv("LINECALC_LIVE_RESULTS", raising=False)


class TestCliEval:
    """Document evaluation."""

    def test_text_output(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "# trip", "distance = 3 mi", "distance to km =>", "5 + 3")

        exit_code = main(["eval", "--input", path])
        out = capsys.readouterr().out.splitlines()

        assert exit_code == 0
        assert out == ["3: distance to km => 4.828032 km", "4: 5 + 3 => 8"]

    def test_json_output(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "x = 20%", "100 + x =>")

        exit_code = main(["eval", "--input", path, "--format", "json"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert output["results"][0]["result"] == "120"
        assert output["statuses"] == {"1": "no_result", "2": "result"}
        assert output["live_metrics"]["attempted"] == 0

    def test_error_results_exit_1(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "10 / 0 =>")

        exit_code = main(["eval", "--input", path])

        assert exit_code == 1
        assert capsys.readouterr().out.strip() == "1: 10 / 0 => ⚠️ Division by zero"

    def test_no_live_flag(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _write(tmp_path, "5 + 3", "2 * 2 =>")

        exit_code = main(["eval", "--input", path, "--no-live"])

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == "2: 2 * 2 => 4"

    def test_reads_stdin(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO("0 °C to °F =>\n"))

        exit_code = main(["eval"])

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == "1: 0 °C to °F => 32 °F"

    def test_settings_from_env(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("LINECALC_DECIMAL_PLACES", "2")
        path = _write(tmp_path, "1 / 3 =>")

        assert main(["eval", "--input", path]) == 0
        assert capsys.readouterr().out.strip() == "1: 1 / 3 => 0.33"


class TestCliEvalFailures:
    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["eval", "--input", str(tmp_path / "missing.calc")])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 2
        assert output["error"]["code"] == "INVALID_INPUT"
        assert "File not found" in output["error"]["message"]

    def test_invalid_settings(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("LINECALC_DECIMAL_PLACES", "lots")
        path = _write(tmp_path, "1 =>")

        exit_code = main(["eval", "--input", path])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 2
        assert output["error"]["code"] == "INVALID_SETTINGS"

    def test_bad_format_is_usage_error(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "1 =>")
        assert main(["eval", "--input", path, "--format", "xml"]) == 2


class TestCliUnits:
    def test_lists_category(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["units", "--category", "mass"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert output["count"] == len(output["units"])
        assert {u["category"] for u in output["units"]} == {"mass"}
        assert "kg" in {u["symbol"] for u in output["units"]}

    def test_unknown_category(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["units", "--category", "flavour"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 2
        assert output["error"]["code"] == "INVALID_CATEGORY"


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 0
    assert "linecalc" in capsys.readouterr().out
