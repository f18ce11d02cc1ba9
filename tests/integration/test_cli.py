"""Integration tests for ``python -m technodog.cli``."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from technodog.cli.run import _build_parser, _parse_payload, main


def _run_cli(monkeypatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["technodog-agent", *argv])
    with pytest.raises(SystemExit) as excinfo:
        main()
    return excinfo.value.code


class TestParser:
    def test_positional_action_optional(self) -> None:
        args = _build_parser().parse_args(["doggy-self-heal"])
        assert args.agent == "doggy-self-heal"
        assert args.action is None
        assert args.quiet is False

    def test_options(self) -> None:
        args = _build_parser().parse_args(
            ["playbook-agent", "ask_playbook", "-p", '{"question": "x"}', "--db", "a.db", "-o", "out.json", "-q"]
        )
        assert args.action == "ask_playbook"
        assert args.payload == '{"question": "x"}'
        assert args.db == "a.db"
        assert args.output == "out.json"
        assert args.quiet is True

    def test_parse_payload(self) -> None:
        assert _parse_payload(None) == {}
        assert _parse_payload('{"a": 1}') == {"a": 1}
        assert _parse_payload("[1]") is None
        assert _parse_payload("{oops") is None


class TestMain:
    def test_runs_action_and_writes_envelope(self, monkeypatch, tmp_path: Path) -> None:
        db = tmp_path / "cli.db"
        out = tmp_path / "result.json"

        code = _run_cli(monkeypatch, "doggy-self-heal", "analyze", "--db", str(db), "-o", str(out), "-q")

        assert code == 0
        envelope = json.loads(out.read_text(encoding="utf-8"))
        assert envelope["success"] is True
        assert envelope["result"]["performanceScore"] == 100
        assert envelope["run_id"]
        assert db.exists()

    def test_unknown_action_exits_1(self, monkeypatch, tmp_path: Path) -> None:
        out = tmp_path / "result.json"

        code = _run_cli(
            monkeypatch, "doggy-self-heal", "dance", "--db", str(tmp_path / "cli.db"), "-o", str(out), "-q"
        )

        assert code == 1
        envelope = json.loads(out.read_text(encoding="utf-8"))
        assert envelope["success"] is False
        assert envelope["error_type"] == "UnknownActionError"
        assert "analyze" in envelope["valid_actions"]

    def test_unknown_agent_exits_1(self, monkeypatch, tmp_path: Path) -> None:
        out = tmp_path / "result.json"
        code = _run_cli(monkeypatch, "ghost", "--db", str(tmp_path / "cli.db"), "-o", str(out), "-q")
        assert code == 1
        assert json.loads(out.read_text(encoding="utf-8"))["error"] == "Unknown agent: ghost"

    def test_invalid_payload_exits_before_running(self, monkeypatch, capsys, tmp_path: Path) -> None:
        db = tmp_path / "cli.db"

        code = _run_cli(monkeypatch, "doggy-self-heal", "--payload", "[1, 2]", "--db", str(db))

        assert code == 1
        assert "Error: --payload must be a JSON object" in capsys.readouterr().err
        assert not db.exists()
