"""Tests for temporal_intel/cli.py"""

import json
import sys

import pytest

from temporal_intel import __version__
from temporal_intel.cli import main
from temporal_intel.logging_config import setup_logging


def run_cli(monkeypatch, capsys, *argv):
    monkeypatch.setattr(sys, "argv", ["til", *argv])
    monkeypatch.setattr("temporal_intel.cli.setup_logging", lambda: setup_logging(level="WARNING"))
    main()
    return capsys.readouterr().out


class TestCli:
    def test_version(self, monkeypatch, capsys):
        assert __version__ in run_cli(monkeypatch, capsys, "--version")

    def test_extract_json(self, monkeypatch, capsys, now):
        out = run_cli(
            monkeypatch, capsys,
            "extract", "I'll send the report by Friday.", "--now", now.isoformat(), "--json",
        )

        data = json.loads(out)
        assert [c["what"] for c in data] == ["send the report"]
        assert data[0]["validation"]["is_actionable"] is True

    def test_extract_nothing_exits_nonzero(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, capsys, "extract", "The weather is lovely.")
        assert exc.value.code == 1

    def test_classify(self, monkeypatch, capsys, sample_email):
        out = run_cli(monkeypatch, capsys, "classify", sample_email)
        assert json.loads(out)["source_type"] == "email"

    def test_evaluate_uses_default_store(self, monkeypatch, capsys, store, make_commitment, now):
        from temporal_intel.service import TemporalEngine

        TemporalEngine().save_commitment(make_commitment(what="pay the rent", parsed_date=now))

        out = run_cli(monkeypatch, capsys, "evaluate", "test_user_123", "--now", now.isoformat(), "--json")

        assert [d["action"] for d in json.loads(out)] == ["REALTIME_INTERRUPT"]

    def test_digest_not_due(self, monkeypatch, capsys, now):
        out = run_cli(monkeypatch, capsys, "digest", "test_user_123", "--now", now.replace(hour=3).isoformat())
        assert out.strip() == "Morning digest is not due yet."

    def test_digest_with_utc_now(self, monkeypatch, capsys, store, make_commitment, now):
        from temporal_intel.service import TemporalEngine

        TemporalEngine().save_commitment(make_commitment(what="pay the rent", parsed_date=now))

        out = run_cli(
            monkeypatch, capsys, "digest", "test_user_123", "--now", "2026-02-04T20:00:00+00:00", "--json"
        )

        assert [i["commitment"]["what"] for i in json.loads(out)["items"]] == ["pay the rent"]

    def test_learn_stats(self, monkeypatch, capsys, now):
        out = run_cli(monkeypatch, capsys, "learn", "--stats", "--now", now.isoformat())

        stats = json.loads(out)
        assert stats["total_outcomes"] == 0
        assert stats["last_learning_run"] is None
