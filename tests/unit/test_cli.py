"""Tests for the command-line solver script."""

import importlib.util
import json
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "optimize.py"


@pytest.fixture
def cli():
    spec = importlib.util.spec_from_file_location("optimize_cli", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _write(tmp_path: Path, payload) -> str:
    path = tmp_path / "request.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


class TestCli:
    def test_solves_file(self, cli, tmp_path, capsys, sample_request):
        assert cli.main([_write(tmp_path, sample_request)]) == 0
        body = json.loads(capsys.readouterr().out)
        assert body["status"] == "ok"
        assert [a["s"] for a in body["allocation"]] == [50, 50]

    def test_mode_override(self, cli, tmp_path, capsys, sample_request):
        assert cli.main([_write(tmp_path, sample_request), "--mode", "max_prob_focus", "--indent", "0"]) == 0
        body = json.loads(capsys.readouterr().out)
        assert body["solver"] == "max_prob_focus"

    def test_rejected_request(self, cli, tmp_path, capsys, sample_request):
        sample_request["budget"] = -1
        assert cli.main([_write(tmp_path, sample_request)]) == 2
        body = json.loads(capsys.readouterr().out)
        assert body == {"status": "error", "notes": ["Budget must be a positive integer."]}

    def test_unreadable_json(self, cli, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")
        assert cli.main([str(path)]) == 2
        assert json.loads(capsys.readouterr().out)["notes"] == ["Invalid JSON payload."]

    def test_missing_file(self, cli, tmp_path, capsys):
        assert cli.main([str(tmp_path / "absent.json")]) == 2
