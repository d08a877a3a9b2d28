# backend/tests/test_cli.py

import json

import pytest
import requests

from backend.app import cli, utils
from backend.app.table import HEADERS, WorkbookTable


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


@pytest.fixture
def sent(monkeypatch):
    """Capture requests.post calls and answer like the API would."""
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        n = len(json["logs"])
        return FakeResponse({"status": "success", "message": "Data saved successfully", "count": n, "total": n})

    monkeypatch.setattr(requests, "post", fake_post)
    return calls


def test_read_csv_keeps_text(tmp_path):
    path = tmp_path / "logs.csv"
    path.write_text("uid,latitude,city\n007,12.50,Paris\n008,,\n")
    df = cli.read_logs(path)
    records = cli.sanitize_df_for_json(df)
    assert records[0] == {"uid": "007", "latitude": "12.50", "city": "Paris"}
    assert records[1]["latitude"] == ""


def test_read_json_lines_missing_keys_become_none(tmp_path):
    path = tmp_path / "logs.json"
    path.write_text('{"uid": "A1", "latitude": 12.5}\n{"uid": "B2"}\n')
    records = cli.sanitize_df_for_json(cli.read_logs(path))
    assert records[0] == {"uid": "A1", "latitude": 12.5}
    assert records[1] == {"uid": "B2", "latitude": None}
    json.dumps(records)


def test_read_unknown_suffix(tmp_path):
    with pytest.raises(ValueError):
        cli.read_logs(tmp_path / "logs.txt")


def test_push_in_batches(tmp_path, sent, capsys):
    path = tmp_path / "logs.csv"
    path.write_text("uid\nA\nB\nC\n")
    code = cli.run_cli(["push", str(path), "--url", "http://sync.test/", "--batch-size", "2"])
    assert code == 0
    assert [url for url, _ in sent] == ["http://sync.test/", "http://sync.test/"]
    assert [len(body["logs"]) for _, body in sent] == [2, 1]
    assert "saved 2/2 rows" in capsys.readouterr().out


def test_push_reports_api_error(tmp_path, monkeypatch, capsys):
    path = tmp_path / "logs.csv"
    path.write_text("uid\nA\n")
    monkeypatch.setattr(
        requests, "post",
        lambda url, json=None, timeout=None: FakeResponse({"status": "error", "message": "No data received"}),
    )
    assert cli.run_cli(["push", str(path)]) == 1
    assert "No data received" in capsys.readouterr().out


def test_push_connection_failure(monkeypatch):
    def refuse(url, json=None, timeout=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", refuse)
    ok, message = cli.try_call_api_json([{"uid": "A"}], "http://sync.test/")
    assert ok is False
    assert message.startswith("Request failed")


def test_init_and_reconcile_commands(tmp_path, monkeypatch, capsys):
    path = tmp_path / "field_logs.xlsx"
    monkeypatch.setattr(utils, "TABLE_PATH", str(path))

    assert cli.run_cli(["init-table"]) == 0
    assert cli.run_cli(["init-table"]) == 0
    assert cli.run_cli(["reconcile-columns"]) == 0
    out = capsys.readouterr().out
    assert "Headers written" in out
    assert "Skipping initialization" in out
    assert "already has all columns" in out

    table = WorkbookTable(path, utils.SHEET_NAME)
    assert [table.get_cell_value(1, c) for c in range(1, 10)] == HEADERS
    assert table.get_cell_value(2, 1) == ""


@pytest.mark.parametrize("size", ["0", "-3"])
def test_push_rejects_bad_batch_size(tmp_path, sent, capsys, size):
    path = tmp_path / "logs.csv"
    path.write_text("uid\nA\n")
    with pytest.raises(SystemExit) as exc:
        cli.run_cli(["push", str(path), "--batch-size", size])
    assert exc.value.code == 2
    assert "--batch-size must be at least 1" in capsys.readouterr().err
    assert sent == []
