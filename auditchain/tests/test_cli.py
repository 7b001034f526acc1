"""
Tests for the auditchain CLI (file store).
"""

import json
import os
import tempfile

import pytest
from typer.testing import CliRunner

from auditchain.cli.main import app
from auditchain.tests.helpers import read_lines, write_lines

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_env(monkeypatch):
    monkeypatch.setenv("AUDITCHAIN_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("AUDITCHAIN_STORE_TYPE", "file")
    monkeypatch.setenv("AUDITCHAIN_METRICS_ENABLED", "false")


def _append(path, *args):
    result = runner.invoke(app, ["log", "append", "--log", path, "--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_append_query_verify():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "audit.log")
        first = _append(path, "-t", "DOCUMENT_CREATE", "-a", "create", "-p", "user-1", "--resource-id", "doc-1")
        second = _append(path, "-t", "DOCUMENT_READ", "-a", "read", "-p", "user-1", "-m", '{"page": 2}')

        assert first["previousHash"] == "GENESIS"
        assert second["previousHash"] == first["hash"]
        assert second["metadata"] == {"page": 2}

        result = runner.invoke(app, ["log", "query", "--log", path, "-p", "user-1", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [e["id"] for e in data["items"]] == [second["id"], first["id"]]
        assert data["nextCursor"] is None

        result = runner.invoke(app, ["verify", "user-1", "--log", path, "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["results"][0] == {
            "result": "ok",
            "count": 2,
            "principal_id": "user-1",
        }


def test_verify_exit_code_on_tampering():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "audit.log")
        _append(path, "-t", "AUTH_LOGIN", "-a", "login", "-p", "user-1")
        _append(path, "-t", "AUTH_LOGOUT", "-a", "logout", "-p", "user-1")

        records = read_lines(path)
        records[0]["action"] = "forged"
        write_lines(path, records)

        result = runner.invoke(app, ["verify", "user-1", "--log", path, "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert data["results"][0]["result"] == "tampered"


def test_append_rejects_unknown_event_type():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "audit.log")

        result = runner.invoke(app, ["log", "append", "--log", path, "-t", "NOPE", "-a", "x", "--json"])

        assert result.exit_code == 2
        assert "unknown eventType" in json.loads(result.stdout)["error"]


def test_append_rejects_bad_metadata():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "audit.log")

        result = runner.invoke(
            app, ["log", "append", "--log", path, "-t", "AUTH_LOGIN", "-a", "login", "-m", "{oops", "--json"]
        )

        assert result.exit_code == 2


def test_report_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "audit.log")
        _append(path, "-t", "DOCUMENT_READ", "-a", "read", "-p", "user-1")
        _append(path, "-t", "DOCUMENT_READ", "-a", "read", "-p", "user-2")

        result = runner.invoke(app, ["report", "--log", path, "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total_events"] == 2
        assert data["unique_principals"] == 2


def test_event_types_lists_taxonomy():
    result = runner.invoke(app, ["event-types"])

    assert result.exit_code == 0
    assert "DOCUMENT_CREATE" in result.stdout
