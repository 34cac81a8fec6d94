from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config.export_config import ExportConfig
from config.settings import MissingProjectKeyError
from export.product_type_export import ProductTypeExport
from service import db, main, runner
from service.models import ExportRunRequest

from tests.conftest import FailingSource, FakeSource


TOKEN = "test-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def service_env(monkeypatch, tmp_path):
    monkeypatch.setenv("API_TOKEN", TOKEN)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'runs.db'}")
    db.init_db()


@pytest.fixture
def api(service_env, monkeypatch):
    started = []
    monkeypatch.setattr(main, "start_run_thread", started.append)
    with TestClient(main.app) as client:
        client.started = started
        yield client


class StubClient:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_health(api):
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_auth_is_required(api):
    assert api.post("/exports", json={"output_folder": "out"}).status_code == 401
    assert api.get("/exports/abc", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_start_export(api, tmp_path):
    r = api.post("/exports", json={"output_folder": str(tmp_path), "project_key": "shop"}, headers=AUTH)
    assert r.status_code == 202
    body = r.json()
    assert body["status"] == "queued"
    assert body["links"] == {"status": f"/exports/{body['run_id']}"}
    assert api.started == [body["run_id"]]

    r = api.get(f"/exports/{body['run_id']}", headers=AUTH)
    assert r.status_code == 200
    assert r.json()["status"] == "queued"
    assert r.json()["summary"] is None


def test_invalid_request(api):
    r = api.post("/exports", json={"output_folder": "out", "export_format": "pdf"}, headers=AUTH)
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "ValidationError"
    assert api.started == []


@pytest.mark.parametrize(
    "options",
    [{"encoding": "nope"}, {"delimiter": ";;"}, {"output_folder": "  "}],
)
def test_invalid_export_options_are_rejected_before_queueing(api, options):
    body = {"output_folder": "out", **options}
    r = api.post("/exports", json=body, headers=AUTH)
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "ValidationError"
    assert api.started == []


def test_request_carries_export_config(tmp_path):
    req = ExportRunRequest(output_folder=str(tmp_path), project_key="shop", encoding="win1250", delimiter=";")
    config = req.export_config()
    assert type(config) is ExportConfig
    assert (config.encoding, config.delimiter, config.export_format) == ("win1250", ";", "csv")


def test_unknown_run(api):
    assert api.get("/exports/does-not-exist", headers=AUTH).status_code == 404


def test_restart_fails_incomplete_runs(service_env, tmp_path):
    row = runner.create_run(ExportRunRequest(output_folder=str(tmp_path)))
    assert db.mark_incomplete_runs_failed(now_iso=runner.utc_now_iso()) == 1
    assert db.mark_incomplete_runs_failed(now_iso=runner.utc_now_iso()) == 0
    stored = db.get_run(row["run_id"])
    assert stored["status"] == "failed"
    assert stored["error"]["type"] == "ServiceRestart"
    assert stored["params"]["output_folder"] == str(tmp_path)


class TestRunJob:
    def _run(self, monkeypatch, tmp_path, source):
        stub = StubClient()

        def build(params):
            exporter = ProductTypeExport(config={"output_folder": params.output_folder}, source=source)
            return exporter, stub

        monkeypatch.setattr(runner, "_build_exporter", build)
        row = runner.create_run(ExportRunRequest(output_folder=str(tmp_path / "out")))
        runner._run_job(row["run_id"])
        return row["run_id"], stub

    def test_finished(self, service_env, monkeypatch, tmp_path, product_types):
        run_id, stub = self._run(monkeypatch, tmp_path, FakeSource(product_types))
        assert stub.closed

        with TestClient(main.app) as client:
            body = client.get(f"/exports/{run_id}", headers=AUTH).json()
        assert body["status"] == "finished"
        assert body["summary"]["exported"] == {"productTypes": 2, "attributes": 4}
        assert (tmp_path / "out" / "attributes.csv").exists()

    def test_failed_export(self, service_env, monkeypatch, tmp_path):
        run_id, _ = self._run(monkeypatch, tmp_path, FailingSource())
        stored = db.get_run(run_id)
        assert stored["status"] == "failed"
        assert stored["started_at"] is not None
        assert stored["summary"]["errors"] == [{"type": "RuntimeError", "message": "some-error"}]

    def test_exporter_cannot_be_built(self, service_env, monkeypatch, tmp_path):
        def build(params):
            raise MissingProjectKeyError("Project Key is needed")

        monkeypatch.setattr(runner, "_build_exporter", build)
        row = runner.create_run(ExportRunRequest(output_folder=str(tmp_path)))
        runner._run_job(row["run_id"])

        with TestClient(main.app) as client:
            body = client.get(f"/exports/{row['run_id']}", headers=AUTH).json()
        assert body["status"] == "failed"
        assert body["error"]["type"] == "MissingProjectKeyError"
        assert body["error"]["message"] == "Project Key is needed"
        assert body["error"]["trace_id"].startswith("err-")
