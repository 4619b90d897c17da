import io

from fastapi.testclient import TestClient

from itr.api import create_app
from itr.db import EventLog
from itr.settings import Settings


def _app(tmp_path, registry, manifest="image: nginx:1.21\n", **kw):
    path = tmp_path / "deployment.yaml"
    if manifest is not None:
        path.write_text(manifest, encoding="utf-8")
    cfg = Settings(manifest_path=str(path), db_path=str(tmp_path / "itr.db"), **kw)
    return create_app(cfg, registry=registry, event_log=EventLog(cfg.db_path, stream=io.StringIO())), path


def test_health(tmp_path, hub_tags):
    app, _ = _app(tmp_path, hub_tags(["1.22"]))
    with TestClient(app) as client:
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "healthy"}


def test_trigger_run_and_audit(tmp_path, hub_tags):
    app, path = _app(tmp_path, hub_tags(["1.21", "1.22", "latest"]))
    with TestClient(app) as client:
        r = client.post("/runs")
        assert r.status_code == 200
        body = r.json()
        assert body["selected_version"] == "1.22"
        assert body["source"] == "registry"
        assert body["changed"] is True
        assert body["patch"] == {"status": "updated", "old_version": "1.21", "new_version": "1.22"}
        assert path.read_text(encoding="utf-8") == "image: nginx:1.22\n"

        r = client.post("/runs")
        assert r.json()["patch"]["status"] == "unchanged"

        runs = client.get("/runs", params={"limit": 10}).json()
        assert [run["patch"]["status"] for run in runs] == ["unchanged", "updated"]

        last = client.get("/runs/last").json()
        assert last["patch"]["status"] == "unchanged"

        status = client.get("/status").json()
        assert status["running"] is False
        assert status["repository"] == "nginx"
        assert status["last_outcome"]["selected_version"] == "1.22"
        assert status["last_error"] is None

        events = client.get("/events", params={"limit": 5}).json()
        assert 0 < len(events) <= 5
        assert {"id", "ts", "level", "message"} <= set(events[0])


def test_overlapping_trigger_is_rejected(tmp_path, hub_tags):
    app, path = _app(tmp_path, hub_tags(["1.22"]))
    runtime = app.state.runtime
    with TestClient(app) as client:
        runtime._run_lock.acquire()
        try:
            r = client.post("/runs")
        finally:
            runtime._run_lock.release()
        assert r.status_code == 409
        assert path.read_text(encoding="utf-8") == "image: nginx:1.21\n"


def test_missing_manifest_returns_500(tmp_path, hub_tags):
    app, _ = _app(tmp_path, hub_tags(["1.22"]), manifest=None)
    with TestClient(app) as client:
        r = client.post("/runs")
        assert r.status_code == 500
        assert r.json()["detail"].startswith("ManifestReadError")

        status = client.get("/status").json()
        assert status["last_error"].startswith("ManifestReadError")


def test_last_run_404_before_any_run(tmp_path, hub_tags):
    app, _ = _app(tmp_path, hub_tags(["1.22"]))
    with TestClient(app) as client:
        assert client.get("/runs/last").status_code == 404


def test_last_run_read_back_from_db(tmp_path, hub_tags):
    app, _ = _app(tmp_path, hub_tags(["1.22"]))
    with TestClient(app) as client:
        client.post("/runs")

    # a fresh process sees the stored run
    app2, _ = _app(tmp_path, hub_tags(["1.22"]), manifest="image: nginx:1.22\n")
    with TestClient(app2) as client:
        r = client.get("/runs/last")
        assert r.status_code == 200
        assert r.json()["patch"]["new_version"] == "1.22"
