from __future__ import annotations

import io
import threading
import time
import zipfile

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from srdir.config import store as config_store
from srdir.config.schema import ArchiveSettings, DeviceConfig
from srdir.output import CaptureResult, EndPacket, LogicPacket, SrdirOutput
from srdir.output.module import ConfiguredDevice
from srdir.webapi import app
from srdir.webapi import conversion as conversion_module
from srdir.webapi import main as main_module
from srdir.webapi.conversion import ConversionManager


DEVICE_PAYLOAD = {
    "device_id": "bench",
    "samplerate_hz": 1_000_000,
    "channels": [
        {"index": 0, "name": "D0", "type": "logic", "enabled": True},
        {"index": 1, "name": "D1", "type": "logic", "enabled": True},
        {"index": 2, "name": "A0", "type": "analog", "enabled": True},
    ],
}


@pytest.fixture(autouse=True)
def clear_auth_env(monkeypatch):
    monkeypatch.delenv("SRDIR_WEBAPI_TOKEN", raising=False)
    monkeypatch.delenv("SRDIR_WEBAPI_TOKEN_FILE", raising=False)
    monkeypatch.delenv("SRDIR_WEBAPI_HOST", raising=False)
    monkeypatch.delenv("SRDIR_WEBAPI_PORT", raising=False)
    monkeypatch.delenv("SRDIR_WEBAPI_LOG_LEVEL", raising=False)


@pytest.fixture
def temp_config_dir(tmp_path, monkeypatch):
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir()
    config_store.save_device_config(DeviceConfig.from_mapping(DEVICE_PAYLOAD), cfg_dir / "device.yaml")
    config_store.save_archive_settings(
        ArchiveSettings(
            output_dir=str(tmp_path / "archives"),
            input_dir=str(tmp_path / "captures"),
            chunk_size_bytes=8,
        ),
        cfg_dir / "archive.yaml",
    )
    monkeypatch.setattr(config_store, "CONFIG_DIR", cfg_dir)
    return cfg_dir


@pytest.fixture
def archive_root(tmp_path):
    return tmp_path / "archives"


@pytest.fixture
def input_root(tmp_path):
    root = tmp_path / "captures"
    root.mkdir(exist_ok=True)
    return root


@pytest.fixture
def api_client(temp_config_dir):
    return TestClient(app)


def write_archive(root, name="capture"):
    root.mkdir(parents=True, exist_ok=True)
    device = ConfiguredDevice(DeviceConfig.from_mapping(DEVICE_PAYLOAD))
    with SrdirOutput(root / name, device, settings=ArchiveSettings(chunk_size_bytes=8)) as output:
        output.receive(LogicPacket(data=bytes(range(12)), unit_size=1))
        output.receive(EndPacket())
    return root / name


def test_get_device_config(api_client):
    response = api_client.get("/config/device")

    assert response.status_code == 200
    body = response.json()
    assert body["device_id"] == "bench"
    assert [ch["name"] for ch in body["channels"]] == ["D0", "D1", "A0"]


def test_update_device_config_persists(api_client, temp_config_dir):
    payload = dict(DEVICE_PAYLOAD, samplerate_hz=2_000_000)

    response = api_client.put("/config/device", json=payload)

    assert response.status_code == 200
    assert config_store.load_device_config().samplerate_hz == 2_000_000


def test_update_device_config_rejects_duplicates(api_client):
    payload = dict(
        DEVICE_PAYLOAD,
        channels=[{"index": 0, "name": "A"}, {"index": 0, "name": "B"}],
    )

    response = api_client.put("/config/device", json=payload)

    assert response.status_code == 422
    assert "canal duplicado" in response.json()["detail"]


def test_missing_device_config_returns_404(api_client, temp_config_dir):
    (temp_config_dir / "device.yaml").unlink()

    response = api_client.get("/config/device")

    assert response.status_code == 404


def test_archive_settings_roundtrip_and_validation(api_client):
    current = api_client.get("/config/archive").json()
    assert current["chunk_size_bytes"] == 8

    updated = api_client.put("/config/archive", json=dict(current, chunk_size_bytes=1024))
    assert updated.status_code == 200
    assert config_store.load_archive_settings().chunk_size_bytes == 1024

    invalid = api_client.put("/config/archive", json=dict(current, chunk_size_bytes=1023))
    assert invalid.status_code == 422
    assert "múltiplo de 4" in invalid.json()["detail"]


def test_archive_settings_default_when_file_missing(api_client, temp_config_dir):
    (temp_config_dir / "archive.yaml").unlink()

    response = api_client.get("/config/archive")

    assert response.status_code == 200
    assert response.json()["chunk_size_bytes"] == 4 * 1024 * 1024


def test_list_and_describe_archives(api_client, archive_root):
    write_archive(archive_root)
    (archive_root / "not-an-archive").mkdir()

    listing = api_client.get("/archives")
    assert listing.status_code == 200
    assert listing.json() == [
        {"name": "capture", "logic_chunks": 2, "analog_channels": [], "analog_chunks": 0}
    ]

    detail = api_client.get("/archives/capture")
    assert detail.status_code == 200
    body = detail.json()
    assert body["logic_chunks"] == ["logic-1-1", "logic-1-2"]
    assert body["logic_bytes"] == 12
    assert body["metadata"]["device 1"]["analog3"] == "A0"


def test_archive_lookup_errors(api_client, archive_root):
    write_archive(archive_root)

    assert api_client.get("/archives/missing").status_code == 404
    assert api_client.get("/archives/.hidden").status_code == 400


def test_download_srzip(api_client, archive_root):
    write_archive(archive_root)

    response = api_client.get("/archives/capture/srzip")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert 'filename="capture.sr"' in response.headers["content-disposition"]
    with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
        assert zf.namelist() == ["version", "metadata", "logic-1-1", "logic-1-2"]
    assert not (archive_root / "capture.sr").exists()


def test_write_routes_require_token_when_configured(api_client, monkeypatch):
    monkeypatch.setenv("SRDIR_WEBAPI_TOKEN", "secreto")

    assert api_client.get("/config/device").status_code == 200
    assert api_client.get("/archives").status_code == 200

    denied = api_client.put("/config/device", json=DEVICE_PAYLOAD)
    assert denied.status_code == 401
    wrong = api_client.put(
        "/config/device", json=DEVICE_PAYLOAD, headers={"Authorization": "Bearer otro"}
    )
    assert wrong.status_code == 401
    assert api_client.post("/conversion/start", json={"output": "x"}).status_code == 401

    ok = api_client.put(
        "/config/device", json=DEVICE_PAYLOAD, headers={"Authorization": "Bearer secreto"}
    )
    assert ok.status_code == 200


def test_token_is_read_from_token_file(api_client, monkeypatch, tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("desde-archivo\n", encoding="utf-8")
    monkeypatch.setenv("SRDIR_WEBAPI_TOKEN_FILE", str(token_file))

    assert api_client.put("/config/archive", json={}).status_code == 401
    ok = api_client.put(
        "/config/archive", json={}, headers={"Authorization": "Bearer desde-archivo"}
    )
    assert ok.status_code == 200


class FakeRunner:
    def __init__(self, device, archive):
        self.device = device
        self.archive = archive
        self.stop_event = threading.Event()
        self.sources = None

    def request_stop(self):
        self.stop_event.set()

    def run(self, sources, output_name):
        self.sources = sources
        self.stop_event.wait(5)
        return CaptureResult(
            directory=self.archive.output_dir,
            chunk_count=1,
            stopped=self.stop_event.is_set(),
        )


@pytest.fixture
def runners(monkeypatch):
    created = []

    def factory(device, archive):
        runner = FakeRunner(device, archive)
        created.append(runner)
        return runner

    monkeypatch.setattr(conversion_module, "conversion_manager", ConversionManager(runner_factory=factory))
    return created


def test_conversion_lifecycle(api_client, runners, input_root):
    start = api_client.post(
        "/conversion/start",
        json={"output": "job1", "logic": "logic.bin", "analog": {"2": "sub/a0.npy"}, "zip": True},
    )
    assert start.status_code == 202
    assert start.json()["output"] == "job1"
    assert runners[0].archive.zip_on_finish is True
    assert runners[0].sources.logic == (input_root / "logic.bin").resolve()
    assert runners[0].sources.analog == {2: (input_root / "sub" / "a0.npy").resolve()}

    conflict = api_client.post("/conversion/start", json={"output": "job2"})
    assert conflict.status_code == 409

    session = api_client.get("/conversion/session").json()
    assert session["active"] is True
    assert session["job"]["device_id"] == "bench"

    stop = api_client.post("/conversion/stop")
    assert stop.status_code == 200
    assert stop.json()["job"]["status"] == "stopped"
    assert stop.json()["job"]["chunks"] == 1

    deadline = time.time() + 2
    while time.time() < deadline:
        session = api_client.get("/conversion/session").json()
        if not session["active"]:
            break
        time.sleep(0.05)
    assert session["active"] is False
    assert session["last_job"]["output"] == "job1"

    assert api_client.post("/conversion/stop").status_code == 409


@pytest.mark.parametrize(
    "payload",
    [
        {"output": "../escaped"},
        {"output": "a/b"},
        {"output": ".hidden"},
        {"output": "ok", "logic": "../secret.bin"},
        {"output": "ok", "logic": "/etc/passwd"},
        {"output": "ok", "analog": {"2": "../../a0.npy"}},
    ],
)
def test_conversion_rejects_paths_outside_configured_roots(api_client, runners, tmp_path, payload):
    response = api_client.post("/conversion/start", json=payload)

    assert response.status_code == 400
    assert runners == []
    assert not (tmp_path / "escaped").exists()
    assert api_client.get("/conversion/session").json() == {"active": False, "last_job": None}


def test_conversion_with_real_runner_stays_inside_roots(
    api_client, input_root, archive_root, tmp_path, monkeypatch
):
    monkeypatch.setattr(conversion_module, "conversion_manager", ConversionManager())
    (tmp_path / "secret.bin").write_bytes(b"secret")
    (input_root / "logic.bin").write_bytes(bytes(range(6)))

    escaped = api_client.post(
        "/conversion/start", json={"output": "../escaped", "logic": str(tmp_path / "secret.bin")}
    )
    assert escaped.status_code == 400

    start = api_client.post("/conversion/start", json={"output": "real", "logic": "logic.bin"})
    assert start.status_code == 202

    deadline = time.time() + 5
    session = api_client.get("/conversion/session").json()
    while session["active"] and time.time() < deadline:
        time.sleep(0.05)
        session = api_client.get("/conversion/session").json()
    assert session["last_job"]["status"] == "finished"
    assert (archive_root / "real" / "logic-1-1").read_bytes() == bytes(range(6))
    assert not (tmp_path / "escaped").exists()


def test_main_loads_env_file_and_starts_uvicorn(monkeypatch, tmp_path):
    calls = {}

    def fake_run(target, **kwargs):
        calls["app"] = target
        calls.update(kwargs)

    monkeypatch.setattr(main_module.uvicorn, "run", fake_run)
    monkeypatch.setattr(app.state, "webapi_settings", None, raising=False)
    env_file = tmp_path / "webapi.env"
    env_file.write_text(
        "SRDIR_WEBAPI_HOST=0.0.0.0\nSRDIR_WEBAPI_TOKEN=abc\nSRDIR_WEBAPI_LOG_LEVEL=DEBUG\n",
        encoding="utf-8",
    )

    code = main_module.main(["--env", str(env_file), "--port", "9001"])

    assert code == 0
    assert calls == {"app": app, "host": "0.0.0.0", "port": 9001, "log_level": "debug"}
    assert app.state.webapi_settings.token == "abc"


def test_main_rejects_unreadable_token_file(monkeypatch, tmp_path):
    monkeypatch.setattr(main_module.uvicorn, "run", lambda *a, **k: pytest.fail("no debe arrancar"))
    monkeypatch.setenv("SRDIR_WEBAPI_TOKEN_FILE", str(tmp_path / "missing"))

    assert main_module.main([]) == 2
