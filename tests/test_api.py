import pytest
import yaml
from fastapi.testclient import TestClient

from fakes import FakeCapability, FakeToneOutput

from azan_alarm.api.server import create_app
from azan_alarm.core.app import AlarmApp
from azan_alarm.core.db import dispose_db
from azan_alarm.plugins.settings.models import DEFAULT_SETTINGS


@pytest.fixture
def alarm_app(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump({
        "logging": {"level": "DEBUG", "file": str(tmp_path / "azan.log")},
        "database": {"path": str(tmp_path / "azan.db")},
        "api": {"enabled": False},
        "prayer": {
            "backend": "manual",
            "times": {"fajr": "05:00", "dhuhr": "12:30", "asr": "15:45", "maghrib": "18:20", "isha": "19:45"},
        },
    }))
    dispose_db()
    output = FakeToneOutput()
    app = AlarmApp(
        config_path=str(config_path),
        watch_config=False,
        configure_logging=False,
        tone_output_factory=lambda: output,
        notification_capability=FakeCapability(),
    )
    app.start(start_api=False)
    app.fake_output = output
    try:
        yield app
    finally:
        app.stop()


@pytest.fixture
def client(alarm_app):
    return TestClient(create_app(alarm_app))


def test_engine_status(client):
    response = client.get("/api/engine/status")
    assert response.status_code == 200
    status = response.json()
    assert status["running"] is True
    assert status["tone"] == "idle"
    assert status["next_prayer"]["prayer"] in ("fajr", "dhuhr", "asr", "maghrib", "isha")


def test_test_alert_and_stop_tone(client, alarm_app):
    assert client.post("/api/engine/test").status_code == 200
    assert client.post("/api/engine/stop-tone").status_code == 200
    assert client.get("/api/engine/status").json()["tone"] == "idle"


def test_prayer_endpoints(client):
    today = client.get("/api/components/prayer/today").json()
    assert today["fajr"].endswith("05:00:00")
    assert today["isha"].endswith("19:45:00")

    next_prayer = client.get("/api/components/prayer/next").json()
    assert next_prayer["name"] == next_prayer["prayer"].capitalize()
    assert next_prayer["remaining_seconds"] > 0

    countdown = client.get("/api/components/prayer/countdown")
    assert countdown.status_code == 200
    assert "countdown" in countdown.json()


def test_alarm_crud(client):
    created = client.post("/api/components/alarms", json={"prayer": "fajr", "offset_minutes": -10, "repeat_days": [5]})
    assert created.status_code == 201
    alarm = created.json()
    assert alarm["display_label"] == "10 min before Fajr"
    alarm_id = alarm["id"]

    assert [a["id"] for a in client.get("/api/components/alarms").json()] == [alarm_id]
    assert client.get(f"/api/components/alarms/{alarm_id}").json()["repeat_days"] == [5]

    updated = client.put(f"/api/components/alarms/{alarm_id}", json={"prayer": "fajr", "offset_minutes": 5, "label": "Up"})
    assert updated.json()["label"] == "Up"
    assert updated.json()["offset_minutes"] == 5

    toggled = client.post(f"/api/components/alarms/{alarm_id}/toggle", json={"is_active": False})
    assert toggled.json()["is_active"] is False

    assert client.delete(f"/api/components/alarms/{alarm_id}").status_code == 204
    assert client.get(f"/api/components/alarms/{alarm_id}").status_code == 404


def test_alarm_errors(client):
    assert client.post("/api/components/alarms", json={"prayer": "sunrise"}).status_code == 400
    assert client.post("/api/components/alarms", json={"prayer": "fajr", "repeat_days": [9]}).status_code == 400
    assert client.post("/api/components/alarms", json={"prayer": "fajr", "offset_minutes": 10**12}).status_code == 400
    assert client.put("/api/components/alarms/404", json={"prayer": "fajr"}).status_code == 404
    assert client.delete("/api/components/alarms/404").status_code == 404
    assert client.post("/api/components/alarms/404/toggle", json={"is_active": True}).status_code == 404


def test_alarm_changes_reach_engine_state(client, alarm_app):
    client.post("/api/components/alarms", json={"prayer": "asr", "offset_minutes": 5})
    alarm_app.task_manager.run(alarm_app.state.refresh_alarms(), timeout=5)
    assert [a.prayer for a in alarm_app.state.alarms] == ["asr"]


def test_settings_endpoints(client):
    assert client.get("/api/components/settings").json() == DEFAULT_SETTINGS._asdict()

    updated = client.put("/api/components/settings", json={"juristic_method": "hanafi", "is_24_hour_format": True})
    assert updated.status_code == 200
    assert updated.json()["juristic_method"] == "hanafi"
    assert updated.json()["calculation_method"] == DEFAULT_SETTINGS.calculation_method

    assert client.put("/api/components/settings", json={"theme": "neon"}).status_code == 400

    reset = client.post("/api/components/settings/reset")
    assert reset.json() == DEFAULT_SETTINGS._asdict()
