from backend.app import build_offline_cache, build_session, create_app
from backend.config import Settings
from backend.lib.local_storage import LocalStorage
from conftest import FakeHttp, FakeResponse
import pathlib
import pytest

FRONTEND = pathlib.Path(__file__).parent.parent / "frontend"
CHART_JS = "https://cdn.jsdelivr.net/npm/chart.js"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        cache_dir=tmp_path / "cache",
        frontend_dir=FRONTEND,
        debounce_seconds=60,
    )


@pytest.fixture
def http():
    return FakeHttp({CHART_JS: FakeResponse(200, b"/* chart.js */")})


@pytest.fixture
def client(settings, http):
    cache = build_offline_cache(settings, http=http)
    cache.install()
    cache.activate()
    session = build_session(settings, storage=LocalStorage(settings.storage_file), offline_cache=cache)
    app = create_app(settings, session=session, offline_cache=cache)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


def test_home_serves_page(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.mimetype == "text/html"
    assert b"Electrical Calculator" in resp.data
    assert b'<script src="/vendor/chart.js">' in resp.data
    assert client.get("/script.js").status_code == 200
    assert client.get("/styles.css").status_code == 200


def test_page_loads_offline(client, http):
    http.online = False
    for path in ("/", "/index.html", "/styles.css", "/script.js"):
        assert client.get(path).status_code == 200
    assert b"new Chart(" in client.get("/script.js").data
    assert client.get("/vendor/chart.js").data == b"/* chart.js */"


def test_state_carries_chart_data(client):
    client.post("/api/calculate", json={"fields": {"voltage": "230", "current": "2"}})
    chart = client.get("/api/state").get_json()["chart"]
    assert chart["labels"][0] == "Power (W)"
    assert chart["values"] == [460.0, 2.0, 230.0, 0.0, 0.0]
    assert len(chart["colors"]) == 5


def test_calculate_example(client):
    resp = client.post("/api/calculate", json={"fields": {"voltage": "230", "current": "2"}})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["usable"] is True
    assert data["derivation"]["power"] == 460.0
    assert data["derivation"]["energy"] is None
    assert data["results"]["power"]["text"] == "460.00"


def test_calculate_with_units(client):
    resp = client.post(
        "/api/calculate",
        json={"fields": {"power": "1", "time": "90"}, "units": {"power": "kW", "time": "min"}},
    )
    data = resp.get_json()
    assert data["derivation"]["power"] == 1000.0
    assert data["derivation"]["energy"] == pytest.approx(1.5)


def test_calculate_rejects_bad_input(client):
    assert client.post("/api/calculate", json={"fields": {"frequency": "50"}}).status_code == 400
    assert client.post("/api/calculate", json={"units": {"time": "s"}}).status_code == 400
    assert client.post("/api/calculate", json={"fields": ["voltage"]}).status_code == 400


def test_rejected_calculate_keeps_state(client):
    resp = client.post("/api/calculate", json={"fields": {"voltage": "999"}, "units": {"time": "s"}})
    assert resp.status_code == 400
    data = client.get("/api/state").get_json()
    assert data["fields"]["voltage"] == ""
    assert data["units"]["time"] == "h"


def test_unusable_reading_not_recorded(client):
    client.post("/api/calculate", json={"fields": {"voltage": "0", "current": "0", "tariff": ""}})
    assert client.get("/api/history").get_json()["count"] == 0


def test_history_newest_first(client):
    client.post("/api/calculate", json={"fields": {"voltage": "230", "current": "2"}})
    client.post("/api/calculate", json={"fields": {"voltage": "", "current": "", "power": "1000", "time": "5"}})
    data = client.get("/api/history").get_json()
    assert data["count"] == 2
    assert data["entries"][0]["results"]["cost"] == 42.5
    assert data["entries"][0]["display"]["cost"]["text"] == "42.50"
    assert data["entries"][1]["results"]["power"] == 460.0


def test_debounced_field_edit(client):
    resp = client.post("/api/fields", json={"field": "voltage", "value": "230"})
    assert resp.status_code == 202
    assert resp.get_json()["validity"] == "valid"
    client.post("/api/fields", json={"field": "current", "value": "2"})
    # nothing computed until the quiet window passes
    assert client.get("/api/state").get_json()["derivation"]["power"] is None

    client.application.extensions["calculator_session"].flush_pending()
    assert client.get("/api/state").get_json()["derivation"]["power"] == 460.0


def test_field_edit_rejects_unknown_field(client):
    assert client.post("/api/fields", json={"field": "frequency", "value": "50"}).status_code == 400


def test_unit_toggle(client):
    client.post("/api/calculate", json={"fields": {"power": "1000", "time": "2"}})
    resp = client.post("/api/units", json={"quantity": "time", "unit": "min"})
    data = resp.get_json()
    assert data["fields"]["time"] == "120"
    assert data["derivation"]["energy"] == pytest.approx(2.0)
    assert client.post("/api/units", json={"quantity": "time", "unit": "s"}).status_code == 400
    assert client.post("/api/units", json={}).status_code == 400
    assert client.post("/api/units", json={"quantity": ["time"], "unit": "min"}).status_code == 400
    assert client.post("/api/units", json={"quantity": "time", "unit": ["min"]}).status_code == 400


def test_reset(client):
    client.post("/api/calculate", json={"fields": {"voltage": "230", "current": "2"}})
    data = client.post("/api/reset").get_json()
    assert data["fields"]["voltage"] == ""
    assert data["fields"]["tariff"] == "8.5"
    assert data["derivation"]["power"] is None


def test_theme(client, settings):
    assert client.get("/api/theme").get_json() == {"theme": "light"}
    assert client.post("/api/theme").get_json() == {"theme": "dark"}
    assert client.post("/api/theme", json={"theme": "light"}).get_json() == {"theme": "light"}
    assert client.post("/api/theme", json={"theme": "sepia"}).status_code == 400
    assert LocalStorage(settings.storage_file).get("theme") == "light"


def test_export_csv(client):
    resp = client.get("/api/export/csv")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Please enter valid values before exporting."

    client.post("/api/calculate", json={"fields": {"power": "1000", "time": "5"}})
    resp = client.get("/api/export/csv")
    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert "electrical-calculations-" in resp.headers["Content-Disposition"]
    text = resp.get_data(as_text=True)
    assert text.startswith("Timestamp,Parameter,Value,Unit\n")
    assert ",Total Cost,42.5," in text


def test_export_chart(client):
    client.post("/api/calculate", json={"fields": {"voltage": "230", "current": "2"}})
    resp = client.get("/api/export/chart.png")
    assert resp.status_code == 200
    assert resp.mimetype == "image/png"
    assert resp.data.startswith(b"\x89PNG")
    assert "electrical-calculations-chart.png" in resp.headers["Content-Disposition"]


def test_chart_script_served_offline(client, http):
    assert client.get("/vendor/chart.js").data == b"/* chart.js */"
    http.online = False
    resp = client.get("/vendor/chart.js")
    assert resp.status_code == 200
    assert resp.data == b"/* chart.js */"


def test_cached_calculation_payload(client):
    assert client.get("/api/calculations").status_code == 404
    client.post("/api/calculate", json={"fields": {"voltage": "230", "current": "2"}})
    resp = client.get("/api/calculations")
    assert resp.status_code == 200
    assert resp.get_json()["results"]["power"] == 460.0


def test_storage_status(client):
    data = client.get("/storage/status").get_json()
    assert data["storage_backend"] == "local"
    assert data["cache_version"] == "v1.0.0"
    assert "electrical-calculator-static-v1.0.0" in data["caches"]
