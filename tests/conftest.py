import pytest
import requests

from backend.lib.local_storage import LocalStorage, StorageError


class FakeResponse:
    def __init__(self, status_code=200, content=b"", content_type="application/javascript"):
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Type": content_type}


class FakeHttp:
    """Stands in for requests.Session: canned responses, switchable offline."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.online = True
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        if not self.online:
            raise requests.ConnectionError(f"offline: {url}")
        if url not in self.responses:
            return FakeResponse(404, b"not found", "text/plain")
        return self.responses[url]


class FakeTimer:
    """threading.Timer look-alike that only fires when told to."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class BrokenStorage:
    backend_name = "broken"

    def get(self, key):
        raise StorageError("disk on fire")

    def set(self, key, value):
        raise StorageError("disk on fire")


@pytest.fixture
def fake_timers():
    FakeTimer.created = []
    return FakeTimer


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "storage.json")


@pytest.fixture
def fake_http():
    return FakeHttp()
