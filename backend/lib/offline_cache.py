"""
=============================================================================
OFFLINE CACHE - Versioned on-disk cache for page assets
=============================================================================
Keeps the page (its own files and the chart script it loads) and the last
calculation payload available when the network is gone. Same-origin URLs
are read from the frontend folder, everything else goes over HTTP.

Two named caches per version:
    electrical-calculator-static-v1.0.0   manifest members, cached on install
    electrical-calculator-dynamic-v1.0.0  everything else fetched successfully

Fetch policy:
    manifest member -> cache first, then network (cached on success)
    anything else   -> network first, then cache
    both failed     -> synthesized 503 response

Caches whose name does not match the current version are deleted on
activation and again at most once a day.

On disk:
    <cache_dir>/<cache name>/<sha256 of url>.json
=============================================================================
"""

import base64
import hashlib
import json
import mimetypes
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlsplit

# requests - HTTP client used for the network side of every fetch
import requests
from werkzeug.security import safe_join

from backend.lib.app_logger import get_logger

log = get_logger(__name__)

CACHE_PREFIX = "electrical-calculator"
CALCULATIONS_PATH = "/api/calculations"
PURGE_INTERVAL_SECONDS = 24 * 60 * 60

# A fetch that fails this way falls back to the cache
FETCH_ERRORS = (requests.RequestException, OSError)


@dataclass
class CachedResponse:
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "application/octet-stream")

    def json(self):
        return json.loads(self.body.decode("utf-8"))

    def to_record(self, url: str) -> dict:
        return {
            "url": url,
            "status": self.status,
            "headers": self.headers,
            "body": base64.b64encode(self.body).decode("ascii"),
        }

    @classmethod
    def from_record(cls, record: dict) -> "CachedResponse":
        return cls(
            status=int(record["status"]),
            body=base64.b64decode(record["body"]),
            headers=dict(record.get("headers") or {}),
        )


def unavailable(message: str) -> CachedResponse:
    return CachedResponse(503, message.encode("utf-8"), {"Content-Type": "text/plain; charset=utf-8"})


class DiskCache:
    """One named cache: url -> CachedResponse, one JSON file per entry."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.name = self.directory.name

    def _entry_path(self, url: str) -> Path:
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def put(self, url: str, response: CachedResponse) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with self._entry_path(url).open("w", encoding="utf-8") as f:
            json.dump(response.to_record(url), f)

    def match(self, url: str) -> Optional[CachedResponse]:
        path = self._entry_path(url)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return CachedResponse.from_record(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            log.warning("Dropping unreadable cache entry for %s: %s", url, e)
            path.unlink(missing_ok=True)
            return None


class CacheStorage:
    """All named caches under one root directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def open(self, name: str) -> DiskCache:
        return DiskCache(self.root / name)

    def keys(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def delete(self, name: str) -> bool:
        path = self.root / name
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        return True

    def match(self, url: str) -> Optional[CachedResponse]:
        for name in self.keys():
            response = self.open(name).match(url)
            if response is not None:
                return response
        return None


class OfflineCache:
    """
    Usage:
        cache = OfflineCache(Path("backend/data/cache"), manifest=["/", CHART_JS_URL],
                             static_dir=Path("frontend"))
        cache.install()
        cache.activate()
        response = cache.fetch(CHART_JS_URL)   # served from disk when offline
    """

    def __init__(self, cache_dir: Path, version: str = "v1.0.0",
                 manifest: Iterable[str] = (), origin: str = "http://localhost",
                 http=None, timeout: float = 10.0, static_dir: Optional[Path] = None):
        self.storage = CacheStorage(cache_dir)
        self.static_dir = Path(static_dir) if static_dir is not None else None
        self.version = version
        self.origin = origin
        self.http = http or requests.Session()
        self.timeout = timeout
        self.manifest = [self.resolve(url) for url in manifest]
        self.static_name = f"{CACHE_PREFIX}-static-{version}"
        self.dynamic_name = f"{CACHE_PREFIX}-dynamic-{version}"
        self._last_purge: Optional[float] = None

    @property
    def current_names(self) -> List[str]:
        return [self.static_name, self.dynamic_name]

    def resolve(self, url: str) -> str:
        return urljoin(self.origin + "/", url)

    def is_manifest_member(self, url: str) -> bool:
        return self.resolve(url) in self.manifest

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def install(self) -> int:
        """Fetch every manifest member into the static cache. Returns how many were cached."""
        log.info("Installing offline cache %s", self.static_name)
        static = self.storage.open(self.static_name)
        cached = 0
        for url in self.manifest:
            try:
                response = self._network(url)
            except FETCH_ERRORS as e:
                log.error("Error caching static file %s: %s", url, e)
                continue
            if not response.ok:
                log.error("Error caching static file %s: HTTP %d", url, response.status)
                continue
            if self._put(static, url, response):
                cached += 1
        log.info("Cached %d of %d static files", cached, len(self.manifest))
        return cached

    def activate(self, now: Optional[float] = None) -> List[str]:
        """Delete caches left behind by other versions."""
        removed = self.purge_stale()
        self._last_purge = time.time() if now is None else now
        return removed

    def purge_stale(self) -> List[str]:
        removed = []
        for name in self.storage.keys():
            if name not in self.current_names:
                log.info("Deleting old cache: %s", name)
                try:
                    self.storage.delete(name)
                except OSError as e:
                    log.error("Error deleting cache %s: %s", name, e)
                    continue
                removed.append(name)
        return removed

    def purge_if_due(self, now: Optional[float] = None) -> List[str]:
        now = time.time() if now is None else now
        if self._last_purge is not None and now - self._last_purge < PURGE_INTERVAL_SECONDS:
            return []
        self._last_purge = now
        removed = self.purge_stale()
        if removed:
            log.info("Cleaned up old caches: %s", removed)
        return removed

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch(self, url: str, now: Optional[float] = None) -> CachedResponse:
        self.purge_if_due(now)
        url = self.resolve(url)
        if self.is_manifest_member(url):
            return self._cache_first(url)
        return self._network_first(url)

    def match(self, url: str) -> Optional[CachedResponse]:
        return self.storage.match(self.resolve(url))

    def _network(self, url: str) -> CachedResponse:
        if self.static_dir is not None and url.startswith(self.origin + "/"):
            return self._read_local(url)
        resp = self.http.get(url, timeout=self.timeout)
        content_type = resp.headers.get("Content-Type", "application/octet-stream")
        return CachedResponse(resp.status_code, resp.content, {"Content-Type": content_type})

    def _read_local(self, url: str) -> CachedResponse:
        """Same-origin request: read the file from the frontend folder."""
        name = urlsplit(url).path.lstrip("/") or "index.html"
        path = safe_join(str(self.static_dir), name)
        if path is None or not Path(path).is_file():
            return CachedResponse(404, b"Not Found", {"Content-Type": "text/plain; charset=utf-8"})
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return CachedResponse(200, Path(path).read_bytes(), {"Content-Type": content_type})

    def _put(self, cache: DiskCache, url: str, response: CachedResponse) -> bool:
        try:
            cache.put(url, response)
            return True
        except OSError as e:
            log.error("Could not write %s to cache %s: %s", url, cache.name, e)
            return False

    def _cache_first(self, url: str) -> CachedResponse:
        cached = self.storage.match(url)
        if cached is not None:
            return cached
        try:
            response = self._network(url)
        except FETCH_ERRORS as e:
            log.error("Error serving %s from cache: %s", url, e)
            return unavailable("Offline content not available")
        if response.ok:
            self._put(self.storage.open(self.static_name), url, response)
        return response

    def _network_first(self, url: str) -> CachedResponse:
        try:
            response = self._network(url)
        except FETCH_ERRORS:
            log.info("Network failed for %s, serving from cache", url)
            cached = self.storage.match(url)
            if cached is not None:
                return cached
            return unavailable("Content not available offline")
        if response.ok:
            self._put(self.storage.open(self.dynamic_name), url, response)
        return response

    # ------------------------------------------------------------------
    # Messages from the page
    # ------------------------------------------------------------------

    def post_message(self, message: dict) -> None:
        kind = message.get("type") if isinstance(message, dict) else None
        if kind == "CACHE_CALCULATION":
            self.cache_calculation(message.get("calculation") or {})
        elif kind == "SKIP_WAITING":
            self.activate()
        else:
            log.warning("Ignoring unknown cache message: %r", message)

    def cache_calculation(self, calculation: dict) -> bool:
        response = CachedResponse(
            200,
            json.dumps(calculation).encode("utf-8"),
            {"Content-Type": "application/json"},
        )
        if self._put(self.storage.open(self.dynamic_name), self.resolve(CALCULATIONS_PATH), response):
            log.debug("Calculation cached")
            return True
        return False
