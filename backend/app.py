"""
=============================================================================
ELECTRICAL CALCULATOR - MAIN FLASK APPLICATION
=============================================================================
Backend server for the electrical calculator page.

It provides REST API endpoints for:
- Deriving power, current, voltage, energy and cost from partial inputs
- Debounced field edits and unit toggles (V/kV, A/mA, W/kW, h/min)
- The recent-calculations history (last 10, persisted)
- Light/dark theme preference (persisted)
- CSV export and a PNG snapshot of the results chart
- Serving the page, its chart script and the last calculation through
  the offline cache

Storage:
- Local JSON file by default (backend/data/storage.json)
- S3 bucket when USE_S3_STORAGE=true

How to run:
    python -m backend.app

Then visit: http://127.0.0.1:5000
=============================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

from datetime import datetime

from flask import Flask, Response, jsonify, request

from backend.config import Settings, load_settings
from backend.lib import presentation
from backend.lib.app_logger import configure_logging, get_logger
from backend.lib.elec_calc_core.history import HistoryStore, ThemeStore
from backend.lib.elec_calc_core.models import INPUT_FIELDS
from backend.lib.local_storage import LocalStorage
from backend.lib.offline_cache import CALCULATIONS_PATH, OfflineCache
from backend.lib.session import CalculatorSession

log = get_logger(__name__)

SESSION_EXTENSION = "calculator_session"

# The page and its own files, cached on install next to the chart script
PAGE_FILES = ["/", "/index.html", "/styles.css", "/script.js"]


# =============================================================================
# STORAGE AND SESSION WIRING
# =============================================================================

def build_storage(settings: Settings):
    """
    Pick the key-value storage backend.

    S3 is used when enabled and reachable; otherwise (or if S3 setup fails)
    we fall back to the local JSON file.
    """
    if settings.use_s3:
        try:
            from backend.lib.s3_service import S3Storage
            storage = S3Storage(bucket_name=settings.s3_bucket_name, region=settings.aws_region)
            if storage.create_bucket_if_not_exists():
                log.info("S3 storage enabled (bucket %s)", storage.bucket_name)
                return storage
            log.warning("S3 bucket unavailable. Using local storage.")
        except Exception as e:
            log.warning("S3 initialization failed: %s. Using local storage.", e)
    return LocalStorage(settings.storage_file)


def build_offline_cache(settings: Settings, http=None) -> OfflineCache:
    return OfflineCache(
        settings.cache_dir,
        version=settings.cache_version,
        manifest=PAGE_FILES + [settings.chart_js_url],
        http=http,
        timeout=settings.fetch_timeout,
        static_dir=settings.frontend_dir,
    )


def build_session(settings: Settings, storage=None, offline_cache=None) -> CalculatorSession:
    storage = storage if storage is not None else build_storage(settings)
    session = CalculatorSession(
        history=HistoryStore(storage, limit=settings.history_limit),
        theme_store=ThemeStore(storage),
        offline_cache=offline_cache,
        default_tariff=settings.default_tariff,
        debounce_seconds=settings.debounce_seconds,
        currency=settings.currency_symbol,
    )
    session.start()
    return session


def _bad_request(message: str):
    return jsonify({"error": message}), 400


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _entry_json(entry) -> dict:
    data = entry.to_dict()
    data["display"] = presentation.result_slots(entry.derivation)
    return data


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(settings: Settings = None, session: CalculatorSession = None,
               offline_cache: OfflineCache = None) -> Flask:
    """
    Create the Flask application.

    Tests inject their own session and cache; production builds both from
    the environment, installs the offline cache and purges stale versions.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if offline_cache is None:
        offline_cache = build_offline_cache(settings)
        offline_cache.install()
        offline_cache.activate()
    if session is None:
        session = build_session(settings, offline_cache=offline_cache)

    app = Flask(__name__)
    app.extensions[SESSION_EXTENSION] = session
    app.config["CALCULATOR_SETTINGS"] = settings

    # -------------------------------------------------------------------------
    # PAGE
    # -------------------------------------------------------------------------

    def _cached(url: str) -> Response:
        cached = offline_cache.fetch(url)
        return Response(cached.body, status=cached.status, content_type=cached.content_type)

    @app.route("/")
    @app.route("/index.html")
    @app.route("/styles.css")
    @app.route("/script.js")
    def home():
        """The page files, served cache first so they load offline."""
        return _cached(request.path)

    @app.route("/vendor/chart.js")
    def chart_script():
        """
        The chart library, fetched through the offline cache.

        Cache first: once installed it keeps loading without network.
        """
        return _cached(settings.chart_js_url)

    # -------------------------------------------------------------------------
    # CALCULATOR API
    # -------------------------------------------------------------------------

    @app.route("/api/state", methods=["GET"])
    def state():
        return jsonify(session.state())

    @app.route("/api/calculate", methods=["POST"])
    def calculate():
        """
        Run a calculation now.

        Request Body (JSON, all optional):
            {
                "fields": {"voltage": "230", "current": "2"},
                "units": {"time": "min"}
            }

        Fields not mentioned keep their current value. Unit changes here
        only switch the active unit, they do not rescale the field.
        """
        data = _json_body()
        fields = data.get("fields") or {}
        units = data.get("units") or {}
        if not isinstance(fields, dict) or not isinstance(units, dict):
            return _bad_request("fields and units must be objects")
        try:
            session.update(fields, units)
        except ValueError as e:
            return _bad_request(str(e))

        session.calculate()
        return jsonify(session.state())

    @app.route("/api/fields", methods=["POST"])
    def edit_field():
        """
        Debounced edit of one field.

        Request Body (JSON):
            {"field": "voltage", "value": "23"}

        Returns 202: the calculation runs once the field has been quiet
        for the debounce window.
        """
        data = _json_body()
        name = data.get("field")
        if name not in INPUT_FIELDS:
            return _bad_request(f"field must be one of {', '.join(INPUT_FIELDS)}")
        session.edit_field(name, data.get("value"))
        return jsonify({"field": name, "validity": session.validate_field(name)}), 202

    @app.route("/api/units", methods=["POST"])
    def toggle_unit():
        """
        Toggle a display unit.

        Request Body (JSON):
            {"quantity": "time", "unit": "min"}

        The field value is rescaled in place (2 h -> 120 min).
        """
        data = _json_body()
        try:
            session.toggle_unit(data.get("quantity"), data.get("unit"))
        except (ValueError, KeyError) as e:
            return _bad_request(str(e))
        return jsonify(session.state())

    @app.route("/api/reset", methods=["POST"])
    def reset():
        session.reset()
        return jsonify(session.state())

    @app.route("/api/history", methods=["GET"])
    def history():
        """Recent calculations, newest first."""
        entries = session.history()
        return jsonify({
            "count": len(entries),
            "entries": [_entry_json(e) for e in entries],
        })

    @app.route("/api/theme", methods=["GET", "POST"])
    def theme():
        """
        GET returns the theme. POST with {"theme": "dark"} sets it,
        POST without a theme toggles it.
        """
        if request.method == "POST":
            requested = _json_body().get("theme")
            try:
                if requested is None:
                    session.toggle_theme()
                else:
                    session.set_theme(requested)
            except ValueError as e:
                return _bad_request(str(e))
        return jsonify({"theme": session.theme})

    # -------------------------------------------------------------------------
    # EXPORTS
    # -------------------------------------------------------------------------

    @app.route("/api/export/csv", methods=["GET"])
    def export_csv():
        now = datetime.now()
        content = session.export_csv(now)
        if content is None:
            return _bad_request("Please enter valid values before exporting.")
        return Response(
            content,
            content_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f"attachment; filename={presentation.csv_filename(now)}"},
        )

    @app.route("/api/export/chart.png", methods=["GET"])
    def export_chart():
        return Response(
            session.chart_png(),
            content_type="image/png",
            headers={"Content-Disposition": f"attachment; filename={presentation.CHART_FILENAME}"},
        )

    # -------------------------------------------------------------------------
    # OFFLINE CACHE AND STATUS
    # -------------------------------------------------------------------------

    @app.route(CALCULATIONS_PATH, methods=["GET"])
    def cached_calculation():
        """The last calculation payload handed to the offline cache."""
        cached = offline_cache.match(CALCULATIONS_PATH)
        if cached is None:
            return jsonify({"error": "No cached calculation"}), 404
        return Response(cached.body, status=cached.status, content_type=cached.content_type)

    @app.route("/storage/status", methods=["GET"])
    def storage_status():
        """Which storage backend is active and which caches exist."""
        storage = session.history_store.storage
        return jsonify({
            "storage_backend": getattr(storage, "backend_name", type(storage).__name__),
            "history_count": len(session.history_store.entries),
            "cache_version": offline_cache.version,
            "caches": offline_cache.storage.keys(),
        })

    return app


# =============================================================================
# RUN THE SERVER
# =============================================================================

if __name__ == "__main__":
    # debug=True is for local development only
    create_app().run(debug=True)
