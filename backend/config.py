"""
=============================================================================
CONFIGURATION - Environment driven settings for the calculator service
=============================================================================
All settings come from environment variables. A .env file in the working
directory is loaded first, so local overrides never have to live in code.

Example .env:
    USE_S3_STORAGE=false
    DATA_DIR=backend/data
    DEFAULT_TARIFF=8.5
    CURRENCY_SYMBOL=₹
=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path

# dotenv - Load environment variables from .env file
from dotenv import load_dotenv

DEFAULT_CHART_JS_URL = "https://cdn.jsdelivr.net/npm/chart.js"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    data_dir: Path = Path("backend/data")
    cache_dir: Path = Path("backend/data/cache")
    frontend_dir: Path = Path("frontend")

    # Optional S3 backend for the persisted key-value storage
    use_s3: bool = False
    s3_bucket_name: str = "electrical-calculator-storage"
    aws_region: str = "us-east-1"

    # Offline cache
    cache_version: str = "v1.0.0"
    chart_js_url: str = DEFAULT_CHART_JS_URL
    fetch_timeout: float = 10.0

    # Calculator defaults
    default_tariff: str = "8.5"
    currency_symbol: str = "₹"
    history_limit: int = 10
    debounce_seconds: float = 0.3

    log_level: str = "INFO"

    @property
    def storage_file(self) -> Path:
        return self.data_dir / "storage.json"


def load_settings() -> Settings:
    """
    Build Settings from the environment (and .env, if present).

    Unset variables keep the dataclass defaults.
    """
    load_dotenv()

    defaults = Settings()
    data_dir = Path(os.getenv("DATA_DIR", str(defaults.data_dir)))
    return Settings(
        data_dir=data_dir,
        cache_dir=Path(os.getenv("CACHE_DIR", str(data_dir / "cache"))),
        frontend_dir=Path(os.getenv("FRONTEND_DIR", str(defaults.frontend_dir))),
        use_s3=_env_flag("USE_S3_STORAGE"),
        s3_bucket_name=os.getenv("S3_BUCKET_NAME", defaults.s3_bucket_name),
        aws_region=os.getenv("AWS_REGION", defaults.aws_region),
        cache_version=os.getenv("CACHE_VERSION", defaults.cache_version),
        chart_js_url=os.getenv("CHART_JS_URL", defaults.chart_js_url),
        fetch_timeout=float(os.getenv("FETCH_TIMEOUT", defaults.fetch_timeout)),
        default_tariff=os.getenv("DEFAULT_TARIFF", defaults.default_tariff),
        currency_symbol=os.getenv("CURRENCY_SYMBOL", defaults.currency_symbol),
        history_limit=int(os.getenv("HISTORY_LIMIT", defaults.history_limit)),
        debounce_seconds=float(os.getenv("DEBOUNCE_SECONDS", defaults.debounce_seconds)),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )
