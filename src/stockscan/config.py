"""Application-wide configuration defaults and helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Per-user home for the database and exports; the package itself may be read-only.
BASE_DIR = Path.home() / ".stockscan"

STORAGE_BACKENDS = ("sqlite", "memory")

ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse truthy environment values like '1' or 'true'."""
    if value is None:
        return default
    # Normalize non-string inputs (e.g., int defaults) before parsing.
    if not isinstance(value, str):
        value = str(value)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str]) -> Optional[int]:
    """Safely parse an integer env var, returning None on failure."""
    if value is None:
        return None
    try:
        parsed = int(str(value).strip())
        return parsed
    except (TypeError, ValueError):
        return None


def _to_float(value: Optional[str]) -> Optional[float]:
    """Safely parse a float env var, returning None on failure."""
    if value is None:
        return None
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    debug: bool = False
    database_path: Path = BASE_DIR / "data" / "stockscan.db"
    sqlite_echo: bool = False
    alpha_vantage_api_key: Optional[str] = None
    alpha_vantage_base_url: str = ALPHA_VANTAGE_BASE_URL
    http_timeout: float = 30.0
    proxy_url: Optional[str] = None
    cache_ttl_hours: float = 24.0
    refresh_interval_seconds: float = 60.0
    max_annual_reports: int = 5
    output_dir: Path = BASE_DIR / "exports"
    storage_backend: str = "sqlite"

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration instance using environment overrides."""
        base = Path(os.getenv("STOCKSCAN_HOME") or BASE_DIR)
        db_path = Path(os.getenv("STOCKSCAN_DB_PATH", base / "data" / "stockscan.db"))
        output_dir = Path(os.getenv("OUTPUT_DIR", base / "exports"))

        config = cls(
            debug=_to_bool(os.getenv("APP_DEBUG")),
            database_path=db_path,
            sqlite_echo=_to_bool(os.getenv("SQLITE_ECHO")),
            alpha_vantage_api_key=os.getenv("ALPHA_VANTAGE_API_KEY") or None,
            alpha_vantage_base_url=os.getenv("ALPHA_VANTAGE_BASE_URL", ALPHA_VANTAGE_BASE_URL),
            http_timeout=_to_float(os.getenv("HTTP_TIMEOUT")) or 30.0,
            proxy_url=os.getenv("PROXY_URL") or None,
            cache_ttl_hours=_to_float(os.getenv("CACHE_TTL_HOURS")) or 24.0,
            refresh_interval_seconds=_to_float(os.getenv("REFRESH_INTERVAL_SECONDS")) or 60.0,
            max_annual_reports=_to_int(os.getenv("MAX_ANNUAL_REPORTS")) or 5,
            output_dir=output_dir,
            storage_backend=(os.getenv("STOCKSCAN_STORAGE") or "sqlite").strip().lower(),
        )
        config.ensure_directories()
        return config

    @property
    def database_uri(self) -> str:
        return f"sqlite:///{self.database_path}"

    def ensure_directories(self) -> None:
        """Create directories needed for runtime artifacts."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
