"""Build configuration, read from ``FUNDSITE_*`` environment variables."""

import os
from datetime import date, datetime, timezone
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SITE_URL = "https://funds.movingto.com"

# Sitemap protocol ceiling per file
MAX_URLS_PER_SITEMAP = 50_000


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


class BuildConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    site_url: str = DEFAULT_SITE_URL
    output_root: Path = Path("dist")
    assets_dir: Optional[Path] = Field(
        default=None,
        description="Client bundle directory. Defaults to <output_root>/assets.",
    )
    snapshot_path: Optional[Path] = Field(
        default=None,
        description="Offline content snapshot (JSON). Used instead of Supabase when set.",
    )
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    fetch_timeout: float = Field(default=15.0, gt=0)
    fetch_attempts: int = Field(default=3, ge=1, le=10)
    max_workers: int = Field(default=8, ge=1, le=64)
    build_date: date = Field(default_factory=_today)
    disk_audit: bool = True
    repair_gaps: bool = True
    max_urls_per_sitemap: int = Field(default=MAX_URLS_PER_SITEMAP, ge=1, le=MAX_URLS_PER_SITEMAP)
    gone_team_members: FrozenSet[str] = frozenset()
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        return self.site_url.rstrip("/")

    @property
    def resolved_assets_dir(self) -> Path:
        return self.assets_dir if self.assets_dir is not None else self.output_root / "assets"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "BuildConfig":
        """Build a config from *environ* (default ``os.environ``); *overrides* win.

        Overrides whose value is ``None`` are ignored so CLI flags that were
        not given fall through to the environment.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        simple = {
            "FUNDSITE_SITE_URL": "site_url",
            "FUNDSITE_OUTPUT_ROOT": "output_root",
            "FUNDSITE_ASSETS_DIR": "assets_dir",
            "FUNDSITE_SNAPSHOT": "snapshot_path",
            "FUNDSITE_FETCH_TIMEOUT": "fetch_timeout",
            "FUNDSITE_FETCH_ATTEMPTS": "fetch_attempts",
            "FUNDSITE_MAX_WORKERS": "max_workers",
            "FUNDSITE_BUILD_DATE": "build_date",
            "FUNDSITE_LOG_LEVEL": "log_level",
            "SUPABASE_URL": "supabase_url",
            "SUPABASE_ANON_KEY": "supabase_key",
        }
        for var, field in simple.items():
            if env.get(var):
                values[field] = env[var]

        for var, field in (("FUNDSITE_DISK_AUDIT", "disk_audit"), ("FUNDSITE_REPAIR_GAPS", "repair_gaps")):
            if env.get(var):
                values[field] = _env_bool(env[var])

        gone = env.get("FUNDSITE_GONE_TEAM_MEMBERS", "")
        if gone:
            values["gone_team_members"] = frozenset(s.strip() for s in gone.split(",") if s.strip())

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
