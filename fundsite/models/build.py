from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, HttpUrl

from fundsite.models.issues import ValidationIssue
from fundsite.models.sitemap import SitemapResult


class StageOutcome(BaseModel):
    stage: str
    ok: bool
    error_count: int = 0
    warning_count: int = 0


class BuildReport(BaseModel):
    """Summary of one pipeline invocation, returned by the CLI and the API."""

    ok: bool
    exit_code: int
    failed_stage: Optional[str] = None
    error_type: Optional[str] = Field(default=None, description="Exception class that stopped the build, if any.")
    stages: List[StageOutcome] = Field(default_factory=list)
    issues: List[ValidationIssue] = Field(default_factory=list)
    counts_by_page_type: Dict[str, int] = Field(default_factory=dict)
    failed_routes: List[str] = Field(default_factory=list)
    sitemap: Optional[SitemapResult] = None


class BuildRequest(BaseModel):
    output_root: Optional[str] = Field(
        default=None,
        description="Directory the site is written to. Defaults to the configured output root.",
    )
    site_url: Optional[HttpUrl] = None
    build_date: Optional[date] = None
    disk_audit: Optional[bool] = None
    repair_gaps: Optional[bool] = None


class SitemapRequest(BaseModel):
    output_root: Optional[str] = None
    site_url: Optional[HttpUrl] = None


class SitemapValidationResponse(BaseModel):
    valid: bool
    issues: List[ValidationIssue]
