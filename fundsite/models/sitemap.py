from datetime import date
from typing import List, Literal

from pydantic import BaseModel, Field

ChangeFreq = Literal["always", "hourly", "daily", "weekly", "monthly", "yearly", "never"]


class SitemapURL(BaseModel):
    loc: str
    lastmod: date
    changefreq: ChangeFreq = "weekly"
    priority: float = Field(default=0.5, ge=0.0, le=1.0)


class SitemapFile(BaseModel):
    filename: str
    url_count: int
    lastmod: date


class SitemapResult(BaseModel):
    """What one sitemap build wrote to disk."""

    sitemap_files: List[SitemapFile]
    total_urls: int
    chunked: bool
    robots_txt_generated: bool = True
    excluded_aliases: List[str] = Field(default_factory=list)
    repaired_gaps: List[str] = Field(default_factory=list)
