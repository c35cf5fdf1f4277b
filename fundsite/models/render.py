from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fundsite.models.issues import RobotsDirective


class SeoData(BaseModel):
    title: str
    description: str
    canonical_url: Optional[str] = None
    structured_data: List[Dict[str, Any]] = Field(default_factory=list)
    robots_directive: RobotsDirective = "index,follow"


class RenderResult(BaseModel):
    html: str
    seo: SeoData


class AssetBundle(BaseModel):
    """Stylesheet and script hrefs of the client bundle, injected into every page."""

    css: List[str] = Field(default_factory=list)
    js: List[str] = Field(default_factory=list)
