"""Route variants: one model per page type, joined into a discriminated union.

Every variant carries the output ``path`` plus only the fields its page
needs.  Dispatch on ``page_type`` (or ``isinstance``) instead of parsing
strings out of the path.
"""

from enum import Enum
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from fundsite.services.normalizer import slugify


class PageType(str, Enum):
    HOME = "homepage"
    STATIC = "static"
    HUB = "hub"
    FUND = "fund"
    FUND_ALTERNATIVES = "fund-alternatives"
    CATEGORY = "category"
    TAG = "tag"
    MANAGER = "manager"
    TEAM_MEMBER = "team-member"
    COMPARISON = "comparison"
    LEGACY_ALIAS = "legacy-alias"
    FAQS = "faqs"
    OTHER = "other"


class _RouteBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str

    @property
    def content_id(self) -> Optional[str]:
        return None

    @property
    def params(self) -> Dict[str, str]:
        """Path parameters of the page; content pages expose their slug."""
        return {"slug": slugify(self.content_id)} if self.content_id else {}


class HomeRoute(_RouteBase):
    page_type: Literal[PageType.HOME] = PageType.HOME
    path: str = "/"


class StaticRoute(_RouteBase):
    page_type: Literal[PageType.STATIC] = PageType.STATIC
    title: str


class HubRoute(_RouteBase):
    page_type: Literal[PageType.HUB] = PageType.HUB
    title: str


class FundRoute(_RouteBase):
    page_type: Literal[PageType.FUND] = PageType.FUND
    fund_id: str

    @property
    def content_id(self) -> Optional[str]:
        return self.fund_id


class FundAlternativesRoute(_RouteBase):
    page_type: Literal[PageType.FUND_ALTERNATIVES] = PageType.FUND_ALTERNATIVES
    fund_id: str

    @property
    def content_id(self) -> Optional[str]:
        return self.fund_id


class CategoryRoute(_RouteBase):
    page_type: Literal[PageType.CATEGORY] = PageType.CATEGORY
    category: str

    @property
    def content_id(self) -> Optional[str]:
        return self.category


class TagRoute(_RouteBase):
    page_type: Literal[PageType.TAG] = PageType.TAG
    tag: str

    @property
    def content_id(self) -> Optional[str]:
        return self.tag


class ManagerRoute(_RouteBase):
    page_type: Literal[PageType.MANAGER] = PageType.MANAGER
    manager_name: str

    @property
    def content_id(self) -> Optional[str]:
        return self.manager_name


class TeamMemberRoute(_RouteBase):
    page_type: Literal[PageType.TEAM_MEMBER] = PageType.TEAM_MEMBER
    member_slug: str

    @property
    def content_id(self) -> Optional[str]:
        return self.member_slug


class ComparisonRoute(_RouteBase):
    page_type: Literal[PageType.COMPARISON] = PageType.COMPARISON
    fund_a: str
    fund_b: str

    @property
    def content_id(self) -> Optional[str]:
        return f"{self.fund_a}-vs-{self.fund_b}"

    @property
    def params(self) -> Dict[str, str]:
        return {"fund_a": self.fund_a, "fund_b": self.fund_b}


class LegacyAliasRoute(_RouteBase):
    """An old slug that stays servable but points its canonical elsewhere."""

    page_type: Literal[PageType.LEGACY_ALIAS] = PageType.LEGACY_ALIAS
    fund_id: str
    target_path: str

    @property
    def content_id(self) -> Optional[str]:
        return self.fund_id

    @property
    def params(self) -> Dict[str, str]:
        return {"slug": self.path.strip("/"), "target": self.target_path}


Route = Annotated[
    Union[
        HomeRoute,
        StaticRoute,
        HubRoute,
        FundRoute,
        FundAlternativesRoute,
        CategoryRoute,
        TagRoute,
        ManagerRoute,
        TeamMemberRoute,
        ComparisonRoute,
        LegacyAliasRoute,
    ],
    Field(discriminator="page_type"),
]
