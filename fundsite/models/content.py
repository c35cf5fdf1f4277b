from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

FundStatus = Literal["Open", "Closing Soon", "Closed"]


class Fund(BaseModel):
    """One investment fund as delivered by the content source."""

    id: str
    name: str
    description: str = ""
    detailed_description: str = ""
    manager_name: str = ""
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    minimum_investment: float = 0
    fund_status: FundStatus = "Open"
    is_verified: bool = False
    updated_at: Optional[date] = None
    faqs: List[dict] = Field(default_factory=list)


class Manager(BaseModel):
    name: str
    funds_count: int = 0
    description: str = ""


class TeamMember(BaseModel):
    slug: str
    name: str = ""
    role: str = ""
    bio: str = ""
    company_name: str = ""


class Comparison(BaseModel):
    """An ordered pair of funds; ``fund_a`` always sorts before ``fund_b``."""

    fund_a: str
    fund_b: str
    category: str = ""

    @property
    def slug(self) -> str:
        return f"{self.fund_a}-vs-{self.fund_b}"


class ContentSnapshot(BaseModel):
    """Everything one build reads from the content source, fetched once."""

    funds: List[Fund] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    managers: List[Manager] = Field(default_factory=list)
    team_members: List[TeamMember] = Field(default_factory=list)
    comparisons: List[Comparison] = Field(default_factory=list)
