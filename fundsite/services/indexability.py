"""Indexability gate: which pages are exposed to search engines.

Every check is a pure function of its arguments.  The same rules decide the
robots meta tag a page is rendered with and whether its URL may appear in a
sitemap, so the two can never disagree.
"""

from typing import Callable, Dict, FrozenSet, Iterable, Optional

from fundsite.models.content import ContentSnapshot, Fund, Manager, TeamMember
from fundsite.models.issues import IndexabilityDecision
from fundsite.models.route import (
    CategoryRoute,
    ComparisonRoute,
    FundAlternativesRoute,
    FundRoute,
    LegacyAliasRoute,
    ManagerRoute,
    Route,
    StaticRoute,
    TagRoute,
    TeamMemberRoute,
)
from fundsite.services.normalizer import slugify
from fundsite.services.routes import STATIC_PAGES_BY_PATH

# Bio length a team member profile needs before it is worth indexing
MIN_TEAM_BIO_CHARS = 50

FundPredicate = Callable[[Fund], bool]


def _indexable() -> IndexabilityDecision:
    return IndexabilityDecision(is_indexable=True, robots_directive="index,follow")


def _excluded(reason: str) -> IndexabilityDecision:
    return IndexabilityDecision(is_indexable=False, robots_directive="noindex,follow", reason=reason)


def _tag_key(tag: str) -> str:
    return tag.strip().lower().replace("-", " ")


def check_fund(fund: Optional[Fund], is_complete: FundPredicate) -> IndexabilityDecision:
    if fund is None:
        return _excluded("missing_required_fields")
    if not is_complete(fund):
        return _excluded("thin_content")
    return _indexable()


def check_category(category: Optional[str], funds: Iterable[Fund]) -> IndexabilityDecision:
    if not category:
        return _excluded("missing_required_fields")
    key = category.strip().lower()
    if not any(f.category.strip().lower() == key for f in funds):
        return _excluded("zero_funds")
    return _indexable()


def check_tag(tag: Optional[str], funds: Iterable[Fund]) -> IndexabilityDecision:
    if not tag:
        return _excluded("missing_required_fields")
    key = _tag_key(tag)
    if not any(_tag_key(t) == key for f in funds for t in f.tags):
        return _excluded("zero_funds")
    return _indexable()


def check_manager(manager_name: Optional[str], funds: Iterable[Fund]) -> IndexabilityDecision:
    if not manager_name:
        return _excluded("missing_required_fields")
    key = manager_name.strip().lower()
    if not any(f.manager_name.strip().lower() == key for f in funds):
        return _excluded("zero_funds")
    return _indexable()


def check_comparison(
    fund_a: Optional[Fund],
    fund_b: Optional[Fund],
    is_complete: FundPredicate,
) -> IndexabilityDecision:
    """A comparison is indexable when both members exist, are distinct and are
    themselves indexable."""
    if fund_a is None or fund_b is None:
        return _excluded("missing_fund")
    if slugify(fund_a.id) == slugify(fund_b.id):
        return _excluded("identical_members")
    if not (check_fund(fund_a, is_complete).is_indexable and check_fund(fund_b, is_complete).is_indexable):
        return _excluded("excluded_member")
    return _indexable()


def check_team_member(member: Optional[TeamMember], gone: FrozenSet[str]) -> IndexabilityDecision:
    if member is None:
        return _excluded("missing_required_fields")
    if member.slug in gone or slugify(member.slug) in gone:
        return _excluded("gone")
    if not member.name.strip() or not member.role.strip():
        return _excluded("missing_required_fields")
    if len(member.bio.strip()) < MIN_TEAM_BIO_CHARS:
        return _excluded("thin_content")
    return _indexable()


class IndexabilityClassifier:
    """Route-level classifier bound to one content snapshot.

    Holds lookup tables only; every decision is still a pure function of the
    snapshot, the fund predicate and the deny-list.
    """

    def __init__(
        self,
        snapshot: ContentSnapshot,
        is_fund_complete: FundPredicate,
        gone_team_members: FrozenSet[str] = frozenset(),
    ) -> None:
        self.snapshot = snapshot
        self.is_fund_complete = is_fund_complete
        self.gone_team_members = gone_team_members
        self._funds: Dict[str, Fund] = {slugify(f.id): f for f in reversed(snapshot.funds)}
        self._members: Dict[str, TeamMember] = {slugify(m.slug): m for m in reversed(snapshot.team_members)}
        self._managers: Dict[str, Manager] = {m.name.strip().lower(): m for m in reversed(snapshot.managers)}

    def fund(self, fund_id: str) -> Optional[Fund]:
        return self._funds.get(slugify(fund_id))

    def team_member(self, slug: str) -> Optional[TeamMember]:
        return self._members.get(slugify(slug))

    def manager(self, name: str) -> Optional[Manager]:
        return self._managers.get(name.strip().lower())

    def classify(self, route: Route) -> IndexabilityDecision:
        funds = self.snapshot.funds
        if isinstance(route, (FundRoute, FundAlternativesRoute)):
            return check_fund(self.fund(route.fund_id), self.is_fund_complete)
        if isinstance(route, CategoryRoute):
            return check_category(route.category, funds)
        if isinstance(route, TagRoute):
            return check_tag(route.tag, funds)
        if isinstance(route, ManagerRoute):
            return check_manager(route.manager_name, funds)
        if isinstance(route, ComparisonRoute):
            return check_comparison(self.fund(route.fund_a), self.fund(route.fund_b), self.is_fund_complete)
        if isinstance(route, TeamMemberRoute):
            return check_team_member(self.team_member(route.member_slug), self.gone_team_members)
        if isinstance(route, LegacyAliasRoute):
            return _excluded("legacy_alias")
        if isinstance(route, StaticRoute):
            page = STATIC_PAGES_BY_PATH.get(route.path)
            if page is not None and not page.indexable:
                return _excluded("noindex_page")
        return _indexable()
