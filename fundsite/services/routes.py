"""Route discovery: the canonical, deduplicated list of pages one build emits."""

import logging
from typing import Dict, List, NamedTuple, Optional, Set

from fundsite.models.content import ContentSnapshot
from fundsite.models.issues import ValidationIssue
from fundsite.models.route import (
    CategoryRoute,
    ComparisonRoute,
    FundAlternativesRoute,
    FundRoute,
    HomeRoute,
    HubRoute,
    LegacyAliasRoute,
    ManagerRoute,
    PageType,
    Route,
    StaticRoute,
    TagRoute,
    TeamMemberRoute,
)
from fundsite.models.sitemap import ChangeFreq
from fundsite.services.normalizer import comparison_slug, slugify

logger = logging.getLogger(__name__)


class StaticPage(NamedTuple):
    path: str
    title: str
    priority: float
    changefreq: ChangeFreq
    indexable: bool = True


HUB_PAGES = (
    StaticPage("/categories", "Fund Categories", 0.8, "weekly"),
    StaticPage("/tags", "Fund Tags", 0.8, "weekly"),
    StaticPage("/managers", "Fund Managers", 0.8, "weekly"),
    StaticPage("/comparisons", "Fund Comparisons", 0.7, "weekly"),
    StaticPage("/compare", "Compare Funds", 0.6, "weekly"),
    StaticPage("/alternatives", "Fund Alternatives", 0.7, "weekly"),
)

STATIC_PAGES = (
    StaticPage("/about", "About", 0.6, "monthly"),
    StaticPage("/faqs", "Frequently Asked Questions", 0.7, "monthly"),
    StaticPage("/roi-calculator", "ROI Calculator", 0.6, "monthly"),
    StaticPage("/fund-matcher", "Fund Matcher", 0.9, "weekly"),
    StaticPage("/verified-funds", "Verified Funds", 0.8, "weekly"),
    StaticPage("/verification-program", "Verification Program", 0.5, "monthly"),
    StaticPage("/contact", "Contact", 0.4, "monthly"),
    StaticPage("/best-portugal-golden-visa-funds", "Best Portugal Golden Visa Funds", 0.95, "weekly"),
    StaticPage("/funds/us-citizens", "Funds for US Citizens", 0.9, "weekly"),
    StaticPage("/fees", "Fund Fees", 0.9, "weekly"),
    StaticPage("/fees/management-fee", "Management Fee", 0.85, "weekly"),
    StaticPage("/fees/performance-fee", "Performance Fee", 0.85, "weekly"),
    StaticPage("/fees/subscription-fee", "Subscription Fee", 0.85, "weekly"),
    StaticPage("/fees/redemption-fee", "Redemption Fee", 0.85, "weekly"),
    StaticPage("/fees/exit-fee", "Exit Fee", 0.85, "weekly"),
    # Built and served, but kept out of search indexes
    StaticPage("/disclaimer", "Disclaimer", 0.3, "monthly", indexable=False),
    StaticPage("/privacy", "Privacy Policy", 0.3, "monthly", indexable=False),
    StaticPage("/terms", "Terms of Service", 0.3, "monthly", indexable=False),
    StaticPage("/cookie-policy", "Cookie Policy", 0.3, "monthly", indexable=False),
)

STATIC_PAGES_BY_PATH: Dict[str, StaticPage] = {p.path: p for p in HUB_PAGES + STATIC_PAGES}

# Top-level path segments owned by a content type or a fixed page
RESERVED_PREFIXES = frozenset(
    {"categories", "tags", "manager", "managers", "team", "compare", "comparisons", "alternatives"}
)


class DiscoveredRoutes(NamedTuple):
    routes: List[Route]
    issues: List[ValidationIssue]

    def by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for route in self.routes:
            counts[route.page_type.value] = counts.get(route.page_type.value, 0) + 1
        return dict(sorted(counts.items()))


def fund_path(fund_id: str) -> str:
    return f"/{slugify(fund_id)}"


def category_path(category: str) -> str:
    return f"/categories/{slugify(category)}"


def tag_path(tag: str) -> str:
    return f"/tags/{slugify(tag)}"


def manager_path(manager_name: str) -> str:
    return f"/manager/{slugify(manager_name)}"


def team_member_path(member_slug: str) -> str:
    return f"/team/{slugify(member_slug)}"


def comparison_path(fund_a: str, fund_b: str) -> str:
    return f"/compare/{comparison_slug(fund_a, fund_b)}"


class _RouteSet:
    """Insertion-ordered route collection enforcing unique paths (first wins)."""

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.issues: List[ValidationIssue] = []

    def add(self, route: Route, source: str) -> bool:
        """Add *route*; return False when it was rejected."""
        if route.path != "/" and (route.path.endswith("/") or "//" in route.path):
            self.issues.append(
                ValidationIssue.warning(f"{source} produced an empty slug; page skipped", route.path)
            )
            return False
        existing = self.routes.get(route.path)
        if existing is not None:
            message = (
                f"Slug collision: {source} maps to {route.path}, already taken by "
                f"{existing.page_type.value} {existing.content_id or existing.path!r}; later entry dropped"
            )
            logger.warning(message)
            self.issues.append(ValidationIssue.warning(message, route.path))
            return False
        self.routes[route.path] = route
        return True

    def skip(self, path: str, reason: str) -> None:
        message = f"{path} skipped: {reason}"
        logger.warning(message)
        self.issues.append(ValidationIssue.warning(message, path))


def discover_routes(snapshot: ContentSnapshot) -> DiscoveredRoutes:
    """Enumerate every page for *snapshot*.

    Static and hub pages come first, then one route per content record per
    type.  Paths are unique: when two records slugify to the same path the
    first one wins and a WARNING issue names the one that was dropped.
    A fund whose own page was dropped loses every dependent page too
    (alternatives, comparisons, legacy alias).  Legacy aliases (a fund's
    name slug, when it differs from its id slug) are added last so they
    never displace a real page.
    """
    found = _RouteSet()
    dropped_funds: Set[str] = set()

    found.add(HomeRoute(), "homepage")
    for page in HUB_PAGES:
        found.add(HubRoute(path=page.path, title=page.title), f"hub {page.path}")
    for page in STATIC_PAGES:
        found.add(StaticRoute(path=page.path, title=page.title), f"static page {page.path}")

    for fund in snapshot.funds:
        if not slugify(fund.id):
            found.issues.append(ValidationIssue.warning(f"fund {fund.id!r} has an empty slug; page skipped"))
            dropped_funds.add(fund.id)
            continue
        if not found.add(FundRoute(path=fund_path(fund.id), fund_id=fund.id), f"fund {fund.id!r}"):
            dropped_funds.add(fund.id)
    for fund in snapshot.funds:
        if fund.id in dropped_funds:
            if slugify(fund.id) and f"{fund_path(fund.id)}/alternatives" not in found.routes:
                found.skip(f"{fund_path(fund.id)}/alternatives", f"fund {fund.id!r} has no page of its own")
            continue
        found.add(
            FundAlternativesRoute(path=f"{fund_path(fund.id)}/alternatives", fund_id=fund.id),
            f"fund alternatives {fund.id!r}",
        )
    for category in snapshot.categories:
        found.add(CategoryRoute(path=category_path(category), category=category), f"category {category!r}")
    for tag in snapshot.tags:
        found.add(TagRoute(path=tag_path(tag), tag=tag), f"tag {tag!r}")
    for manager in snapshot.managers:
        found.add(
            ManagerRoute(path=manager_path(manager.name), manager_name=manager.name),
            f"manager {manager.name!r}",
        )
    for member in snapshot.team_members:
        found.add(
            TeamMemberRoute(path=team_member_path(member.slug), member_slug=member.slug),
            f"team member {member.slug!r}",
        )
    built = {slugify(r.fund_id) for r in found.routes.values() if isinstance(r, FundRoute)}
    pageless = {slugify(f) for f in dropped_funds} - built
    for comparison in snapshot.comparisons:
        if slugify(comparison.fund_a) == slugify(comparison.fund_b):
            continue
        missing = [f for f in (comparison.fund_a, comparison.fund_b) if slugify(f) in pageless]
        if missing:
            found.skip(
                comparison_path(comparison.fund_a, comparison.fund_b),
                f"fund {missing[0]!r} has no page of its own",
            )
            continue
        found.add(
            ComparisonRoute(
                path=comparison_path(comparison.fund_a, comparison.fund_b),
                fund_a=comparison.fund_a,
                fund_b=comparison.fund_b,
            ),
            f"comparison {comparison.slug!r}",
        )

    for fund in snapshot.funds:
        alias = _legacy_alias_path(fund.id, fund.name)
        if alias is not None and fund.id in dropped_funds:
            found.skip(alias, f"legacy alias of fund {fund.id!r}, which has no page of its own")
        elif alias is not None and alias not in found.routes:
            found.add(
                LegacyAliasRoute(path=alias, fund_id=fund.id, target_path=fund_path(fund.id)),
                f"legacy alias of {fund.id!r}",
            )

    result = DiscoveredRoutes(routes=list(found.routes.values()), issues=found.issues)
    logger.info("Discovered %d routes (%s)", len(result.routes), result.by_type())
    return result


def _legacy_alias_path(fund_id: str, fund_name: str) -> Optional[str]:
    name_slug = slugify(fund_name)
    if not name_slug or name_slug == slugify(fund_id) or name_slug in RESERVED_PREFIXES:
        return None
    return f"/{name_slug}"


def page_type_for_path(path: str) -> PageType:
    """Infer the page type of an emitted document from its site path."""
    path = "/" + path.strip("/") if path.strip("/") else "/"
    if path == "/":
        return PageType.HOME
    if path == "/faqs":
        return PageType.FAQS
    if path in STATIC_PAGES_BY_PATH:
        page = STATIC_PAGES_BY_PATH[path]
        return PageType.HUB if page in HUB_PAGES else PageType.STATIC

    segments = path.strip("/").split("/")
    head = segments[0]
    if len(segments) == 2:
        if head == "team":
            return PageType.TEAM_MEMBER
        if head == "manager":
            return PageType.MANAGER
        if head == "categories":
            return PageType.CATEGORY
        if head == "tags":
            return PageType.TAG
        if head == "compare":
            return PageType.COMPARISON
        if segments[1] == "alternatives":
            return PageType.FUND_ALTERNATIVES
    if len(segments) == 1 and head not in RESERVED_PREFIXES:
        return PageType.FUND
    return PageType.OTHER
