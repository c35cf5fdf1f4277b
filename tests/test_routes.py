"""Tests for route discovery: ordering, uniqueness, collisions and aliases."""

from fundsite.models.content import Comparison, ContentSnapshot, Fund
from fundsite.models.route import (
    ComparisonRoute,
    FundRoute,
    HomeRoute,
    LegacyAliasRoute,
    PageType,
    StaticRoute,
    TagRoute,
)
from fundsite.services.routes import (
    HUB_PAGES,
    STATIC_PAGES,
    comparison_path,
    discover_routes,
    page_type_for_path,
)


def _fund(fund_id: str, name: str = "", category: str = "Venture Capital") -> Fund:
    return Fund(id=fund_id, name=name or fund_id, category=category)


class TestDiscoverRoutes:
    def test_home_then_hubs_then_static_pages_first(self, snapshot):
        paths = [r.path for r in discover_routes(snapshot).routes]
        fixed = ["/"] + [p.path for p in HUB_PAGES] + [p.path for p in STATIC_PAGES]
        assert paths[: len(fixed)] == fixed

    def test_paths_are_unique(self, snapshot):
        paths = [r.path for r in discover_routes(snapshot).routes]
        assert len(paths) == len(set(paths))

    def test_one_route_per_content_record(self, snapshot):
        paths = {r.path for r in discover_routes(snapshot).routes}
        assert {"/alpha-growth", "/beta-yield"} <= paths
        assert {"/alpha-growth/alternatives", "/beta-yield/alternatives"} <= paths
        assert {"/categories/venture-capital", "/categories/real-estate"} <= paths
        assert {"/tags/tech", "/tags/low-risk"} <= paths
        assert {"/manager/alpha-capital", "/manager/beta-partners"} <= paths
        assert {"/team/joana-silva", "/team/rui-costa"} <= paths
        assert "/compare/alpha-growth-vs-beta-yield" in paths

    def test_is_deterministic(self, snapshot):
        first = discover_routes(snapshot)
        second = discover_routes(snapshot)
        assert first.routes == second.routes

    def test_legacy_alias_for_renamed_fund(self, snapshot):
        aliases = [r for r in discover_routes(snapshot).routes if isinstance(r, LegacyAliasRoute)]
        assert [(a.path, a.target_path) for a in aliases] == [("/alpha-growth-fund", "/alpha-growth")]

    def test_no_alias_when_name_matches_id(self):
        snapshot = ContentSnapshot(funds=[_fund("beta-yield", "Beta Yield")])
        routes = discover_routes(snapshot).routes
        assert not any(r.page_type == PageType.LEGACY_ALIAS for r in routes)

    def test_slug_collision_keeps_first_and_warns(self):
        snapshot = ContentSnapshot(funds=[_fund("Gamma Fund"), _fund("gamma-fund")])
        found = discover_routes(snapshot)
        fund_routes = [r for r in found.routes if r.page_type == PageType.FUND]
        assert [r.fund_id for r in fund_routes] == ["Gamma Fund"]
        assert any("collision" in i.message.lower() for i in found.issues)
        assert all(i.severity == "warning" for i in found.issues)

    def test_fund_losing_collision_drops_dependent_pages(self):
        snapshot = ContentSnapshot(
            funds=[_fund("about", "Beta Yield"), _fund("alpha-growth")],
            comparisons=[Comparison(fund_a="about", fund_b="alpha-growth")],
        )
        found = discover_routes(snapshot)
        paths = {r.path for r in found.routes}

        assert "/about/alternatives" not in paths
        assert "/compare/about-vs-alpha-growth" not in paths
        assert "/beta-yield" not in paths
        assert "/alpha-growth/alternatives" in paths
        skipped = {i.context for i in found.issues if "skipped" in i.message}
        assert skipped == {"/about/alternatives", "/compare/about-vs-alpha-growth", "/beta-yield"}
        assert all(i.severity == "warning" for i in found.issues)

    def test_collision_between_funds_keeps_comparisons_of_winner(self):
        snapshot = ContentSnapshot(
            funds=[_fund("gamma-fund"), _fund("Gamma Fund"), _fund("delta")],
            comparisons=[Comparison(fund_a="delta", fund_b="gamma-fund")],
        )
        paths = {r.path for r in discover_routes(snapshot).routes}
        assert "/compare/delta-vs-gamma-fund" in paths
        assert "/gamma-fund/alternatives" in paths

    def test_empty_slug_is_skipped_with_warning(self):
        snapshot = ContentSnapshot(funds=[_fund("***")])
        found = discover_routes(snapshot)
        assert not any(r.page_type == PageType.FUND for r in found.routes)
        assert found.issues and found.issues[0].severity == "warning"

    def test_counts_by_type(self, snapshot):
        counts = discover_routes(snapshot).by_type()
        assert counts["fund"] == 2
        assert counts["team-member"] == 2
        assert counts["legacy-alias"] == 1
        assert list(counts) == sorted(counts)


class TestComparisonPath:
    def test_member_order_does_not_matter(self):
        assert comparison_path("beta-yield", "alpha-growth") == "/compare/alpha-growth-vs-beta-yield"


class TestPageTypeForPath:
    def test_known_shapes(self):
        assert page_type_for_path("/") == PageType.HOME
        assert page_type_for_path("/faqs") == PageType.FAQS
        assert page_type_for_path("/categories") == PageType.HUB
        assert page_type_for_path("/about") == PageType.STATIC
        assert page_type_for_path("/alpha-growth") == PageType.FUND
        assert page_type_for_path("/alpha-growth/alternatives") == PageType.FUND_ALTERNATIVES
        assert page_type_for_path("/categories/venture-capital") == PageType.CATEGORY
        assert page_type_for_path("/tags/tech") == PageType.TAG
        assert page_type_for_path("/manager/alpha-capital") == PageType.MANAGER
        assert page_type_for_path("/team/joana-silva") == PageType.TEAM_MEMBER
        assert page_type_for_path("/compare/a-vs-b") == PageType.COMPARISON

    def test_trailing_slash_is_ignored(self):
        assert page_type_for_path("/tags/tech/") == PageType.TAG

    def test_unknown_shape_is_other(self):
        assert page_type_for_path("/a/b/c") == PageType.OTHER


class TestRouteParams:
    def test_fixed_pages_have_no_params(self):
        assert HomeRoute().params == {}
        assert StaticRoute(path="/about", title="About").params == {}

    def test_content_routes_expose_their_slug(self):
        assert FundRoute(path="/alpha-growth", fund_id="alpha-growth").params == {"slug": "alpha-growth"}
        assert TagRoute(path="/tags/low-risk", tag="Low Risk").params == {"slug": "low-risk"}

    def test_comparison_params_name_both_funds(self):
        route = ComparisonRoute(path="/compare/a-vs-b", fund_a="a", fund_b="b")
        assert route.params == {"fund_a": "a", "fund_b": "b"}
