"""Tests for the sitemap builder, XML output, chunking and robots.txt."""

from xml.etree import ElementTree

import pytest

from conftest import BUILD_DATE, SITE_URL
from fundsite.errors import SitemapError
from fundsite.models.route import HomeRoute, ManagerRoute, StaticRoute
from fundsite.models.sitemap import SitemapURL
from fundsite.services.routes import discover_routes
from fundsite.services.sitemap import (
    SITEMAP_NAMESPACE,
    SitemapBuilder,
    format_priority,
    fund_priority,
    manager_priority,
    read_sitemap_locs,
    render_robots_txt,
    write_sitemaps,
)

_NS = {"sm": SITEMAP_NAMESPACE}


def _page(root, path, canonical=None, robots="index,follow"):
    """Write a minimal emitted document for *path* under *root*."""
    relative = path.strip("/")
    target = (root / relative / "index.html") if relative else root / "index.html"
    target.parent.mkdir(parents=True, exist_ok=True)
    canonical = SITE_URL + path if canonical is None else canonical
    link = f'<link rel="canonical" href="{canonical}" />' if canonical else ""
    target.write_text(
        f'<html><head><title>t</title><meta name="robots" content="{robots}" />{link}</head>'
        "<body><h1>t</h1></body></html>",
        encoding="utf-8",
    )
    return target


def _locs(xml_path):
    tree = ElementTree.parse(xml_path)
    return [e.text for e in tree.getroot().iterfind(".//sm:loc", _NS)]


def _urls(count):
    return [SitemapURL(loc=f"{SITE_URL}/p/{i:06d}", lastmod=BUILD_DATE, priority=0.5) for i in range(count)]


class TestPriorities:
    def test_format_clamps_and_rounds(self):
        assert format_priority(1.4) == "1.0"
        assert format_priority(-0.2) == "0.0"
        assert format_priority(0.85) in {"0.8", "0.9"}
        assert format_priority(0.95) in {"0.9", "1.0"}

    def test_fund_priority(self):
        assert fund_priority("Closing Soon", True) == 0.95
        assert fund_priority("Open", True) == 0.9
        assert fund_priority("Open", False) == 0.85
        assert fund_priority("Closed", False) == 0.8

    def test_manager_priority_grows_with_funds_and_caps(self):
        assert manager_priority(1) == 0.65
        assert manager_priority(2) == 0.7
        assert manager_priority(20) == 0.8


class TestCandidates:
    def test_home_entry(self, config, classifier):
        entry = SitemapBuilder(config, classifier).candidate_for(HomeRoute())
        assert entry.loc == SITE_URL + "/"
        assert entry.priority == 1.0
        assert entry.changefreq == "daily"
        assert entry.lastmod == BUILD_DATE

    def test_noindex_static_page_is_skipped(self, config, classifier):
        builder = SitemapBuilder(config, classifier)
        assert builder.candidate_for(StaticRoute(path="/disclaimer", title="Disclaimer")) is None

    def test_only_indexable_routes_are_collected(self, config, snapshot, classifier):
        builder = SitemapBuilder(config, classifier)
        locs = {u.loc for u in builder.collect(discover_routes(snapshot).routes)}
        assert f"{SITE_URL}/alpha-growth" in locs
        assert f"{SITE_URL}/categories/venture-capital" in locs
        assert f"{SITE_URL}/categories/real-estate" not in locs
        assert f"{SITE_URL}/alpha-growth-fund" not in locs
        assert f"{SITE_URL}/team/rui-costa" not in locs
        assert f"{SITE_URL}/privacy" not in locs

    def test_manager_priority_follows_fund_count(self, config, classifier):
        manager = classifier.manager("alpha capital")
        assert manager.funds_count == 1
        entry = SitemapBuilder(config, classifier).candidate_for(
            ManagerRoute(path="/manager/alpha-capital", manager_name="Alpha Capital")
        )
        assert entry.priority == manager_priority(manager.funds_count)

    def test_fund_lastmod_uses_updated_at(self, config, snapshot, classifier):
        builder = SitemapBuilder(config, classifier)
        by_loc = {u.loc: u for u in builder.collect(discover_routes(snapshot).routes)}
        assert by_loc[f"{SITE_URL}/alpha-growth"].lastmod.isoformat() == "2024-05-01"
        assert by_loc[f"{SITE_URL}/beta-yield"].lastmod == BUILD_DATE


class TestSitemapBuild:
    def test_sorted_unique_and_written(self, config, snapshot, classifier, output_root):
        routes = discover_routes(snapshot).routes
        build = SitemapBuilder(config, classifier).build(routes, output_root)
        locs = _locs(output_root / "sitemap.xml")
        assert locs == sorted(locs)
        assert len(locs) == len(set(locs))
        assert build.result.total_urls == len(locs)
        assert not build.result.chunked
        assert (output_root / "robots.txt").exists()

    def test_lastmod_and_priority_format(self, config, snapshot, classifier, output_root):
        SitemapBuilder(config, classifier).build(discover_routes(snapshot).routes, output_root)
        root = ElementTree.parse(output_root / "sitemap.xml").getroot()
        for url in root.iterfind("sm:url", _NS):
            lastmod = url.find("sm:lastmod", _NS).text
            priority = url.find("sm:priority", _NS).text
            assert len(lastmod) == 10 and lastmod[4] == "-"
            assert len(priority) == 3 and priority[1] == "."

    def test_output_is_byte_identical_across_runs(self, config, snapshot, classifier, output_root):
        routes = discover_routes(snapshot).routes
        builder = SitemapBuilder(config, classifier)
        builder.build(routes, output_root)
        first = (output_root / "sitemap.xml").read_bytes()
        robots = (output_root / "robots.txt").read_bytes()
        builder.build(routes, output_root)
        assert (output_root / "sitemap.xml").read_bytes() == first
        assert (output_root / "robots.txt").read_bytes() == robots

    def test_zero_urls_raises(self, config, classifier, output_root):
        config = config.model_copy(update={"repair_gaps": False})
        with pytest.raises(SitemapError):
            SitemapBuilder(config, classifier).build([], output_root)


class TestDiskAudit:
    def test_alias_page_on_disk_is_excluded(self, config, snapshot, classifier, output_root):
        # Legacy alias whose canonical points at the real fund page
        _page(output_root, "/alpha-growth-fund", canonical=f"{SITE_URL}/alpha-growth", robots="noindex,follow")
        _page(output_root, "/alpha-growth")

        build = SitemapBuilder(config, classifier).build(discover_routes(snapshot).routes, output_root)
        locs = _locs(output_root / "sitemap.xml")
        assert f"{SITE_URL}/alpha-growth-fund" not in locs
        assert f"{SITE_URL}/alpha-growth" in locs
        assert f"{SITE_URL}/alpha-growth-fund" in build.result.excluded_aliases

    def test_unknown_self_canonical_page_is_added(self, config, classifier, output_root):
        _page(output_root, "/guides/residency")
        additions, excluded = SitemapBuilder(config, classifier).audit_disk(output_root, known=set())
        assert [u.loc for u in additions] == [f"{SITE_URL}/guides/residency"]
        assert additions[0].priority == 0.6
        assert excluded == []

    def test_known_noindex_page_is_excluded(self, config, classifier, output_root):
        _page(output_root, "/team/rui-costa", robots="noindex,follow")
        loc = f"{SITE_URL}/team/rui-costa"
        additions, excluded = SitemapBuilder(config, classifier).audit_disk(output_root, known={loc})
        assert additions == []
        assert excluded == [loc]

    def test_bundle_and_report_folders_are_not_audited(self, config, classifier, output_root):
        _page(output_root, "/assets/demo")
        _page(output_root, "/validation/preview")
        additions, excluded = SitemapBuilder(config, classifier).audit_disk(output_root, known=set())
        assert additions == [] and excluded == []

    def test_not_found_page_is_ignored(self, config, classifier, output_root):
        _page(output_root, "/404")
        additions, excluded = SitemapBuilder(config, classifier).audit_disk(output_root, known=set())
        assert additions == [] and excluded == []

    def test_audit_can_be_disabled(self, config, snapshot, classifier, output_root):
        _page(output_root, "/guides/residency")
        config = config.model_copy(update={"disk_audit": False})
        SitemapBuilder(config, classifier).build(discover_routes(snapshot).routes, output_root)
        assert f"{SITE_URL}/guides/residency" not in _locs(output_root / "sitemap.xml")


class TestGapRepair:
    def test_missing_taxonomy_urls_are_added_with_warning(self, config, classifier, output_root):
        config = config.model_copy(update={"disk_audit": False})
        build = SitemapBuilder(config, classifier).build([HomeRoute()], output_root)
        locs = _locs(output_root / "sitemap.xml")
        assert f"{SITE_URL}/categories/venture-capital" in locs
        assert f"{SITE_URL}/tags/tech" in locs
        assert f"{SITE_URL}/manager/alpha-capital" in locs
        assert f"{SITE_URL}/categories/real-estate" not in locs
        assert f"{SITE_URL}/tags/tech" in build.result.repaired_gaps
        assert build.issues and all(i.severity == "warning" for i in build.issues)

    def test_nothing_repaired_when_complete(self, config, snapshot, classifier, output_root):
        config = config.model_copy(update={"disk_audit": False})
        build = SitemapBuilder(config, classifier).build(discover_routes(snapshot).routes, output_root)
        assert build.result.repaired_gaps == []
        assert build.issues == []


class TestChunking:
    def test_single_file_within_limit(self, tmp_path):
        files = write_sitemaps(_urls(3), tmp_path, SITE_URL, BUILD_DATE, max_urls=3)
        assert [f.filename for f in files] == ["sitemap.xml"]
        assert not (tmp_path / "sitemap-index.xml").exists()

    def test_over_limit_writes_chunks_and_index(self, tmp_path):
        urls = _urls(60_001)
        files = write_sitemaps(urls, tmp_path, SITE_URL, BUILD_DATE, max_urls=50_000)

        assert [f.filename for f in files] == ["sitemap-1.xml", "sitemap-2.xml", "sitemap-index.xml"]
        assert [f.url_count for f in files[:2]] == [50_000, 1]
        assert len(_locs(tmp_path / "sitemap-1.xml")) == 50_000
        assert _locs(tmp_path / "sitemap-2.xml") == [urls[-1].loc]

        index = ElementTree.parse(tmp_path / "sitemap-index.xml").getroot()
        assert index.tag == f"{{{SITEMAP_NAMESPACE}}}sitemapindex"
        assert _locs(tmp_path / "sitemap-index.xml") == [
            f"{SITE_URL}/sitemap-1.xml",
            f"{SITE_URL}/sitemap-2.xml",
        ]
        assert (tmp_path / "sitemap.xml").read_bytes() == (tmp_path / "sitemap-index.xml").read_bytes()

    def test_build_over_limit_chunks_and_points_robots_at_index(self, config, snapshot, classifier, output_root):
        routes = discover_routes(snapshot).routes
        total = SitemapBuilder(config, classifier).build(routes, output_root).result.total_urls

        config = config.model_copy(update={"max_urls_per_sitemap": 4})
        build = SitemapBuilder(config, classifier).build(routes, output_root)
        chunks = -(-total // 4)

        assert build.result.chunked
        assert build.result.total_urls == total
        assert len(build.result.sitemap_files) == chunks + 1
        assert build.result.sitemap_files[-1].filename == "sitemap-index.xml"
        assert sum(f.url_count for f in build.result.sitemap_files[:-1]) == total
        assert (output_root / "sitemap.xml").read_bytes() == (output_root / "sitemap-index.xml").read_bytes()

        robots = (output_root / "robots.txt").read_text(encoding="utf-8")
        sitemap_lines = [line for line in robots.splitlines() if line.startswith("Sitemap:")]
        assert sitemap_lines == [f"Sitemap: {SITE_URL}/sitemap-index.xml"]
        assert read_sitemap_locs(output_root) == sorted(u.loc for u in build.urls)

    def test_stale_chunks_are_removed(self, tmp_path):
        write_sitemaps(_urls(5), tmp_path, SITE_URL, BUILD_DATE, max_urls=2)
        assert (tmp_path / "sitemap-3.xml").exists()
        write_sitemaps(_urls(2), tmp_path, SITE_URL, BUILD_DATE, max_urls=2)
        assert not list(tmp_path.glob("sitemap-*.xml"))

    def test_read_back_follows_index(self, tmp_path):
        urls = _urls(5)
        write_sitemaps(urls, tmp_path, SITE_URL, BUILD_DATE, max_urls=2)
        assert read_sitemap_locs(tmp_path) == [u.loc for u in urls]


class TestRobotsTxt:
    def test_lists_single_sitemap(self, tmp_path):
        files = write_sitemaps(_urls(1), tmp_path, SITE_URL, BUILD_DATE, max_urls=10)
        robots = render_robots_txt(SITE_URL, files)
        assert "User-agent: *" in robots
        assert "Allow: /" in robots
        assert "Disallow: /admin" in robots
        assert "Crawl-delay: 1" in robots
        assert robots.rstrip().endswith(f"Sitemap: {SITE_URL}/sitemap.xml")

    def test_lists_only_index_when_chunked(self, tmp_path):
        files = write_sitemaps(_urls(3), tmp_path, SITE_URL, BUILD_DATE, max_urls=2)
        robots = render_robots_txt(SITE_URL, files)
        sitemap_lines = [line for line in robots.splitlines() if line.startswith("Sitemap:")]
        assert sitemap_lines == [f"Sitemap: {SITE_URL}/sitemap-index.xml"]
