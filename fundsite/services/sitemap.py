"""Sitemap builder: collect, audit, deduplicate, order, chunk and write.

Build steps, in order:

1. Collect one :class:`SitemapURL` per emitted, indexable route using the
   fixed changefreq/priority table.
2. Optionally audit the output tree for index documents step 1 missed,
   excluding any page whose canonical is not its own URL (legacy aliases)
   or whose robots meta says ``noindex``.
3. Merge everything keyed by normalised ``loc``; first occurrence wins.
4. Optionally re-derive the category/tag/manager URLs straight from the
   snapshot and append any that are missing, reporting each as a gap.
5. Sort by ``loc`` (plain code-point order).
6. Write ``sitemap.xml``, or ``sitemap-N.xml`` chunks plus
   ``sitemap-index.xml`` when over the per-file limit.  In the chunked case
   ``sitemap.xml`` is overwritten with the index so crawlers that only
   know the conventional name still find every chunk.
7. Write ``robots.txt``.
"""

import logging
import math
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple
from xml.etree import ElementTree

from fundsite.config import BuildConfig
from fundsite.errors import FatalIOError, SitemapError
from fundsite.models.issues import ValidationIssue
from fundsite.models.route import (
    CategoryRoute,
    ComparisonRoute,
    FundAlternativesRoute,
    FundRoute,
    HomeRoute,
    HubRoute,
    ManagerRoute,
    Route,
    StaticRoute,
    TagRoute,
    TeamMemberRoute,
)
from fundsite.models.sitemap import SitemapFile, SitemapResult, SitemapURL
from fundsite.services.html_validator import find_html_documents, route_for_document
from fundsite.services.indexability import IndexabilityClassifier
from fundsite.services.normalizer import (
    extract_canonical,
    extract_robots,
    normalize_url,
    path_of,
    url_for_path,
)
from fundsite.services.routes import STATIC_PAGES_BY_PATH, category_path, manager_path, tag_path

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
SITEMAP_FILENAME = "sitemap.xml"
SITEMAP_INDEX_FILENAME = "sitemap-index.xml"
ROBOTS_FILENAME = "robots.txt"

# Metadata for pages found only by the disk audit or the gap repair pass
_AUDIT_PRIORITY = 0.6
_REPAIR_PRIORITY = 0.7

_ROBOTS_DISALLOW = (
    "/admin",
    "/auth",
    "/manager-auth",
    "/investor-auth",
    "/api/",
    "/account-settings",
    "/my-funds",
    "/manage-fund/",
    "/manage-profile/",
    "/confirm",
    "/confirm-email",
    "/reset-password",
    "/saved-funds",
)

# (user agent, crawl delay); the wildcard block carries no delay
_ROBOTS_AGENTS: Tuple[Tuple[str, Optional[int]], ...] = (
    ("Googlebot", 1),
    ("Bingbot", 2),
    ("*", None),
)


class SitemapBuild(NamedTuple):
    result: SitemapResult
    urls: List[SitemapURL]
    issues: List[ValidationIssue]


def format_priority(priority: float) -> str:
    """Clamp *priority* to [0, 1] and render it with one decimal place."""
    return f"{min(1.0, max(0.0, priority)):.1f}"


# ── 1. Candidate collection ─────────────────────────────────────────────────


def fund_priority(status: str, has_detail: bool) -> float:
    if status == "Closing Soon":
        priority = 0.95
    elif status == "Open":
        priority = 0.9
    else:
        priority = 0.8
    if not has_detail:
        priority -= 0.05
    return round(max(0.8, priority), 2)


def manager_priority(funds_count: int) -> float:
    return round(min(0.8, 0.65 + 0.05 * max(0, funds_count - 1)), 2)


class SitemapBuilder:
    """Builds the sitemap set and robots.txt for one output tree."""

    def __init__(self, config: BuildConfig, classifier: IndexabilityClassifier) -> None:
        self.config = config
        self.classifier = classifier
        self.snapshot = classifier.snapshot

    def url(self, path: str) -> str:
        return url_for_path(self.config.base_url, path)

    def _entry(self, path: str, priority: float, changefreq: str = "weekly", lastmod: Optional[date] = None) -> SitemapURL:
        return SitemapURL(
            loc=self.url(path),
            lastmod=lastmod or self.config.build_date,
            changefreq=changefreq,
            priority=priority,
        )

    def candidate_for(self, route: Route) -> Optional[SitemapURL]:
        """Sitemap entry for *route*, or *None* when it must not be advertised."""
        if not self.classifier.classify(route).is_indexable:
            return None

        if isinstance(route, HomeRoute):
            return self._entry("/", 1.0, "daily")
        if isinstance(route, (StaticRoute, HubRoute)):
            page = STATIC_PAGES_BY_PATH.get(route.path)
            if page is None:
                return self._entry(route.path, 0.5, "monthly")
            return self._entry(route.path, page.priority, page.changefreq)
        if isinstance(route, FundRoute):
            fund = self.classifier.fund(route.fund_id)
            priority = fund_priority(fund.fund_status, bool(fund.detailed_description.strip()))
            return self._entry(route.path, priority, lastmod=fund.updated_at)
        if isinstance(route, FundAlternativesRoute):
            fund = self.classifier.fund(route.fund_id)
            return self._entry(route.path, 0.8 if fund.fund_status == "Open" else 0.7, lastmod=fund.updated_at)
        if isinstance(route, CategoryRoute):
            key = route.category.strip().lower()
            count = sum(1 for f in self.snapshot.funds if f.category.strip().lower() == key)
            return self._entry(route.path, 0.8 if count >= 3 else 0.75)
        if isinstance(route, TagRoute):
            return self._entry(route.path, 0.7)
        if isinstance(route, ManagerRoute):
            manager = self.classifier.manager(route.manager_name)
            return self._entry(route.path, manager_priority(manager.funds_count if manager else 0))
        if isinstance(route, ComparisonRoute):
            first = self.classifier.fund(route.fund_a)
            second = self.classifier.fund(route.fund_b)
            same = first.category.strip().lower() == second.category.strip().lower()
            return self._entry(route.path, 0.85 if same else 0.8)
        if isinstance(route, TeamMemberRoute):
            return self._entry(route.path, 0.6, "monthly")
        return None

    def collect(self, routes: Iterable[Route]) -> List[SitemapURL]:
        candidates = [c for c in (self.candidate_for(r) for r in routes) if c is not None]
        logger.info("Collected %d sitemap candidates from routes", len(candidates))
        return candidates

    # ── 2. Disk audit ───────────────────────────────────────────────────────

    def audit_disk(self, root: Path, known: Set[str]) -> Tuple[List[SitemapURL], List[str]]:
        """Cross-check the emitted tree against the collected candidates.

        Every index document is inspected.  Pages whose robots meta says
        ``noindex`` or whose canonical is not their own URL are returned in
        *excluded*, even when a candidate already covers them; self-canonical
        pages not in *known* (normalised locs) are returned as additions.
        """
        additions: List[SitemapURL] = []
        excluded: List[str] = []

        for document in find_html_documents(root):
            path = route_for_document(root, document)
            if path == "/404":
                continue
            self_url = self.url(path)

            try:
                html = document.read_text(encoding="utf-8")
            except OSError as exc:
                raise FatalIOError(f"Cannot read {document}: {exc}") from exc

            canonical = extract_canonical(html, self.config.base_url + "/")
            if canonical is None or normalize_url(canonical) != self_url:
                logger.info("Excluding non-canonical page from sitemap: %s", self_url)
                excluded.append(self_url)
                continue
            if extract_robots(html).startswith("noindex"):
                if self_url in known:
                    excluded.append(self_url)
                continue

            if self_url not in known:
                additions.append(self._entry(path, _AUDIT_PRIORITY))

        logger.info("Disk audit added %d URLs and excluded %d", len(additions), len(excluded))
        return additions, excluded

    # ── 3. Merge ────────────────────────────────────────────────────────────

    @staticmethod
    def merge(*groups: Iterable[SitemapURL]) -> List[SitemapURL]:
        merged: Dict[str, SitemapURL] = {}
        for group in groups:
            for entry in group:
                key = normalize_url(entry.loc)
                if key not in merged:
                    merged[key] = entry.model_copy(update={"loc": key})
        return list(merged.values())

    # ── 4. Gap repair ───────────────────────────────────────────────────────

    def expected_locs(self) -> List[str]:
        """Category, tag and manager URLs the snapshot says must be indexed."""
        expected: List[str] = []
        for category in self.snapshot.categories:
            if self.classifier.classify(CategoryRoute(path=category_path(category), category=category)).is_indexable:
                expected.append(self.url(category_path(category)))
        for tag in self.snapshot.tags:
            if self.classifier.classify(TagRoute(path=tag_path(tag), tag=tag)).is_indexable:
                expected.append(self.url(tag_path(tag)))
        for manager in self.snapshot.managers:
            route = ManagerRoute(path=manager_path(manager.name), manager_name=manager.name)
            if self.classifier.classify(route).is_indexable:
                expected.append(self.url(manager_path(manager.name)))
        return expected

    def repair_gaps(
        self, urls: List[SitemapURL], excluded: Iterable[str] = ()
    ) -> Tuple[List[SitemapURL], List[ValidationIssue]]:
        present = {u.loc for u in urls} | set(excluded)
        repaired: List[SitemapURL] = []
        issues: List[ValidationIssue] = []
        for loc in self.expected_locs():
            if loc in present:
                continue
            present.add(loc)
            logger.warning("Repaired sitemap gap: %s", loc)
            repaired.append(
                SitemapURL(loc=loc, lastmod=self.config.build_date, changefreq="weekly", priority=_REPAIR_PRIORITY)
            )
            issues.append(ValidationIssue.warning("Expected URL missing from collected candidates; added", loc))
        return repaired, issues

    # ── Full build ──────────────────────────────────────────────────────────

    def build(self, routes: Sequence[Route], root: Path) -> SitemapBuild:
        root = Path(root)
        candidates = self.collect(routes)

        excluded: List[str] = []
        extra: List[SitemapURL] = []
        if self.config.disk_audit and root.is_dir():
            known = {normalize_url(c.loc) for c in candidates}
            extra, excluded = self.audit_disk(root, known)

        dropped = set(excluded)
        urls = self.merge((c for c in candidates if normalize_url(c.loc) not in dropped), extra)

        issues: List[ValidationIssue] = []
        repaired: List[SitemapURL] = []
        if self.config.repair_gaps:
            repaired, issues = self.repair_gaps(urls, dropped)
            urls.extend(repaired)

        if not urls:
            raise SitemapError("No URLs collected for the sitemap")

        urls.sort(key=lambda u: u.loc)
        files = write_sitemaps(urls, root, self.config.base_url, self.config.build_date, self.config.max_urls_per_sitemap)
        write_robots_txt(root, self.config.base_url, files)

        chunked = len(files) > 1
        result = SitemapResult(
            sitemap_files=files,
            total_urls=len(urls),
            chunked=chunked,
            robots_txt_generated=True,
            excluded_aliases=excluded,
            repaired_gaps=[u.loc for u in repaired],
        )
        logger.info("Sitemap written: %d URLs in %d file(s)", result.total_urls, len(files))
        return SitemapBuild(result=result, urls=urls, issues=issues)


# ── 6. XML output ───────────────────────────────────────────────────────────


def _to_bytes(element: ElementTree.Element) -> bytes:
    ElementTree.indent(element, space="  ")
    return ElementTree.tostring(element, encoding="utf-8", xml_declaration=True) + b"\n"


def render_urlset(urls: Sequence[SitemapURL]) -> bytes:
    urlset = ElementTree.Element("urlset", xmlns=SITEMAP_NAMESPACE)
    for entry in urls:
        node = ElementTree.SubElement(urlset, "url")
        ElementTree.SubElement(node, "loc").text = entry.loc
        ElementTree.SubElement(node, "lastmod").text = entry.lastmod.isoformat()
        ElementTree.SubElement(node, "changefreq").text = entry.changefreq
        ElementTree.SubElement(node, "priority").text = format_priority(entry.priority)
    return _to_bytes(urlset)


def render_index(base_url: str, files: Sequence[SitemapFile]) -> bytes:
    index = ElementTree.Element("sitemapindex", xmlns=SITEMAP_NAMESPACE)
    for sitemap in files:
        node = ElementTree.SubElement(index, "sitemap")
        ElementTree.SubElement(node, "loc").text = f"{base_url.rstrip('/')}/{sitemap.filename}"
        ElementTree.SubElement(node, "lastmod").text = sitemap.lastmod.isoformat()
    return _to_bytes(index)


def _write(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise FatalIOError(f"Cannot write {path}: {exc}") from exc


def write_sitemaps(
    urls: Sequence[SitemapURL],
    root: Path,
    base_url: str,
    build_date: date,
    max_urls: int,
) -> List[SitemapFile]:
    """Write *urls* (already sorted) and return the descriptors of every file.

    A single file when ``len(urls) <= max_urls``; otherwise the chunk files
    followed by ``sitemap-index.xml``.
    """
    root = Path(root)
    # Chunks from an earlier, larger build would otherwise linger
    for stale in root.glob("sitemap-*.xml"):
        try:
            stale.unlink()
        except OSError as exc:
            raise FatalIOError(f"Cannot remove stale {stale}: {exc}") from exc

    if len(urls) <= max_urls:
        _write(root / SITEMAP_FILENAME, render_urlset(urls))
        return [SitemapFile(filename=SITEMAP_FILENAME, url_count=len(urls), lastmod=build_date)]

    chunks: List[SitemapFile] = []
    for n in range(math.ceil(len(urls) / max_urls)):
        chunk = urls[n * max_urls : (n + 1) * max_urls]
        filename = f"sitemap-{n + 1}.xml"
        _write(root / filename, render_urlset(chunk))
        chunks.append(SitemapFile(filename=filename, url_count=len(chunk), lastmod=build_date))

    index_bytes = render_index(base_url, chunks)
    _write(root / SITEMAP_INDEX_FILENAME, index_bytes)
    _write(root / SITEMAP_FILENAME, index_bytes)
    logger.info("Sitemap chunked into %d files plus index", len(chunks))
    return chunks + [SitemapFile(filename=SITEMAP_INDEX_FILENAME, url_count=len(chunks), lastmod=build_date)]


# ── 7. robots.txt ───────────────────────────────────────────────────────────


def render_robots_txt(base_url: str, files: Sequence[SitemapFile]) -> str:
    base = base_url.rstrip("/")
    lines: List[str] = []
    for agent, delay in _ROBOTS_AGENTS:
        lines.append(f"User-agent: {agent}")
        lines.append("Allow: /")
        lines.extend(f"Disallow: {path}" for path in _ROBOTS_DISALLOW)
        if delay is not None:
            lines.append(f"Crawl-delay: {delay}")
        lines.append("")

    if any(f.filename == SITEMAP_INDEX_FILENAME for f in files):
        lines.append(f"Sitemap: {base}/{SITEMAP_INDEX_FILENAME}")
    else:
        lines.extend(f"Sitemap: {base}/{f.filename}" for f in files)
    return "\n".join(lines) + "\n"


def write_robots_txt(root: Path, base_url: str, files: Sequence[SitemapFile]) -> Path:
    target = Path(root) / ROBOTS_FILENAME
    _write(target, render_robots_txt(base_url, files).encode("utf-8"))
    return target


# ── Reading back ────────────────────────────────────────────────────────────


def _parse_locs(path: Path) -> Tuple[str, List[str]]:
    try:
        root = ElementTree.parse(path).getroot()
    except OSError as exc:
        raise FatalIOError(f"Cannot read {path}: {exc}") from exc
    except ElementTree.ParseError as exc:
        raise FatalIOError(f"{path} is not valid XML: {exc}") from exc
    ns = root.tag.split("}")[0] + "}" if root.tag.startswith("{") else ""
    tag = root.tag[len(ns):]
    return tag, [elem.text.strip() for elem in root.iter(f"{ns}loc") if elem.text]


def read_sitemap_locs(root: Path) -> List[str]:
    """Every page ``<loc>`` published from ``sitemap.xml``, following an index."""
    root = Path(root)
    tag, locs = _parse_locs(root / SITEMAP_FILENAME)
    if tag != "sitemapindex":
        return locs

    pages: List[str] = []
    for sitemap_url in locs:
        _, child_locs = _parse_locs(root / path_of(sitemap_url).lstrip("/"))
        pages.extend(child_locs)
    return pages
