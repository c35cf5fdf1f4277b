"""URL-shape checks over the published sitemap URLs."""

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable, List, Sequence
from urllib.parse import urlsplit

from fundsite.errors import FatalIOError
from fundsite.models.content import ContentSnapshot
from fundsite.models.issues import ValidationIssue, errors_in, warnings_in
from fundsite.services.normalizer import normalize_url, path_of, slugify, url_for_path
from fundsite.services.routes import STATIC_PAGES_BY_PATH
from fundsite.services.sitemap import read_sitemap_locs

logger = logging.getLogger(__name__)

ESSENTIAL_PATHS = ("/", "/categories", "/tags", "/managers", "/about", "/faqs")


def check_urls(
    locs: Sequence[str],
    base_url: str,
    tag_slugs: Iterable[str] = (),
    category_slugs: Iterable[str] = (),
    fund_slugs: Iterable[str] = (),
) -> List[ValidationIssue]:
    """Return the shape problems in *locs*.

    ERROR: a ``/index`` entry duplicating the home page, a tag or category
    slug published as a bare top-level path (unless a fund or fixed page
    owns that path), a URL on a host other than the site's, or the same
    URL listed twice.
    WARNING: an essential page missing.
    """
    issues: List[ValidationIssue] = []
    site_host = urlsplit(base_url).netloc.lower()
    tags = set(tag_slugs)
    categories = set(category_slugs)
    funds = set(fund_slugs)

    for loc in locs:
        if urlsplit(loc).netloc.lower() != site_host:
            issues.append(ValidationIssue.error(f"URL is not on {site_host}", loc))
            continue

        path = path_of(normalize_url(loc))
        if path in ("/index", "/index.html"):
            issues.append(ValidationIssue.error("Duplicate /index entry (home page is /)", loc))
            continue

        segments = path.strip("/").split("/")
        if len(segments) != 1 or segments[0] in funds or path in STATIC_PAGES_BY_PATH:
            continue
        bare = segments[0]
        if bare in tags:
            issues.append(ValidationIssue.error(f"Tag URL missing /tags/ prefix: should be /tags/{bare}", loc))
        if bare in categories:
            issues.append(
                ValidationIssue.error(f"Category URL missing /categories/ prefix: should be /categories/{bare}", loc)
            )

    counts = Counter(normalize_url(loc) for loc in locs)
    for loc, count in sorted(counts.items()):
        if count > 1:
            issues.append(ValidationIssue.error(f"URL listed {count} times", loc))

    present = set(counts)
    for essential in ESSENTIAL_PATHS:
        url = url_for_path(base_url, essential)
        if url not in present:
            issues.append(ValidationIssue.warning(f"Essential URL missing: {essential}", url))

    return issues


def validate_sitemap_urls(root: Path, base_url: str, snapshot: ContentSnapshot) -> List[ValidationIssue]:
    """Run :func:`check_urls` over the sitemap set written under *root*."""
    try:
        locs = read_sitemap_locs(Path(root))
    except FatalIOError as exc:
        return [ValidationIssue.error(f"Cannot read sitemap: {exc}", str(root))]

    issues = check_urls(
        locs,
        base_url,
        tag_slugs=(slugify(t) for t in snapshot.tags),
        category_slugs=(slugify(c) for c in snapshot.categories),
        fund_slugs=(slugify(f.id) for f in snapshot.funds),
    )
    logger.info(
        "URL shape check: %d URLs, %d errors, %d warnings",
        len(locs),
        len(errors_in(issues)),
        len(warnings_in(issues)),
    )
    return issues
