"""Build-side artifacts: client bundle lookup, manifest, 404 page, redirect
rules, reports and the post-build check of files a deploy cannot do without."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from bs4 import BeautifulSoup

from fundsite.errors import FatalIOError
from fundsite.models.issues import ValidationIssue
from fundsite.models.render import AssetBundle
from fundsite.models.route import Route
from fundsite.services.emitter import output_path_for
from fundsite.services.normalizer import slugify
from fundsite.services.routes import category_path, tag_path

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "build-manifest.json"
HTML_REPORT_FILENAME = "html-validation-report.json"
CANONICAL_REPORT_PATH = Path("validation") / "canonical-report.json"
NOT_FOUND_FILENAME = "404.html"
REDIRECTS_FILENAME = "redirects.json"

CRITICAL_PAGES = ("/", "/disclaimer", "/privacy")
CRITICAL_FILES = ("robots.txt", "sitemap.xml")


def write_json(path: Path, data: Any) -> None:
    """Write JSON deterministically (UTF-8, sorted keys, trailing newline)."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        raise FatalIOError(f"Cannot write {path}: {exc}") from exc


def collect_assets(assets_dir: Path, output_root: Path) -> AssetBundle:
    """Stylesheet and script hrefs of the client bundle in *assets_dir*."""
    assets_dir = Path(assets_dir)
    if not assets_dir.is_dir():
        raise FatalIOError(f"Client bundle directory not found: {assets_dir}")

    def href(file: Path) -> str:
        try:
            return "/" + file.relative_to(output_root).as_posix()
        except ValueError:
            return f"/assets/{file.name}"

    bundle = AssetBundle(
        css=[href(f) for f in sorted(assets_dir.glob("*.css"))],
        js=[href(f) for f in sorted(assets_dir.glob("*.js"))],
    )
    logger.info("Client bundle: %d stylesheet(s), %d script(s)", len(bundle.css), len(bundle.js))
    return bundle


def write_manifest(
    root: Path,
    successful: Sequence[Route],
    failed: Dict[str, str],
    counts_by_page_type: Dict[str, int],
    duration_seconds: float,
) -> Path:
    manifest = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "total_routes": len(successful) + len(failed),
        "counts_by_page_type": counts_by_page_type,
        "successful_routes": [r.path for r in successful],
        "failed_routes": [{"path": path, "reason": reason} for path, reason in sorted(failed.items())],
        "duration_seconds": round(duration_seconds, 3),
    }
    target = Path(root) / MANIFEST_FILENAME
    write_json(target, manifest)
    logger.info("Wrote %s", target)
    return target


_NOT_FOUND_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Page not found</title>
    <meta name="description" content="The page you were looking for does not exist." />
    <meta name="robots" content="noindex,follow" />
</head>
<body>
<main>
    <h1>Page not found</h1>
    <p>The page you were looking for does not exist or has moved.</p>
    <p><a href="/">Back to the home page</a> or browse <a href="/categories">fund categories</a>.</p>
</main>
</body>
</html>
"""


def write_not_found_page(root: Path) -> Path:
    target = Path(root) / NOT_FOUND_FILENAME
    try:
        target.write_text(_NOT_FOUND_HTML, encoding="utf-8")
    except OSError as exc:
        raise FatalIOError(f"Cannot write {target}: {exc}") from exc
    return target


def _permanent(source: str, destination: str) -> List[Dict[str, Any]]:
    return [
        {"source": source, "destination": destination, "permanent": True},
        {"source": f"{source}/", "destination": destination, "permanent": True},
    ]


def redirect_rules(categories: Iterable[str], tags: Iterable[str], taken: Iterable[str]) -> List[Dict[str, Any]]:
    """Permanent redirects that repair un-namespaced taxonomy URLs.

    Bare ``/{slug}`` (with and without trailing slash) goes to
    ``/categories/{slug}`` or ``/tags/{slug}``.  When a tag and a category
    share a slug the category wins, and ``/tags/{slug}`` is redirected to it.
    A bare path already owned by an emitted page (*taken*) is never
    redirected.  Most specific rules come first.
    """
    category_slugs = sorted({s for s in map(slugify, categories) if s})
    tag_slugs = sorted({s for s in map(slugify, tags) if s})
    overlap = set(category_slugs) & set(tag_slugs)
    taken = set(taken)

    rules: List[Dict[str, Any]] = []
    for slug in sorted(overlap):
        rules.extend(_permanent(f"/tags/{slug}", f"/categories/{slug}"))
    for slug in category_slugs:
        if f"/{slug}" not in taken:
            rules.extend(_permanent(f"/{slug}", category_path(slug)))
    for slug in tag_slugs:
        if slug not in overlap and f"/{slug}" not in taken:
            rules.extend(_permanent(f"/{slug}", tag_path(slug)))
    return rules


def write_redirects(root: Path, categories: Iterable[str], tags: Iterable[str], taken: Iterable[str]) -> Path:
    rules = redirect_rules(categories, tags, taken)
    target = Path(root) / REDIRECTS_FILENAME
    write_json(target, {"redirects": rules})
    logger.info("Wrote %d redirect rules to %s", len(rules), target)
    return target


def verify_critical_files(root: Path) -> List[ValidationIssue]:
    """Home, disclaimer and privacy pages, robots.txt and sitemap.xml must
    exist; each critical page needs exactly one ``<h1>``."""
    root = Path(root)
    issues: List[ValidationIssue] = []

    for path in CRITICAL_PAGES:
        document = output_path_for(root, path)
        if not document.exists():
            issues.append(ValidationIssue.error("Critical page not generated", path))
            continue
        try:
            html = document.read_text(encoding="utf-8")
        except OSError as exc:
            raise FatalIOError(f"Cannot read {document}: {exc}") from exc
        soup = BeautifulSoup(html, "lxml")
        h1_count = len(soup.find_all("h1"))
        if h1_count == 0:
            issues.append(ValidationIssue.error("Critical page missing H1 tag", path))
        elif h1_count > 1:
            issues.append(ValidationIssue.warning(f"Critical page has {h1_count} H1 tags", path))
        if soup.find(["main", "article"]) is None:
            issues.append(ValidationIssue.warning("Critical page has no <main> or <article>", path))

    for filename in CRITICAL_FILES:
        if not (root / filename).exists():
            issues.append(ValidationIssue.error("Required file missing", filename))
    return issues
