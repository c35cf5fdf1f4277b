"""Structural checks over every emitted HTML document."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

from bs4 import BeautifulSoup

from fundsite.models.reports import HtmlChecks, HtmlPageResult, HtmlValidationReport
from fundsite.models.route import PageType
from fundsite.services.normalizer import normalize_url, url_for_path
from fundsite.services.routes import page_type_for_path

logger = logging.getLogger(__name__)

# Raw document length thresholds
MIN_CONTENT_LENGTH = 1000
RICH_PAGE_MIN_LENGTH = 5000

# Fewer FAQ questions than this on a fund page is flagged
MIN_FUND_QUESTIONS = 5

RICH_PAGE_TYPES = frozenset({PageType.FUND, PageType.MANAGER, PageType.TEAM_MEMBER})
FAQ_PAGE_TYPES = frozenset(
    {PageType.FUND, PageType.CATEGORY, PageType.TAG, PageType.MANAGER, PageType.FAQS, PageType.COMPARISON}
)

_SKIP_DIRS = {"assets", "validation"}


def find_html_documents(root: Path) -> List[Path]:
    """Every ``index.html`` under *root*, skipping bundle and report folders."""
    documents = []
    for document in root.rglob("index.html"):
        relative = document.relative_to(root)
        if relative.parts and relative.parts[0] in _SKIP_DIRS:
            continue
        documents.append(document)
    return sorted(documents)


def route_for_document(root: Path, document: Path) -> str:
    relative = document.parent.relative_to(root).as_posix()
    return "/" if relative == "." else f"/{relative}"


def _schema_types(node: Any) -> Iterator[str]:
    """Yield every ``@type`` found anywhere inside a JSON-LD value."""
    if isinstance(node, dict):
        declared = node.get("@type")
        if isinstance(declared, str):
            yield declared
        elif isinstance(declared, list):
            yield from (t for t in declared if isinstance(t, str))
        for value in node.values():
            yield from _schema_types(value)
    elif isinstance(node, list):
        for item in node:
            yield from _schema_types(item)


def structured_data_types(soup: BeautifulSoup) -> Tuple[List[str], int]:
    """Return ``(types, invalid_blocks)`` for the page's JSON-LD scripts."""
    types: List[str] = []
    invalid = 0
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or "")
        except ValueError:
            invalid += 1
            continue
        types.extend(_schema_types(data))
    return types, invalid


def validate_document(html: str, route: str, base_url: str, file_path: str = "") -> HtmlPageResult:
    """Check one document; *route* decides the page type and thresholds."""
    soup = BeautifulSoup(html, "lxml")
    page_type = page_type_for_path(route)
    errors: List[str] = []
    warnings: List[str] = []

    titles = soup.find_all("title")
    has_title = len(titles) == 1 and bool(titles[0].get_text(strip=True))
    if not titles or not any(t.get_text(strip=True) for t in titles):
        errors.append("Missing title tag")
    elif len(titles) > 1:
        errors.append("Multiple title tags")

    canonical_tag = soup.find("link", rel="canonical")
    canonical = canonical_tag.get("href") if canonical_tag else None
    self_url = url_for_path(base_url, route)
    canonical_is_self = bool(canonical) and normalize_url(str(canonical)) == self_url

    # A top-level page pointing its canonical elsewhere is a legacy alias
    if canonical and not canonical_is_self and page_type == PageType.FUND:
        page_type = PageType.LEGACY_ALIAS

    description = soup.find("meta", attrs={"name": "description"})
    has_description = bool(description and description.get("content", "").strip())
    types, invalid_blocks = structured_data_types(soup)
    question_count = types.count("Question")
    has_h1 = soup.find("h1") is not None

    min_length = RICH_PAGE_MIN_LENGTH if page_type in RICH_PAGE_TYPES else MIN_CONTENT_LENGTH
    content_length = len(html)
    meets_min_length = content_length >= min_length

    if page_type != PageType.LEGACY_ALIAS:
        if not has_description:
            errors.append("Missing meta description")
        if not canonical:
            warnings.append("Missing canonical tag")
        elif not canonical_is_self:
            warnings.append("Canonical tag is not self-referencing")
        if not types:
            warnings.append("Missing structured data (JSON-LD)")
        if invalid_blocks:
            warnings.append(f"{invalid_blocks} JSON-LD block(s) could not be parsed")
        if not has_h1:
            warnings.append("Missing H1 tag")

        if page_type in FAQ_PAGE_TYPES and "FAQPage" not in types:
            warnings.append(f"Missing FAQPage schema on {page_type.value} page")
        if page_type == PageType.FUND:
            if "InvestmentFund" not in types:
                errors.append("Missing InvestmentFund schema on fund page")
            if "FAQPage" in types and question_count < MIN_FUND_QUESTIONS:
                warnings.append(
                    f"Fund page has only {question_count} FAQ questions in schema (minimum {MIN_FUND_QUESTIONS})"
                )

        if not meets_min_length:
            message = f"Content too short: {content_length} chars (min: {min_length})"
            if page_type in RICH_PAGE_TYPES:
                errors.append(message)
            else:
                warnings.append(message)

    return HtmlPageResult(
        file_path=file_path,
        route=route,
        page_type=page_type.value,
        checks=HtmlChecks(
            has_title=has_title,
            has_meta_description=has_description,
            has_canonical=bool(canonical),
            canonical_is_self=canonical_is_self,
            has_structured_data=bool(types),
            has_h1=has_h1,
            question_count=question_count,
            content_length=content_length,
            meets_min_length=meets_min_length,
        ),
        errors=errors,
        warnings=warnings,
    )


def validate_html_tree(root: Path, base_url: str) -> HtmlValidationReport:
    """Validate every emitted document under *root*.

    Content problems are reported, never raised; an unreadable file is
    reported as an ERROR for that file.
    """
    root = Path(root)
    report = HtmlValidationReport()
    counts: Dict[str, int] = {}

    for document in find_html_documents(root):
        route = route_for_document(root, document)
        relative = document.relative_to(root).as_posix()
        try:
            html = document.read_text(encoding="utf-8")
        except OSError as exc:
            html = ""
            logger.error("Cannot read %s: %s", document, exc)
        result = validate_document(html, route, base_url, relative)
        if not html:
            result.errors.insert(0, "Document is empty or unreadable")

        report.results.append(result)
        counts[result.page_type] = counts.get(result.page_type, 0) + 1
        report.warnings += len(result.warnings)
        if result.errors:
            report.failed += 1
            for message in result.errors:
                report.errors_by_type[message] = report.errors_by_type.get(message, 0) + 1
            logger.warning("HTML validation failed for %s: %s", route, "; ".join(result.errors))
        else:
            report.passed += 1

    report.total_pages = len(report.results)
    report.counts_by_page_type = dict(sorted(counts.items()))
    report.errors_by_type = dict(sorted(report.errors_by_type.items()))
    logger.info(
        "HTML validation: %d pages, %d passed, %d failed, %d warnings",
        report.total_pages,
        report.passed,
        report.failed,
        report.warnings,
    )
    return report
