"""Canonical consistency: every sitemap URL must be its page's own canonical."""

import logging
from pathlib import Path
from typing import Iterable

from fundsite.errors import FatalIOError
from fundsite.models.issues import ValidationIssue
from fundsite.models.reports import CanonicalCheck, CanonicalReport
from fundsite.services.normalizer import extract_canonical, path_of, strip_trailing_slash
from fundsite.services.sitemap import read_sitemap_locs

logger = logging.getLogger(__name__)


def document_for_loc(root: Path, loc: str) -> Path:
    """Map a sitemap ``<loc>`` to the emitted file that serves it."""
    path = path_of(loc).strip("/")
    if not path:
        return root / "index.html"
    candidate = root / path / "index.html"
    if not candidate.exists() and (root / f"{path}.html").exists():
        return root / f"{path}.html"
    return candidate


def _same_url(a: str, b: str) -> bool:
    return strip_trailing_slash(a.strip()) == strip_trailing_slash(b.strip())


def check_locs(root: Path, locs: Iterable[str], base_url: str) -> CanonicalReport:
    """Resolve each of *locs* under *root* and compare canonicals.

    A missing document is a WARNING, since a separate process may publish
    it.  A document without a canonical, or whose canonical differs from
    the ``<loc>``, is an ERROR.
    """
    root = Path(root)
    report = CanonicalReport()

    for loc in locs:
        document = document_for_loc(root, loc)
        relative = document.relative_to(root).as_posix()
        report.total += 1

        if not document.exists():
            report.missing_files += 1
            report.checks.append(CanonicalCheck(loc=loc, file_path=relative, status="missing_file"))
            report.issues.append(ValidationIssue.warning(f"No emitted page for sitemap URL ({relative})", loc))
            continue

        try:
            html = document.read_text(encoding="utf-8")
        except OSError as exc:
            raise FatalIOError(f"Cannot read {document}: {exc}") from exc

        canonical = extract_canonical(html, base_url.rstrip("/") + "/")
        if canonical is None:
            report.errors += 1
            report.checks.append(CanonicalCheck(loc=loc, file_path=relative, status="missing_canonical"))
            report.issues.append(ValidationIssue.error("Sitemap URL's page has no canonical tag", loc))
        elif not _same_url(canonical, loc):
            report.errors += 1
            report.checks.append(CanonicalCheck(loc=loc, file_path=relative, canonical=canonical, status="mismatch"))
            report.issues.append(
                ValidationIssue.error(f"Canonical mismatch: page declares {canonical}", loc)
            )
        else:
            report.ok += 1
            report.checks.append(CanonicalCheck(loc=loc, file_path=relative, canonical=canonical, status="ok"))

    logger.info(
        "Canonical check: %d URLs, %d ok, %d missing pages, %d errors",
        report.total,
        report.ok,
        report.missing_files,
        report.errors,
    )
    return report


def validate_canonicals(root: Path, base_url: str) -> CanonicalReport:
    """Check every URL published in ``root``'s sitemap set."""
    try:
        locs = read_sitemap_locs(root)
    except FatalIOError as exc:
        report = CanonicalReport()
        report.issues.append(ValidationIssue.error(f"Cannot read sitemap: {exc}", str(root)))
        report.errors = 1
        return report
    return check_locs(root, locs, base_url)
