"""Slug generation, URL normalisation and canonical/robots extraction."""

import re
import unicodedata
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup


def slugify(value: str) -> str:
    """Turn *value* into a URL slug.

    The slug is lowercased, ASCII-only, and uses single hyphens as
    separators.  ``&`` becomes ``and``.  The function is pure: the same input
    always yields the same slug, independent of locale.
    """
    slug = unicodedata.normalize("NFKD", value)
    slug = slug.encode("ascii", "ignore").decode("ascii")
    slug = slug.lower().replace("&", " and ")

    # Lowercase and replace runs of non-alphanumeric chars with a single hyphen
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


def comparison_slug(fund_a: str, fund_b: str) -> str:
    """Return the canonical ``a-vs-b`` slug; member order does not matter."""
    first, second = sorted((slugify(fund_a), slugify(fund_b)))
    return f"{first}-vs-{second}"


def normalize_url(url: str) -> str:
    """Normalise *url* for comparison and deduplication.

    Scheme and host are lowercased; a trailing slash is removed from every
    path except the root, which is always ``/``.  Query and fragment are
    preserved as-is.
    """
    parts = urlsplit(url.strip())
    path = parts.path or "/"
    if path != "/":
        path = path.rstrip("/") or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, parts.fragment))


def strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


def url_for_path(base_url: str, path: str) -> str:
    """Absolute, normalised URL of a site *path* (``/`` maps to the root)."""
    return normalize_url(base_url.rstrip("/") + "/" + path.lstrip("/"))


def path_of(url: str) -> str:
    return urlsplit(url).path or "/"


def extract_canonical(html: str, base_url: str) -> Optional[str]:
    """Return the canonical URL declared in *html*, or *None* if absent."""
    soup = BeautifulSoup(html, "lxml")

    link_tag = soup.find("link", rel="canonical")
    if link_tag and link_tag.get("href"):
        return urljoin(base_url, str(link_tag["href"]))

    return None


def extract_robots(html: str) -> str:
    """Return the content of ``<meta name="robots">`` lowercased, or ``""``."""
    soup = BeautifulSoup(html, "lxml")
    meta = soup.find("meta", attrs={"name": "robots"})
    if meta and meta.get("content"):
        return str(meta["content"]).replace(" ", "").lower()
    return ""
