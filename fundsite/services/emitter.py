"""Page emitter: render every route and write it under the output root."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, NamedTuple, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from fundsite.errors import FatalIOError, RenderError
from fundsite.models.render import AssetBundle, RenderResult
from fundsite.models.route import Route
from fundsite.services.normalizer import extract_robots, normalize_url
from fundsite.services.renderer import Renderer

logger = logging.getLogger(__name__)

# Strings that only appear when the renderer fell back to an error or loading shell
_ERROR_MARKERS = (
    "Page Loading...",
    "Error rendering page",
    "Internal Server Error",
    "Something went wrong",
)

# Below this size a document cannot hold a real page
_MIN_DOCUMENT_CHARS = 200


class EmitResult(NamedTuple):
    successful: List[Route]
    failed: Dict[str, str]


def output_path_for(root: Path, route_path: str) -> Path:
    """``/`` maps to ``index.html``; every other path to ``{path}/index.html``."""
    relative = route_path.strip("/")
    if not relative:
        return root / "index.html"
    return root / relative / "index.html"


def check_document(route_path: str, result: RenderResult) -> None:
    """Raise :class:`RenderError` when the rendered page is unfinished or does
    not carry the title, canonical and robots directive it declares."""
    html = result.html
    if len(html) < _MIN_DOCUMENT_CHARS:
        raise RenderError(route_path, f"document too short ({len(html)} chars)")

    soup = BeautifulSoup(html, "lxml")
    text = soup.get_text(" ", strip=True)
    for marker in _ERROR_MARKERS:
        if marker in text:
            raise RenderError(route_path, f"document contains error marker {marker!r}")

    seo = result.seo
    title = soup.title.get_text(strip=True) if soup.title else ""
    if not title:
        raise RenderError(route_path, "document has no <title>")
    if title != seo.title.strip():
        raise RenderError(route_path, f"<title> {title!r} differs from declared title {seo.title!r}")

    link = soup.find("link", rel="canonical")
    href = str(link["href"]) if link and link.get("href") else None
    if seo.canonical_url:
        if href is None:
            raise RenderError(route_path, "document has no canonical link")
        if normalize_url(urljoin(seo.canonical_url, href)) != normalize_url(seo.canonical_url):
            raise RenderError(route_path, f"canonical {href!r} differs from declared {seo.canonical_url!r}")

    robots = extract_robots(html)
    if robots != seo.robots_directive:
        raise RenderError(route_path, f"robots meta {robots!r} differs from declared {seo.robots_directive!r}")


class PageEmitter:
    """Calls the renderer once per route and writes the result to disk.

    A failure on one route is logged and recorded; the remaining routes
    still render.  Routes own disjoint output paths, so rendering runs on a
    bounded thread pool.
    """

    def __init__(self, renderer: Renderer, output_root: Path, assets: AssetBundle, max_workers: int = 8) -> None:
        self.renderer = renderer
        self.output_root = Path(output_root)
        self.assets = assets
        self.max_workers = max_workers

    def emit_one(self, route: Route) -> Path:
        try:
            result = self.renderer.render(route, self.assets)
        except Exception as exc:
            raise RenderError(route.path, str(exc)) from exc
        check_document(route.path, result)

        target = output_path_for(self.output_root, route.path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(result.html, encoding="utf-8")
        except OSError as exc:
            raise FatalIOError(f"Cannot write {target}: {exc}") from exc
        return target

    def emit_all(self, routes: Sequence[Route]) -> EmitResult:
        successful: List[Route] = []
        failed: Dict[str, str] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {pool.submit(self.emit_one, route): route for route in routes}
            for future in as_completed(futures):
                route = futures[future]
                try:
                    future.result()
                except RenderError as exc:
                    logger.error("Render failed for %s: %s", exc.route_path, exc.reason)
                    failed[route.path] = exc.reason
                else:
                    successful.append(route)

        # Completion order is non-deterministic; report in discovery order
        order = {route.path: i for i, route in enumerate(routes)}
        successful.sort(key=lambda r: order[r.path])
        logger.info("Rendered %d/%d routes (%d failed)", len(successful), len(routes), len(failed))
        return EmitResult(successful=successful, failed=dict(sorted(failed.items())))
