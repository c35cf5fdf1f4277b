"""Tests for the page emitter: document checks and per-route failure handling."""

import pytest

from conftest import SITE_URL
from fundsite.errors import RenderError
from fundsite.models.render import AssetBundle
from fundsite.models.route import FundRoute, HomeRoute
from fundsite.services.emitter import PageEmitter, check_document
from fundsite.services.renderer import TemplateRenderer


class _RewritingRenderer:
    """Renders with the stock template, then lets a test alter the result."""

    def __init__(self, inner, html=None, seo=None):
        self.inner = inner
        self.html = html or (lambda text: text)
        self.seo = seo or {}

    def render(self, route, assets):
        result = self.inner.render(route, assets)
        return result.model_copy(update={"html": self.html(result.html), "seo": result.seo.model_copy(update=self.seo)})


@pytest.fixture
def renderer(config, classifier):
    return TemplateRenderer(config, classifier)


def _render(renderer, route=None):
    return renderer.render(route or FundRoute(path="/alpha-growth", fund_id="alpha-growth"), AssetBundle())


class TestCheckDocument:
    def test_stock_page_passes(self, renderer):
        check_document("/alpha-growth", _render(renderer))

    def test_title_with_attributes_passes(self, renderer):
        result = _render(renderer)
        result = result.model_copy(update={"html": result.html.replace("<title>", '<title data-rh="true">')})
        check_document("/alpha-growth", result)

    def test_missing_title_fails(self, renderer):
        result = _render(renderer)
        html = result.html.replace("<title>", "<!-- ").replace("</title>", " -->")
        with pytest.raises(RenderError, match="no <title>"):
            check_document("/alpha-growth", result.model_copy(update={"html": html}))

    def test_declared_title_must_match(self, renderer):
        result = _render(renderer)
        result = result.model_copy(update={"seo": result.seo.model_copy(update={"title": "Another title"})})
        with pytest.raises(RenderError, match="differs from declared title"):
            check_document("/alpha-growth", result)

    def test_declared_canonical_must_match(self, renderer):
        result = _render(renderer)
        seo = result.seo.model_copy(update={"canonical_url": f"{SITE_URL}/beta-yield"})
        with pytest.raises(RenderError, match="canonical"):
            check_document("/alpha-growth", result.model_copy(update={"seo": seo}))

    def test_trailing_slash_on_canonical_is_tolerated(self, renderer):
        result = _render(renderer)
        seo = result.seo.model_copy(update={"canonical_url": result.seo.canonical_url + "/"})
        check_document("/alpha-growth", result.model_copy(update={"seo": seo}))

    def test_declared_robots_must_match(self, renderer):
        result = _render(renderer)
        seo = result.seo.model_copy(update={"robots_directive": "noindex,follow"})
        with pytest.raises(RenderError, match="robots meta"):
            check_document("/alpha-growth", result.model_copy(update={"seo": seo}))

    def test_error_shell_fails(self, renderer):
        result = _render(renderer, HomeRoute())
        html = result.html.replace("</main>", "<p>Something went wrong</p></main>")
        with pytest.raises(RenderError, match="error marker"):
            check_document("/", result.model_copy(update={"html": html}))

    def test_short_document_fails(self, renderer):
        result = _render(renderer).model_copy(update={"html": "<html><title>x</title></html>"})
        with pytest.raises(RenderError, match="too short"):
            check_document("/alpha-growth", result)


class TestPageEmitter:
    def test_attributed_titles_do_not_fail_routes(self, renderer, output_root):
        rewriting = _RewritingRenderer(renderer, html=lambda text: text.replace("<title>", '<title data-rh="true">'))
        routes = [HomeRoute(), FundRoute(path="/alpha-growth", fund_id="alpha-growth")]
        result = PageEmitter(rewriting, output_root, AssetBundle(), max_workers=2).emit_all(routes)

        assert result.failed == {}
        assert [r.path for r in result.successful] == ["/", "/alpha-growth"]
        assert (output_root / "alpha-growth" / "index.html").exists()

    def test_robots_disagreement_is_recorded_per_route(self, renderer, output_root):
        rewriting = _RewritingRenderer(renderer, seo={"robots_directive": "noindex,follow"})
        route = FundRoute(path="/alpha-growth", fund_id="alpha-growth")
        result = PageEmitter(rewriting, output_root, AssetBundle()).emit_all([route])

        assert result.successful == []
        assert "robots meta" in result.failed["/alpha-growth"]
        assert not (output_root / "alpha-growth" / "index.html").exists()
