"""Tests for the per-document HTML checks and the build gate that consumes them."""

import json

import pytest

from conftest import SITE_URL
from fundsite.errors import ValidationError
from fundsite.models.render import AssetBundle
from fundsite.models.route import FundRoute, ManagerRoute, TeamMemberRoute
from fundsite.services.gate import BuildGate
from fundsite.services.html_validator import validate_document, validate_html_tree
from fundsite.services.renderer import TemplateRenderer


def _document(
    route="/alpha-growth",
    types=("InvestmentFund", "FAQPage"),
    questions=6,
    padding=6000,
    canonical=None,
    description="A fund page.",
    h1=True,
):
    blocks = []
    for schema_type in types:
        block = {"@context": "https://schema.org", "@type": schema_type}
        if schema_type == "FAQPage":
            block["mainEntity"] = [
                {"@type": "Question", "name": f"Q{i}?", "acceptedAnswer": {"@type": "Answer", "text": "A."}}
                for i in range(questions)
            ]
        blocks.append(f'<script type="application/ld+json">{json.dumps(block)}</script>')

    canonical = SITE_URL + route if canonical is None else canonical
    head = [
        "<title>Alpha Growth Fund</title>",
        f'<meta name="description" content="{description}" />' if description else "",
        f'<link rel="canonical" href="{canonical}" />' if canonical else "",
    ] + blocks
    body = ("<h1>Alpha Growth Fund</h1>" if h1 else "") + "<p>" + "x" * padding + "</p>"
    return f"<!DOCTYPE html><html><head>{''.join(head)}</head><body>{body}</body></html>"


class TestFundPage:
    def test_complete_fund_page_passes(self):
        result = validate_document(_document(), "/alpha-growth", SITE_URL)
        assert result.page_type == "fund"
        assert result.errors == []
        assert result.warnings == []
        assert result.checks.question_count == 6

    def test_missing_investment_fund_schema_is_single_error(self):
        result = validate_document(_document(types=("FAQPage",)), "/alpha-growth", SITE_URL)
        assert result.errors == ["Missing InvestmentFund schema on fund page"]

    def test_gate_rejects_missing_investment_fund_schema(self, tmp_path):
        page = tmp_path / "alpha-growth" / "index.html"
        page.parent.mkdir()
        page.write_text(_document(types=("FAQPage",)), encoding="utf-8")

        report = validate_html_tree(tmp_path, SITE_URL)
        assert report.failed == 1
        assert report.errors_by_type == {"Missing InvestmentFund schema on fund page": 1}
        with pytest.raises(ValidationError) as excinfo:
            BuildGate().check("validate-html", report.issues())
        assert len(excinfo.value.issues) == 1
        assert excinfo.value.issues[0].context == "/alpha-growth"

    def test_too_few_questions_is_warning(self):
        result = validate_document(_document(questions=3), "/alpha-growth", SITE_URL)
        assert result.errors == []
        assert any("3 FAQ questions" in w for w in result.warnings)

    def test_short_fund_page_is_error(self):
        result = validate_document(_document(padding=100), "/alpha-growth", SITE_URL)
        assert any(e.startswith("Content too short") for e in result.errors)
        assert not result.checks.meets_min_length

    def test_legacy_alias_only_needs_a_title(self):
        html = _document(types=(), padding=10, canonical=SITE_URL + "/alpha-growth", description="")
        result = validate_document(html, "/alpha-growth-fund", SITE_URL)
        assert result.page_type == "legacy-alias"
        assert result.errors == []
        assert result.warnings == []


class TestCommonChecks:
    def test_missing_title(self):
        html = _document(route="/about", types=("WebPage",)).replace("<title>Alpha Growth Fund</title>", "")
        assert "Missing title tag" in validate_document(html, "/about", SITE_URL).errors

    def test_multiple_titles(self):
        html = _document(route="/about", types=("WebPage",)).replace("</head>", "<title>Again</title></head>")
        assert "Multiple title tags" in validate_document(html, "/about", SITE_URL).errors

    def test_missing_description_is_error(self):
        html = _document(route="/about", types=("WebPage",), description="")
        assert "Missing meta description" in validate_document(html, "/about", SITE_URL).errors

    def test_soft_problems_are_warnings(self):
        html = _document(route="/about", types=(), canonical="", h1=False, padding=10)
        result = validate_document(html, "/about", SITE_URL)
        assert result.errors == []
        assert "Missing canonical tag" in result.warnings
        assert "Missing structured data (JSON-LD)" in result.warnings
        assert "Missing H1 tag" in result.warnings
        assert any(w.startswith("Content too short") for w in result.warnings)

    def test_invalid_json_ld_is_warning(self):
        html = _document(route="/about", types=("WebPage",)).replace(
            "</head>", '<script type="application/ld+json">{not json</script></head>'
        )
        result = validate_document(html, "/about", SITE_URL)
        assert "1 JSON-LD block(s) could not be parsed" in result.warnings

    def test_category_page_without_faq_is_warning(self):
        html = _document(route="/categories/venture-capital", types=("CollectionPage",))
        result = validate_document(html, "/categories/venture-capital", SITE_URL)
        assert result.errors == []
        assert "Missing FAQPage schema on category page" in result.warnings


class TestTree:
    def test_skips_assets_and_counts_types(self, tmp_path):
        (tmp_path / "assets" / "x").mkdir(parents=True)
        (tmp_path / "assets" / "x" / "index.html").write_text("<html></html>", encoding="utf-8")
        (tmp_path / "index.html").write_text(_document(route="/", types=("WebSite",)), encoding="utf-8")

        report = validate_html_tree(tmp_path, SITE_URL)
        assert report.total_pages == 1
        assert report.counts_by_page_type == {"homepage": 1}
        assert report.passed == 1

    def test_rendered_pages_pass(self, config, classifier):
        renderer = TemplateRenderer(config, classifier)
        routes = [
            FundRoute(path="/alpha-growth", fund_id="alpha-growth"),
            ManagerRoute(path="/manager/alpha-capital", manager_name="Alpha Capital"),
            TeamMemberRoute(path="/team/joana-silva", member_slug="joana-silva"),
        ]
        for route in routes:
            html = renderer.render(route, AssetBundle()).html
            result = validate_document(html, route.path, SITE_URL)
            assert result.errors == [], (route.path, result.errors)

    def test_empty_tree(self, tmp_path):
        report = validate_html_tree(tmp_path, SITE_URL)
        assert report.total_pages == 0
        assert report.issues() == []
