"""Page renderer interface and the default server-side HTML template.

The pipeline only depends on :class:`Renderer`; :class:`TemplateRenderer`
is the stock implementation used by the CLI.  It produces a complete
document per route: SEO head (title, description, robots, canonical,
Open Graph), JSON-LD blocks, and a semantic body with one ``<h1>``.
"""

import html
import json
from typing import Any, Dict, List, Protocol, Tuple

from fundsite.config import BuildConfig
from fundsite.models.content import Fund
from fundsite.models.render import AssetBundle, RenderResult, SeoData
from fundsite.models.route import (
    CategoryRoute,
    ComparisonRoute,
    FundAlternativesRoute,
    FundRoute,
    HomeRoute,
    HubRoute,
    LegacyAliasRoute,
    ManagerRoute,
    Route,
    StaticRoute,
    TagRoute,
    TeamMemberRoute,
)
from fundsite.services.indexability import IndexabilityClassifier
from fundsite.services.normalizer import url_for_path
from fundsite.services.routes import (
    HUB_PAGES,
    category_path,
    comparison_path,
    fund_path,
    manager_path,
    tag_path,
)

SITE_NAME = "Movingto Funds"


class Renderer(Protocol):
    def render(self, route: Route, assets: AssetBundle) -> RenderResult: ...


_BASE_CSS = """
:root { --background: 0 0% 100%; --foreground: 0 0% 0%; --muted: 210 40% 96.1%;
  --muted-foreground: 215.4 16.3% 46.9%; --primary: 0 85% 60%; --border: 214.3 31.8% 91.4%;
  --radius: 0.5rem; }
* { box-sizing: border-box; border-color: hsl(var(--border)); }
html, body { margin: 0; padding: 0; width: 100%; overflow-x: hidden;
  font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', 'Roboto', sans-serif; }
body { background-color: hsl(var(--background)); color: hsl(var(--foreground)); line-height: 1.5; }
h1 { font-size: 1.875rem; font-weight: 700; margin-bottom: 1rem; line-height: 1.2; }
@media (min-width: 768px) { h1 { font-size: 2.25rem; } }
h2 { font-size: 1.5rem; font-weight: 600; margin-bottom: 0.75rem; line-height: 1.3; }
h3 { font-size: 1.25rem; font-weight: 500; margin-bottom: 0.5rem; line-height: 1.4; }
a { color: hsl(var(--primary)); text-decoration: none; }
a:hover { text-decoration: underline; }
.site-header, .site-footer { padding: 1rem 1.5rem; background: hsl(var(--muted)); }
.site-header nav ul, .site-footer nav ul { list-style: none; display: flex; flex-wrap: wrap;
  gap: 1rem; margin: 0; padding: 0; }
main { max-width: 72rem; margin: 0 auto; padding: 2rem 1.5rem; }
.lead { font-size: 1.125rem; color: hsl(var(--muted-foreground)); }
.facts { width: 100%; border-collapse: collapse; margin: 1.5rem 0; }
.facts th, .facts td { text-align: left; padding: 0.5rem 0.75rem; border-bottom: 1px solid hsl(var(--border)); }
.card-list { list-style: none; padding: 0; display: grid; gap: 1rem;
  grid-template-columns: repeat(auto-fill, minmax(16rem, 1fr)); }
.card-list li { border: 1px solid hsl(var(--border)); border-radius: var(--radius); padding: 1rem; }
.faq dt { font-weight: 600; margin-top: 1rem; }
.faq dd { margin: 0.25rem 0 0 0; color: hsl(var(--muted-foreground)); }
.disclaimer { font-size: 0.875rem; color: hsl(var(--muted-foreground)); margin-top: 2rem; }
"""

_FOOTER_NOTE = (
    "Information on this site is provided for general guidance only and does not constitute "
    "financial, legal or tax advice. Fund data is supplied by fund managers and public filings; "
    "always read the offering documents and consult a licensed adviser before investing."
)


def _e(value: Any) -> str:
    return html.escape(str(value), quote=True)


# Explainer appended to rich profile pages (funds, managers, team members)
_GUIDE_SECTIONS = (
    (
        "How Golden Visa fund investments work",
        "Portugal's residency-by-investment programme accepts subscriptions of at least 500,000 EUR "
        "into one or more qualifying investment funds. Qualifying funds are collective investment "
        "undertakings incorporated under Portuguese law, with a maturity of at least five years at "
        "the time of investment and at least 60 percent of their assets invested in companies "
        "headquartered in Portugal. Investors subscribe to fund units rather than buying property "
        "directly, and the fund manager is responsible for deploying the capital.",
    ),
    (
        "What to check before investing",
        "Read the fund's prospectus and management regulations, and confirm the fund is registered "
        "with the CMVM, the Portuguese securities regulator. Compare the management, performance, "
        "subscription and redemption fees across funds, since they compound over the holding period. "
        "Look at the manager's track record, the custodian bank, the auditor, and how and when "
        "investors can exit at the end of the fund's life.",
    ),
    (
        "Holding period and residency",
        "Fund units must be held for the full residency period to keep the permit valid. The "
        "minimum stay requirement is an average of seven days per year in Portugal, and after five "
        "years investors may apply for permanent residency or citizenship, subject to the rules in "
        "force at the time. Tax treatment depends on the investor's own residency status and should "
        "be reviewed with a qualified adviser.",
    ),
)


def _guide_html() -> str:
    sections = "".join(f"<h3>{_e(h)}</h3><p>{_e(p)}</p>" for h, p in _GUIDE_SECTIONS)
    return f'<section class="guide"><h2>Investor guide</h2>{sections}</section>'


def _json_ld(block: Dict[str, Any]) -> str:
    payload = json.dumps(block, ensure_ascii=False, sort_keys=True).replace("</", "<\\/")
    return f'<script type="application/ld+json">{payload}</script>'


def _faq_schema(faqs: List[Tuple[str, str]]) -> Dict[str, Any]:
    return {
        "@context": "https://schema.org",
        "@type": "FAQPage",
        "mainEntity": [
            {
                "@type": "Question",
                "name": question,
                "acceptedAnswer": {"@type": "Answer", "text": answer},
            }
            for question, answer in faqs
        ],
    }


def _faq_html(faqs: List[Tuple[str, str]]) -> str:
    items = "".join(f"<dt>{_e(q)}</dt><dd>{_e(a)}</dd>" for q, a in faqs)
    return f'<section><h2>Frequently asked questions</h2><dl class="faq">{items}</dl></section>'


def _fund_faqs(fund: Fund) -> List[Tuple[str, str]]:
    minimum = f"{fund.minimum_investment:,.0f} EUR" if fund.minimum_investment else "not disclosed"
    faqs = [
        (f"What is {fund.name}?", fund.description or f"{fund.name} is an investment fund."),
        (f"What is the minimum investment in {fund.name}?", f"The minimum investment is {minimum}."),
        (f"Who manages {fund.name}?", f"{fund.name} is managed by {fund.manager_name or 'its fund manager'}."),
        (f"Which category does {fund.name} belong to?", f"{fund.name} is listed under {fund.category or 'uncategorised'} funds."),
        (f"Is {fund.name} currently open to investors?", f"The fund status is currently {fund.fund_status}."),
        (
            f"Has {fund.name} been verified?",
            "Yes, the fund's data has been verified." if fund.is_verified else "The fund's data has not been verified yet.",
        ),
    ]
    for item in fund.faqs:
        question = item.get("question")
        answer = item.get("answer")
        if question and answer:
            faqs.append((str(question), str(answer)))
    return faqs


class TemplateRenderer:
    """Renders every route variant to a full HTML document."""

    def __init__(self, config: BuildConfig, classifier: IndexabilityClassifier) -> None:
        self.config = config
        self.classifier = classifier
        self.snapshot = classifier.snapshot

    def url(self, path: str) -> str:
        return url_for_path(self.config.base_url, path)

    # ── Document shell ────────────────────────────────────────────────────────

    def _document(self, seo: SeoData, body: str, assets: AssetBundle, extra_head: str = "") -> str:
        head = [
            '<meta charset="UTF-8" />',
            '<meta name="viewport" content="width=device-width, initial-scale=1.0" />',
            f"<title>{_e(seo.title)}</title>",
            f'<meta name="description" content="{_e(seo.description)}" />',
            f'<meta name="robots" content="{seo.robots_directive}" />',
        ]
        if seo.canonical_url:
            head.append(f'<link rel="canonical" href="{_e(seo.canonical_url)}" />')
            head.append(f'<meta property="og:url" content="{_e(seo.canonical_url)}" />')
        head.extend(
            [
                f'<meta property="og:title" content="{_e(seo.title)}" />',
                f'<meta property="og:description" content="{_e(seo.description)}" />',
                '<meta property="og:type" content="website" />',
                f'<meta property="og:site_name" content="{SITE_NAME}" />',
                '<meta name="twitter:card" content="summary_large_image" />',
            ]
        )
        head.extend(_json_ld(block) for block in seo.structured_data)
        head.extend(f'<link rel="stylesheet" href="{_e(href)}" />' for href in assets.css)
        head.append(f"<style>{_BASE_CSS}</style>")
        if extra_head:
            head.append(extra_head)
        scripts = "".join(f'<script type="module" src="{_e(src)}"></script>' for src in assets.js)
        return (
            '<!DOCTYPE html>\n<html lang="en">\n<head>\n    '
            + "\n    ".join(head)
            + "\n</head>\n<body>\n"
            + self._header()
            + f'<main id="root">{body}</main>\n'
            + self._footer()
            + scripts
            + "\n</body>\n</html>\n"
        )

    def _header(self) -> str:
        links = "".join(f'<li><a href="{p.path}">{_e(p.title)}</a></li>' for p in HUB_PAGES)
        return (
            f'<header class="site-header"><a href="/">{SITE_NAME}</a>'
            f'<nav aria-label="Main"><ul>{links}</ul></nav></header>\n'
        )

    def _footer(self) -> str:
        links = "".join(
            f'<li><a href="{path}">{_e(title)}</a></li>'
            for path, title in (
                ("/about", "About"),
                ("/faqs", "FAQs"),
                ("/contact", "Contact"),
                ("/disclaimer", "Disclaimer"),
                ("/privacy", "Privacy Policy"),
                ("/terms", "Terms of Service"),
            )
        )
        return (
            f'<footer class="site-footer"><nav aria-label="Footer"><ul>{links}</ul></nav>'
            f'<p class="disclaimer">{_e(_FOOTER_NOTE)}</p></footer>\n'
        )

    def _seo(self, route: Route, title: str, description: str, blocks: List[Dict[str, Any]]) -> SeoData:
        decision = self.classifier.classify(route)
        breadcrumb = {
            "@context": "https://schema.org",
            "@type": "BreadcrumbList",
            "itemListElement": [
                {"@type": "ListItem", "position": 1, "name": "Home", "item": self.url("/")},
                {"@type": "ListItem", "position": 2, "name": title, "item": self.url(route.path)},
            ],
        }
        return SeoData(
            title=f"{title} | {SITE_NAME}",
            description=description,
            canonical_url=self.url(route.path),
            structured_data=[*blocks, breadcrumb] if route.path != "/" else blocks,
            robots_directive=decision.robots_directive,
        )

    # ── Page bodies ───────────────────────────────────────────────────────────

    def render(self, route: Route, assets: AssetBundle) -> RenderResult:
        if isinstance(route, LegacyAliasRoute):
            return self._render_alias(route, assets)
        if isinstance(route, HomeRoute):
            seo, body = self._home(route)
        elif isinstance(route, (StaticRoute, HubRoute)):
            seo, body = self._static(route)
        elif isinstance(route, FundRoute):
            seo, body = self._fund(route)
        elif isinstance(route, FundAlternativesRoute):
            seo, body = self._alternatives(route)
        elif isinstance(route, CategoryRoute):
            seo, body = self._listing(route, route.category, "category", [f for f in self.snapshot.funds if f.category.lower() == route.category.lower()])
        elif isinstance(route, TagRoute):
            tag_key = route.tag.lower().replace("-", " ")
            funds = [f for f in self.snapshot.funds if any(t.lower().replace("-", " ") == tag_key for t in f.tags)]
            seo, body = self._listing(route, route.tag, "tag", funds)
        elif isinstance(route, ManagerRoute):
            seo, body = self._manager(route)
        elif isinstance(route, TeamMemberRoute):
            seo, body = self._team_member(route)
        elif isinstance(route, ComparisonRoute):
            seo, body = self._comparison(route)
        else:
            raise ValueError(f"Unsupported route type: {type(route).__name__}")
        return RenderResult(html=self._document(seo, body, assets), seo=seo)

    def _fund_or_fail(self, fund_id: str) -> Fund:
        fund = self.classifier.fund(fund_id)
        if fund is None:
            raise LookupError(f"Fund {fund_id!r} not found in content snapshot")
        return fund

    def _fund_cards(self, funds: List[Fund]) -> str:
        if not funds:
            return "<p>No funds are listed here at the moment.</p>"
        cards = "".join(
            f'<li><h3><a href="{fund_path(f.id)}">{_e(f.name)}</a></h3><p>{_e(f.description[:200])}</p></li>'
            for f in funds
        )
        return f'<ul class="card-list">{cards}</ul>'

    def _home(self, route: HomeRoute) -> Tuple[SeoData, str]:
        organisation = {
            "@context": "https://schema.org",
            "@type": "Organization",
            "name": SITE_NAME,
            "url": self.url("/"),
        }
        website = {"@context": "https://schema.org", "@type": "WebSite", "name": SITE_NAME, "url": self.url("/")}
        seo = self._seo(route, "Portugal Golden Visa Investment Funds", "Compare every Portugal Golden Visa investment fund: fees, minimums, managers and verified data.", [organisation, website])
        seo = seo.model_copy(update={"title": f"{SITE_NAME} | Portugal Golden Visa Investment Funds"})
        categories = "".join(f'<li><a href="{category_path(c)}">{_e(c)}</a></li>' for c in self.snapshot.categories)
        body = (
            "<h1>Portugal Golden Visa Investment Funds</h1>"
            f'<p class="lead">{len(self.snapshot.funds)} funds compared side by side.</p>'
            f"<section><h2>Browse by category</h2><ul>{categories}</ul></section>"
            f"<section><h2>All funds</h2>{self._fund_cards(self.snapshot.funds)}</section>"
        )
        return seo, body

    def _static(self, route) -> Tuple[SeoData, str]:
        blocks: List[Dict[str, Any]] = [
            {"@context": "https://schema.org", "@type": "WebPage", "name": route.title, "url": self.url(route.path)}
        ]
        body = f"<h1>{_e(route.title)}</h1><p class=\"lead\">{_e(route.title)} from {SITE_NAME}.</p>"
        if route.path == "/faqs":
            faqs = [
                ("What is a Golden Visa fund?", "A regulated investment fund whose units qualify for Portugal's residency-by-investment programme."),
                ("How much do I need to invest?", "Qualifying subscriptions start at 500,000 EUR across one or more eligible funds."),
                ("How long must I stay invested?", "Units must be held for at least five years to keep the residency permit."),
                ("Who regulates these funds?", "Portuguese investment funds are supervised by the CMVM."),
                ("Can I compare funds here?", "Yes, every pair of funds in the same category has a side-by-side comparison page."),
            ]
            blocks.append(_faq_schema(faqs))
            body += _faq_html(faqs)
        elif route.path == "/categories":
            body += "<ul>" + "".join(f'<li><a href="{category_path(c)}">{_e(c)}</a></li>' for c in self.snapshot.categories) + "</ul>"
        elif route.path == "/tags":
            body += "<ul>" + "".join(f'<li><a href="{tag_path(t)}">{_e(t)}</a></li>' for t in self.snapshot.tags) + "</ul>"
        elif route.path == "/managers":
            body += "<ul>" + "".join(f'<li><a href="{manager_path(m.name)}">{_e(m.name)}</a></li>' for m in self.snapshot.managers) + "</ul>"
        elif route.path in ("/comparisons", "/compare"):
            body += "<ul>" + "".join(
                f'<li><a href="{comparison_path(c.fund_a, c.fund_b)}">{_e(c.fund_a)} vs {_e(c.fund_b)}</a></li>'
                for c in self.snapshot.comparisons
            ) + "</ul>"
        seo = self._seo(route, route.title, f"{route.title} - {SITE_NAME}: independent data on Portugal Golden Visa funds.", blocks)
        return seo, body

    def _fund(self, route: FundRoute) -> Tuple[SeoData, str]:
        fund = self._fund_or_fail(route.fund_id)
        faqs = _fund_faqs(fund)
        investment_fund = {
            "@context": "https://schema.org",
            "@type": "InvestmentFund",
            "name": fund.name,
            "description": fund.description,
            "url": self.url(route.path),
            "category": fund.category,
            "provider": {"@type": "Organization", "name": fund.manager_name},
            "amount": {"@type": "MonetaryAmount", "currency": "EUR", "value": fund.minimum_investment},
        }
        facts = "".join(
            f"<tr><th>{_e(k)}</th><td>{_e(v)}</td></tr>"
            for k, v in (
                ("Manager", fund.manager_name or "n/a"),
                ("Category", fund.category or "n/a"),
                ("Minimum investment", f"{fund.minimum_investment:,.0f} EUR" if fund.minimum_investment else "n/a"),
                ("Status", fund.fund_status),
                ("Verified", "Yes" if fund.is_verified else "No"),
                ("Tags", ", ".join(fund.tags) or "n/a"),
            )
        )
        body = (
            f"<article><h1>{_e(fund.name)}</h1>"
            f'<p class="lead">{_e(fund.description)}</p>'
            f'<table class="facts">{facts}</table>'
            f"<section><h2>About the fund</h2><p>{_e(fund.detailed_description or fund.description)}</p></section>"
            f"{_faq_html(faqs)}{_guide_html()}"
            f'<p><a href="{fund_path(fund.id)}/alternatives">Alternatives to {_e(fund.name)}</a></p></article>'
        )
        seo = self._seo(route, fund.name, fund.description[:155] or f"{fund.name} fund profile.", [investment_fund, _faq_schema(faqs)])
        return seo, body

    def _alternatives(self, route: FundAlternativesRoute) -> Tuple[SeoData, str]:
        fund = self._fund_or_fail(route.fund_id)
        others = [f for f in self.snapshot.funds if f.id != fund.id and f.category == fund.category]
        item_list = {
            "@context": "https://schema.org",
            "@type": "ItemList",
            "name": f"Alternatives to {fund.name}",
            "itemListElement": [
                {"@type": "ListItem", "position": i, "url": self.url(fund_path(f.id))}
                for i, f in enumerate(others, start=1)
            ],
        }
        title = f"Alternatives to {fund.name}"
        body = f"<h1>{_e(title)}</h1><p class=\"lead\">Funds similar to {_e(fund.name)}.</p>{self._fund_cards(others)}"
        return self._seo(route, title, f"Compare {fund.name} with similar {fund.category} funds.", [item_list]), body

    def _listing(self, route: Route, name: str, kind: str, funds: List[Fund]) -> Tuple[SeoData, str]:
        faqs = [
            (f"Which funds are in the {name} {kind}?", ", ".join(f.name for f in funds) or "None at the moment."),
            (f"How many {name} funds are there?", f"There are {len(funds)} funds listed."),
        ]
        collection = {
            "@context": "https://schema.org",
            "@type": "CollectionPage",
            "name": f"{name} funds",
            "url": self.url(route.path),
        }
        body = f"<h1>{_e(name)} Funds</h1>{self._fund_cards(funds)}{_faq_html(faqs)}"
        seo = self._seo(route, f"{name} Funds", f"All {name} Golden Visa funds compared.", [collection, _faq_schema(faqs)])
        return seo, body

    def _manager(self, route: ManagerRoute) -> Tuple[SeoData, str]:
        key = route.manager_name.strip().lower()
        funds = [f for f in self.snapshot.funds if f.manager_name.strip().lower() == key]
        manager = next((m for m in self.snapshot.managers if m.name.strip().lower() == key), None)
        about = manager.description if manager and manager.description else f"{route.manager_name} manages {len(funds)} listed fund(s)."
        faqs = [
            (f"Which funds does {route.manager_name} manage?", ", ".join(f.name for f in funds) or "None at the moment."),
            (f"How many funds does {route.manager_name} manage?", str(len(funds))),
        ]
        organisation = {"@context": "https://schema.org", "@type": "Organization", "name": route.manager_name, "description": about}
        body = f"<h1>{_e(route.manager_name)}</h1><p class=\"lead\">{_e(about)}</p>{self._fund_cards(funds)}{_faq_html(faqs)}{_guide_html()}"
        return self._seo(route, route.manager_name, about[:155], [organisation, _faq_schema(faqs)]), body

    def _team_member(self, route: TeamMemberRoute) -> Tuple[SeoData, str]:
        member = self.classifier.team_member(route.member_slug)
        if member is None:
            raise LookupError(f"Team member {route.member_slug!r} not found in content snapshot")
        person = {
            "@context": "https://schema.org",
            "@type": "Person",
            "name": member.name,
            "jobTitle": member.role,
            "worksFor": {"@type": "Organization", "name": member.company_name},
        }
        body = (
            f"<article><h1>{_e(member.name)}</h1><p class=\"lead\">{_e(member.role)}"
            f"{' at ' + _e(member.company_name) if member.company_name else ''}</p>"
            f"<section><h2>Biography</h2><p>{_e(member.bio)}</p></section>{_guide_html()}</article>"
        )
        description = (member.bio or member.role)[:155] or f"{member.name or member.slug} on {SITE_NAME}."
        return self._seo(route, member.name or member.slug, description, [person]), body

    def _comparison(self, route: ComparisonRoute) -> Tuple[SeoData, str]:
        first = self._fund_or_fail(route.fund_a)
        second = self._fund_or_fail(route.fund_b)
        title = f"{first.name} vs {second.name}"
        rows = "".join(
            f"<tr><th>{_e(label)}</th><td>{_e(getter(first))}</td><td>{_e(getter(second))}</td></tr>"
            for label, getter in (
                ("Manager", lambda f: f.manager_name),
                ("Category", lambda f: f.category),
                ("Minimum investment", lambda f: f"{f.minimum_investment:,.0f} EUR"),
                ("Status", lambda f: f.fund_status),
            )
        )
        faqs = [
            (f"What is the difference between {first.name} and {second.name}?", f"{first.name} is managed by {first.manager_name}; {second.name} by {second.manager_name}."),
            (f"Which has the lower minimum investment, {first.name} or {second.name}?", (first if first.minimum_investment <= second.minimum_investment else second).name),
        ]
        body = (
            f"<h1>{_e(title)}</h1>"
            f'<table class="facts"><tr><th></th><th>{_e(first.name)}</th><th>{_e(second.name)}</th></tr>{rows}</table>'
            f"{_faq_html(faqs)}"
        )
        web_page = {"@context": "https://schema.org", "@type": "WebPage", "name": title, "url": self.url(route.path)}
        return self._seo(route, title, f"Side-by-side comparison of {first.name} and {second.name}.", [web_page, _faq_schema(faqs)]), body

    def _render_alias(self, route: LegacyAliasRoute, assets: AssetBundle) -> RenderResult:
        fund = self._fund_or_fail(route.fund_id)
        target = self.url(route.target_path)
        seo = SeoData(
            title=f"Redirecting to {fund.name}",
            description=f"{fund.name} has moved to {target}.",
            canonical_url=target,
            structured_data=[],
            robots_directive="noindex,follow",
        )
        refresh = f'<meta http-equiv="refresh" content="0; url={_e(route.target_path)}" />'
        body = f'<h1>{_e(fund.name)}</h1><p>This page has moved to <a href="{_e(route.target_path)}">{_e(target)}</a>.</p>'
        return RenderResult(html=self._document(seo, body, assets, extra_head=refresh), seo=seo)
