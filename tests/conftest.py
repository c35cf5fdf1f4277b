"""Shared fixtures: a small but complete content snapshot and a build config
pointing at a temporary output tree."""

import json
from datetime import date

import pytest

from fundsite.config import BuildConfig
from fundsite.services.content_source import JsonContentSource, is_fund_complete, load_snapshot
from fundsite.services.context import BuildContext
from fundsite.services.indexability import IndexabilityClassifier

SITE_URL = "https://funds.example.com"
BUILD_DATE = date(2024, 6, 1)

SNAPSHOT = {
    "funds": [
        {
            "id": "alpha-growth",
            "name": "Alpha Growth Fund",
            "description": "A venture capital fund investing in Portuguese technology start-ups.",
            "detailed_description": "Alpha Growth backs early-stage companies across Lisbon and Porto.",
            "manager_name": "Alpha Capital",
            "category": "Venture Capital",
            "tags": ["Tech", "Low Risk"],
            "minimum_investment": 500000,
            "fund_status": "Open",
            "is_verified": True,
            "updated_at": "2024-05-01",
        },
        {
            "id": "beta-yield",
            "name": "Beta Yield",
            "description": "A venture fund focused on scale-ups with recurring revenue in Portugal.",
            "manager_name": "Beta Partners",
            "category": "Venture Capital",
            "tags": ["Tech"],
            "minimum_investment": 250000,
            "fund_status": "Closing Soon",
        },
    ],
    "categories": ["Real Estate"],
    "team_members": [
        {
            "slug": "joana-silva",
            "name": "Joana Silva",
            "role": "Managing Partner",
            "bio": "Joana has twenty years of experience in private equity across Iberia and Brazil.",
            "company_name": "Alpha Capital",
        },
        {"slug": "rui-costa", "name": "Rui Costa", "role": "Analyst", "bio": "Short bio."},
    ],
}


def write_snapshot(path, data=None):
    path.write_text(json.dumps(SNAPSHOT if data is None else data), encoding="utf-8")
    return path


@pytest.fixture
def snapshot_file(tmp_path):
    return write_snapshot(tmp_path / "snapshot.json")


@pytest.fixture
def snapshot(snapshot_file):
    return load_snapshot(JsonContentSource(snapshot_file))


@pytest.fixture
def classifier(snapshot):
    return IndexabilityClassifier(snapshot, is_fund_complete)


@pytest.fixture
def output_root(tmp_path):
    root = tmp_path / "dist"
    assets = root / "assets"
    assets.mkdir(parents=True)
    (assets / "index-abc123.css").write_text("body{margin:0}", encoding="utf-8")
    (assets / "index-abc123.js").write_text("console.log('ok')", encoding="utf-8")
    return root


@pytest.fixture
def config(output_root, snapshot_file):
    return BuildConfig(
        site_url=SITE_URL,
        output_root=output_root,
        snapshot_path=snapshot_file,
        build_date=BUILD_DATE,
        max_workers=4,
    )


@pytest.fixture
def context(config):
    return BuildContext(config)
