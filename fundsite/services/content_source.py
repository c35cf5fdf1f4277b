"""Content source adapters: where a build's funds, people and taxonomies come from.

Two adapters share one interface:

* :class:`SupabaseContentSource` reads the live tables over PostgREST with
  ``httpx``; every request carries a timeout and goes through the shared
  retry policy in :mod:`fundsite.services.retry`.
* :class:`JsonContentSource` reads an offline snapshot file, for local
  builds and tests.

:func:`load_snapshot` turns either into one :class:`ContentSnapshot`,
deriving categories, tags, managers and comparisons from the funds.
"""

import json
import logging
from collections import OrderedDict
from itertools import combinations
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from fundsite.errors import ContentSourceError, FatalIOError
from fundsite.models.content import Comparison, ContentSnapshot, Fund, Manager, TeamMember
from fundsite.services.normalizer import slugify
from fundsite.services.retry import retrying

logger = logging.getLogger(__name__)

# Combined description length a fund needs before its page is worth indexing
MIN_FUND_DESCRIPTION_CHARS = 50

_FUND_FIELDS = (
    "id,name,description,detailed_description,manager_name,category,tags,"
    "minimum_investment,fund_status,is_verified,updated_at,faqs"
)


def is_fund_complete(fund: Fund) -> bool:
    """Default fund eligibility predicate.

    A fund qualifies when it has a name and category, a combined description
    of at least ``MIN_FUND_DESCRIPTION_CHARS`` characters, and a real
    (non-zero) minimum investment.
    """
    if not fund.name or not fund.category:
        return False
    if len(fund.description) + len(fund.detailed_description) < MIN_FUND_DESCRIPTION_CHARS:
        return False
    return bool(fund.minimum_investment)


class ContentSource(Protocol):
    def fetch_funds(self) -> List[Fund]: ...

    def fetch_team_members(self) -> List[TeamMember]: ...

    def fetch_manager_profiles(self) -> List[Manager]: ...

    def fetch_categories(self) -> List[str]: ...

    def fetch_tags(self) -> List[str]: ...

    def fetch_comparisons(self) -> List[Comparison]: ...

    def is_fund_complete(self, fund: Fund) -> bool: ...


def _row_to_fund(row: Dict[str, Any]) -> Fund:
    updated = row.get("updated_at") or None
    return Fund(
        id=row["id"],
        name=row.get("name") or "",
        description=row.get("description") or "",
        detailed_description=row.get("detailed_description") or "",
        manager_name=row.get("manager_name") or "",
        category=row.get("category") or "",
        tags=row.get("tags") or [],
        minimum_investment=row.get("minimum_investment") or 0,
        fund_status=row.get("fund_status") or "Open",
        is_verified=bool(row.get("is_verified")),
        # Timestamps arrive as ISO strings; only the date part matters here
        updated_at=str(updated)[:10] if updated else None,
        faqs=row.get("faqs") or [],
    )


class SupabaseContentSource:
    """Reads content from Supabase's PostgREST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        attempts: int = 3,
        retry_multiplier: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._rest_url = base_url.rstrip("/") + "/rest/v1"
        self._headers = {"apikey": api_key, "Authorization": f"Bearer {api_key}"}
        self._timeout = timeout
        self._attempts = attempts
        self._retry_multiplier = retry_multiplier
        self._transport = transport

    def _get_rows(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        url = f"{self._rest_url}/{table}"
        try:
            with httpx.Client(
                timeout=self._timeout, headers=self._headers, transport=self._transport
            ) as client:
                for attempt in retrying(self._attempts, multiplier=self._retry_multiplier):
                    with attempt:
                        resp = client.get(url, params=params)
                        resp.raise_for_status()
                        rows = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Content fetch failed for table %s: %s", table, exc)
            raise ContentSourceError(f"Failed to fetch '{table}': {exc}") from exc

        if not isinstance(rows, list):
            raise ContentSourceError(f"Unexpected payload for '{table}': expected a list")
        logger.info("Fetched %d rows from %s", len(rows), table)
        return rows

    def fetch_funds(self) -> List[Fund]:
        rows = self._get_rows(
            "funds", {"select": _FUND_FIELDS, "order": "final_rank.asc.nullslast"}
        )
        funds: List[Fund] = []
        for row in rows:
            try:
                funds.append(_row_to_fund(row))
            except (KeyError, PydanticValidationError) as exc:
                raise ContentSourceError(f"Malformed fund row {row.get('id')!r}: {exc}") from exc
        return funds

    def fetch_team_members(self) -> List[TeamMember]:
        rows = self._get_rows("team_members", {"select": "slug,name,role,bio,company_name"})
        return [
            TeamMember(
                slug=row["slug"],
                name=row.get("name") or "",
                role=row.get("role") or "",
                bio=row.get("bio") or "",
                company_name=row.get("company_name") or "",
            )
            for row in rows
            if row.get("slug")
        ]

    def fetch_manager_profiles(self) -> List[Manager]:
        rows = self._get_rows("profiles", {"select": "manager_name,company_name,description"})
        profiles: List[Manager] = []
        for row in rows:
            name = row.get("manager_name") or row.get("company_name")
            if name:
                profiles.append(Manager(name=name, description=row.get("description") or ""))
        return profiles

    def fetch_categories(self) -> List[str]:
        return []

    def fetch_tags(self) -> List[str]:
        return []

    def fetch_comparisons(self) -> List[Comparison]:
        return []

    def is_fund_complete(self, fund: Fund) -> bool:
        return is_fund_complete(fund)


class JsonContentSource:
    """Reads content from a snapshot file.

    The file is a JSON object with ``funds`` and optional ``team_members``,
    ``managers``, ``categories``, ``tags`` and ``comparisons`` lists.
    Explicit categories and tags are merged with the ones derived from funds.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except OSError as exc:
                raise FatalIOError(f"Cannot read content snapshot {self._path}: {exc}") from exc
            except ValueError as exc:
                raise ContentSourceError(f"Snapshot {self._path} is not valid JSON: {exc}") from exc
            if not isinstance(data, dict):
                raise ContentSourceError(f"Snapshot {self._path} must be a JSON object, got {type(data).__name__}")
            self._data = data
        return self._data

    def _records(self, key: str, model):
        items = self._load().get(key, [])
        if not isinstance(items, list):
            raise ContentSourceError(f"'{key}' in {self._path} must be a list")
        try:
            return [model.model_validate(item) for item in items]
        except PydanticValidationError as exc:
            raise ContentSourceError(f"Invalid '{key}' entry in {self._path}: {exc}") from exc

    def fetch_funds(self) -> List[Fund]:
        return self._records("funds", Fund)

    def fetch_team_members(self) -> List[TeamMember]:
        return self._records("team_members", TeamMember)

    def fetch_manager_profiles(self) -> List[Manager]:
        return self._records("managers", Manager)

    def fetch_categories(self) -> List[str]:
        return [str(c) for c in self._load().get("categories", [])]

    def fetch_tags(self) -> List[str]:
        return [str(t) for t in self._load().get("tags", [])]

    def fetch_comparisons(self) -> List[Comparison]:
        return self._records("comparisons", Comparison)

    def is_fund_complete(self, fund: Fund) -> bool:
        return is_fund_complete(fund)


def derive_managers(funds: List[Fund], profiles: List[Manager]) -> List[Manager]:
    """Group funds by manager name (case-insensitive), keeping profile text."""
    by_key: "OrderedDict[str, Manager]" = OrderedDict()
    for fund in funds:
        name = fund.manager_name.strip()
        if not name:
            continue
        key = name.lower()
        if key not in by_key:
            by_key[key] = Manager(name=name)
        by_key[key].funds_count += 1

    # Profiles without funds still get a (non-indexable) page
    for profile in profiles:
        key = profile.name.strip().lower()
        if key in by_key:
            by_key[key].description = profile.description
        else:
            by_key[key] = Manager(name=profile.name.strip(), description=profile.description)

    return sorted(by_key.values(), key=lambda m: m.name.lower())


def derive_comparisons(funds: List[Fund]) -> List[Comparison]:
    """Pair every two distinct funds that share a category."""
    by_category: Dict[str, List[str]] = {}
    for fund in funds:
        if fund.category:
            by_category.setdefault(fund.category, []).append(slugify(fund.id))

    pairs: Dict[str, Comparison] = {}
    for category, ids in sorted(by_category.items()):
        for first, second in combinations(sorted(set(ids)), 2):
            comparison = Comparison(fund_a=first, fund_b=second, category=category)
            pairs.setdefault(comparison.slug, comparison)
    return [pairs[k] for k in sorted(pairs)]


def load_snapshot(source: ContentSource) -> ContentSnapshot:
    """Fetch every collection from *source* and assemble the build snapshot."""
    funds = source.fetch_funds()
    team_members = source.fetch_team_members()
    profiles = source.fetch_manager_profiles()

    categories = {f.category for f in funds if f.category} | set(source.fetch_categories())
    tags = {t for f in funds for t in f.tags if t} | set(source.fetch_tags())
    comparisons = source.fetch_comparisons() or derive_comparisons(funds)

    snapshot = ContentSnapshot(
        funds=funds,
        categories=sorted(categories),
        tags=sorted(tags),
        managers=derive_managers(funds, profiles),
        team_members=team_members,
        comparisons=comparisons,
    )
    logger.info(
        "Loaded %d funds, %d categories, %d tags, %d managers, %d team members, %d comparisons",
        len(snapshot.funds),
        len(snapshot.categories),
        len(snapshot.tags),
        len(snapshot.managers),
        len(snapshot.team_members),
        len(snapshot.comparisons),
    )
    return snapshot
