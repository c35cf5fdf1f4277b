"""Per-invocation build context: config, content source and cached snapshot."""

import logging
import threading
from typing import List, Optional

from fundsite.config import BuildConfig
from fundsite.errors import FatalIOError
from fundsite.models.content import ContentSnapshot, Fund
from fundsite.models.issues import ValidationIssue
from fundsite.services.content_source import (
    ContentSource,
    JsonContentSource,
    SupabaseContentSource,
    load_snapshot,
)

logger = logging.getLogger(__name__)


def default_source(config: BuildConfig) -> ContentSource:
    """Pick the content source the configuration points at."""
    if config.snapshot_path is not None:
        return JsonContentSource(config.snapshot_path)
    if config.supabase_url and config.supabase_key:
        return SupabaseContentSource(
            config.supabase_url,
            config.supabase_key,
            timeout=config.fetch_timeout,
            attempts=config.fetch_attempts,
        )
    raise FatalIOError(
        "No content source configured: set FUNDSITE_SNAPSHOT or SUPABASE_URL/SUPABASE_ANON_KEY"
    )


class BuildContext:
    """State shared by every stage of one build.

    The content snapshot is fetched lazily on first use and then reused;
    :meth:`reset` drops it together with any accumulated issues so a test
    (or a long-lived API process) starts from a clean slate.
    """

    def __init__(self, config: BuildConfig, source: Optional[ContentSource] = None) -> None:
        self.config = config
        self.source = source if source is not None else default_source(config)
        self.issues: List[ValidationIssue] = []
        self._snapshot: Optional[ContentSnapshot] = None
        self._lock = threading.Lock()

    def snapshot(self) -> ContentSnapshot:
        with self._lock:
            if self._snapshot is None:
                logger.info("Fetching content snapshot")
                self._snapshot = load_snapshot(self.source)
            return self._snapshot

    def is_fund_complete(self, fund: Fund) -> bool:
        return self.source.is_fund_complete(fund)

    def record(self, issues: List[ValidationIssue]) -> None:
        self.issues.extend(issues)

    def reset(self) -> None:
        with self._lock:
            self._snapshot = None
        self.issues = []
