"""Exception types raised by the build pipeline.

Validators never raise these for content problems; they return
:class:`~fundsite.models.issues.ValidationIssue` lists and the build gate
decides what is fatal.
"""

from typing import List

from fundsite.models.issues import ValidationIssue


class BuildError(Exception):
    """Base class for every pipeline failure."""


class RenderError(BuildError):
    def __init__(self, route_path: str, reason: str) -> None:
        super().__init__(f"Failed to render {route_path}: {reason}")
        self.route_path = route_path
        self.reason = reason


class ValidationError(BuildError):
    """Raised by the build gate when ERROR-severity issues are present."""

    def __init__(self, stage: str, issues: List[ValidationIssue]) -> None:
        super().__init__(f"{stage}: {len(issues)} blocking issue(s)")
        self.stage = stage
        self.issues = issues


class FatalIOError(BuildError):
    """A required input cannot be read or a required output cannot be written."""


class SitemapError(BuildError):
    """The sitemap builder collected nothing to publish."""


class ContentSourceError(BuildError):
    """The content source could not be read, even after retries."""
