"""Build gate: the single place where issue severity becomes build failure."""

import logging
from typing import List

from fundsite.errors import ValidationError
from fundsite.models.issues import ValidationIssue, errors_in, warnings_in

logger = logging.getLogger(__name__)


class BuildGate:
    """Logs every issue of a stage and raises on ERROR severity.

    Warnings are logged and kept; they never block a build.
    """

    def check(self, stage: str, issues: List[ValidationIssue]) -> None:
        for warning in warnings_in(issues):
            logger.warning("[%s] %s (%s)", stage, warning.message, warning.context)

        errors = errors_in(issues)
        if not errors:
            return
        for error in errors:
            logger.error("[%s] %s (%s)", stage, error.message, error.context)
        raise ValidationError(stage, errors)
