from typing import List, Literal

from pydantic import BaseModel

Severity = Literal["error", "warning"]
RobotsDirective = Literal["index,follow", "noindex,follow"]


class ValidationIssue(BaseModel):
    severity: Severity
    message: str
    context: str = ""

    @classmethod
    def error(cls, message: str, context: str = "") -> "ValidationIssue":
        return cls(severity="error", message=message, context=context)

    @classmethod
    def warning(cls, message: str, context: str = "") -> "ValidationIssue":
        return cls(severity="warning", message=message, context=context)


class IndexabilityDecision(BaseModel):
    is_indexable: bool
    robots_directive: RobotsDirective
    reason: str = "indexable"


def errors_in(issues: List[ValidationIssue]) -> List[ValidationIssue]:
    return [i for i in issues if i.severity == "error"]


def warnings_in(issues: List[ValidationIssue]) -> List[ValidationIssue]:
    return [i for i in issues if i.severity == "warning"]
