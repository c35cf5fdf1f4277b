from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from fundsite.models.issues import ValidationIssue


class HtmlChecks(BaseModel):
    has_title: bool
    has_meta_description: bool
    has_canonical: bool
    canonical_is_self: bool
    has_structured_data: bool
    has_h1: bool
    question_count: int = 0
    content_length: int
    meets_min_length: bool


class HtmlPageResult(BaseModel):
    file_path: str
    route: str
    page_type: str
    checks: HtmlChecks
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class HtmlValidationReport(BaseModel):
    """Per-file structural checks over an emitted tree plus aggregate counts."""

    total_pages: int = 0
    passed: int = 0
    failed: int = 0
    warnings: int = 0
    counts_by_page_type: Dict[str, int] = Field(default_factory=dict)
    errors_by_type: Dict[str, int] = Field(default_factory=dict)
    results: List[HtmlPageResult] = Field(default_factory=list)

    def issues(self) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for result in self.results:
            issues.extend(ValidationIssue.error(msg, result.route) for msg in result.errors)
            issues.extend(ValidationIssue.warning(msg, result.route) for msg in result.warnings)
        return issues


CanonicalStatus = Literal["ok", "missing_file", "missing_canonical", "mismatch"]


class CanonicalCheck(BaseModel):
    loc: str
    file_path: str
    canonical: Optional[str] = None
    status: CanonicalStatus


class CanonicalReport(BaseModel):
    total: int = 0
    ok: int = 0
    missing_files: int = 0
    errors: int = 0
    checks: List[CanonicalCheck] = Field(default_factory=list)
    issues: List[ValidationIssue] = Field(default_factory=list)
