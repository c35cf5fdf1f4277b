"""Build orchestrator: the linear stage machine behind the CLI and the API.

Init -> AssetCheck -> RenderAll -> WriteManifest -> Generate404 ->
WriteRedirects -> GenerateSitemaps -> ValidateSitemapURLs ->
ValidateCanonicals -> VerifyCriticalFiles -> ValidateHTML -> Done, or Fail at
the first stage the build gate rejects.

Render failures are deferred: every route is attempted, the manifest still
records the failures, and only then does the build fail.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from fundsite.errors import ContentSourceError, FatalIOError, SitemapError, ValidationError
from fundsite.models.build import BuildReport, StageOutcome
from fundsite.models.issues import ValidationIssue, errors_in, warnings_in
from fundsite.models.render import AssetBundle
from fundsite.models.route import Route
from fundsite.models.sitemap import SitemapResult
from fundsite.services import artifacts
from fundsite.services.canonical_validator import validate_canonicals
from fundsite.services.context import BuildContext
from fundsite.services.emitter import PageEmitter, output_path_for
from fundsite.services.gate import BuildGate
from fundsite.services.html_validator import validate_html_tree
from fundsite.services.indexability import IndexabilityClassifier
from fundsite.services.renderer import Renderer, TemplateRenderer
from fundsite.services.routes import DiscoveredRoutes, discover_routes
from fundsite.services.sitemap import SitemapBuilder
from fundsite.services.url_validator import validate_sitemap_urls

logger = logging.getLogger(__name__)

# Process exit codes
EXIT_OK = 0
EXIT_BUILD_FAILED = 1
EXIT_FATAL_IO = 2


class Stage(str, Enum):
    INIT = "init"
    ASSET_CHECK = "asset-check"
    RENDER_ALL = "render-all"
    WRITE_MANIFEST = "write-manifest"
    GENERATE_404 = "generate-404"
    WRITE_REDIRECTS = "write-redirects"
    GENERATE_SITEMAPS = "generate-sitemaps"
    VALIDATE_SITEMAP_URLS = "validate-sitemap-urls"
    VALIDATE_CANONICALS = "validate-canonicals"
    VERIFY_CRITICAL_FILES = "verify-critical-files"
    VALIDATE_HTML = "validate-html"
    DONE = "done"
    FAIL = "fail"


class StageResult(NamedTuple):
    ok: bool
    issues: List[ValidationIssue]


class BuildOrchestrator:
    """Runs one build for *context*; construct a new one per invocation."""

    def __init__(
        self,
        context: BuildContext,
        renderer: Optional[Renderer] = None,
        gate: Optional[BuildGate] = None,
    ) -> None:
        self.context = context
        self.config = context.config
        self.root = Path(self.config.output_root)
        self.gate = gate or BuildGate()
        self._renderer = renderer

        self.routes: Optional[DiscoveredRoutes] = None
        self.classifier: Optional[IndexabilityClassifier] = None
        self.assets = AssetBundle()
        self.successful: List[Route] = []
        self.failed: Dict[str, str] = {}
        self.sitemap: Optional[SitemapResult] = None
        self.stages: List[StageOutcome] = []
        self._started = 0.0

    # ── Stages ────────────────────────────────────────────────────────────────

    def init(self) -> StageResult:
        snapshot = self.context.snapshot()
        self.routes = discover_routes(snapshot)
        self.classifier = IndexabilityClassifier(
            snapshot, self.context.is_fund_complete, self.config.gone_team_members
        )
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FatalIOError(f"Cannot create output root {self.root}: {exc}") from exc
        return StageResult(True, list(self.routes.issues))

    def asset_check(self) -> StageResult:
        self.assets = artifacts.collect_assets(self.config.resolved_assets_dir, self.root)
        return StageResult(True, [])

    def render_all(self) -> StageResult:
        renderer = self._renderer or TemplateRenderer(self.config, self.classifier)
        emitter = PageEmitter(renderer, self.root, self.assets, self.config.max_workers)
        result = emitter.emit_all(self.routes.routes)
        self.successful = result.successful
        self.failed = result.failed
        issues = [ValidationIssue.error(f"Render failed: {reason}", path) for path, reason in self.failed.items()]
        return StageResult(not self.failed, issues)

    def write_manifest(self) -> StageResult:
        artifacts.write_manifest(
            self.root,
            self.successful,
            self.failed,
            self.routes.by_type(),
            time.monotonic() - self._started,
        )
        return StageResult(True, [])

    def generate_404(self) -> StageResult:
        artifacts.write_not_found_page(self.root)
        return StageResult(True, [])

    def write_redirects(self) -> StageResult:
        snapshot = self.context.snapshot()
        artifacts.write_redirects(self.root, snapshot.categories, snapshot.tags, (r.path for r in self.successful))
        return StageResult(True, [])

    def generate_sitemaps(self) -> StageResult:
        build = SitemapBuilder(self.config, self.classifier).build(self.successful, self.root)
        self.sitemap = build.result
        return StageResult(True, build.issues)

    def validate_sitemap_urls(self) -> StageResult:
        issues = validate_sitemap_urls(self.root, self.config.base_url, self.context.snapshot())
        return StageResult(not errors_in(issues), issues)

    def validate_canonicals(self) -> StageResult:
        report = validate_canonicals(self.root, self.config.base_url)
        artifacts.write_json(self.root / artifacts.CANONICAL_REPORT_PATH, report.model_dump(mode="json"))
        return StageResult(not errors_in(report.issues), report.issues)

    def verify_critical_files(self) -> StageResult:
        issues = artifacts.verify_critical_files(self.root)
        return StageResult(not errors_in(issues), issues)

    def validate_html(self) -> StageResult:
        report = validate_html_tree(self.root, self.config.base_url)
        artifacts.write_json(self.root / artifacts.HTML_REPORT_FILENAME, report.model_dump(mode="json"))
        issues = report.issues()
        return StageResult(not errors_in(issues), issues)

    # ── Driver ────────────────────────────────────────────────────────────────

    def pipeline(self) -> List[Tuple[Stage, Callable[[], StageResult]]]:
        return [
            (Stage.INIT, self.init),
            (Stage.ASSET_CHECK, self.asset_check),
            (Stage.RENDER_ALL, self.render_all),
            (Stage.WRITE_MANIFEST, self.write_manifest),
            (Stage.GENERATE_404, self.generate_404),
            (Stage.WRITE_REDIRECTS, self.write_redirects),
            (Stage.GENERATE_SITEMAPS, self.generate_sitemaps),
            (Stage.VALIDATE_SITEMAP_URLS, self.validate_sitemap_urls),
            (Stage.VALIDATE_CANONICALS, self.validate_canonicals),
            (Stage.VERIFY_CRITICAL_FILES, self.verify_critical_files),
            (Stage.VALIDATE_HTML, self.validate_html),
        ]

    def _run_stage(self, stage: Stage, step: Callable[[], StageResult]) -> StageResult:
        logger.info("Stage %s started", stage.value)
        result = step()
        self.context.record(result.issues)
        self.stages.append(
            StageOutcome(
                stage=stage.value,
                ok=result.ok,
                error_count=len(errors_in(result.issues)),
                warning_count=len(warnings_in(result.issues)),
            )
        )
        return result

    def run(self) -> BuildReport:
        self._started = time.monotonic()
        current = Stage.INIT
        render_failed = False
        try:
            for stage, step in self.pipeline():
                current = stage
                result = self._run_stage(stage, step)
                if stage == Stage.RENDER_ALL:
                    # Deferred: the manifest still records the failures
                    render_failed = not result.ok
                    continue
                self.gate.check(stage.value, result.issues)
                if render_failed and stage == Stage.WRITE_MANIFEST:
                    raise ValidationError(Stage.RENDER_ALL.value, errors_in(self.context.issues))
        except ValidationError as exc:
            return self._failed(Stage(exc.stage), EXIT_BUILD_FAILED, exc)
        except SitemapError as exc:
            self.context.record([ValidationIssue.error(str(exc), str(self.root))])
            return self._failed(current, EXIT_BUILD_FAILED, exc)
        except (FatalIOError, ContentSourceError) as exc:
            self.context.record([ValidationIssue.error(str(exc), str(self.root))])
            return self._failed(current, EXIT_FATAL_IO, exc)

        logger.info(
            "Build finished in %.1fs: %d pages, %d sitemap URLs",
            time.monotonic() - self._started,
            len(self.successful),
            self.sitemap.total_urls if self.sitemap else 0,
        )
        self.stages.append(StageOutcome(stage=Stage.DONE.value, ok=True))
        return self._report(ok=True, exit_code=EXIT_OK)

    def _failed(self, stage: Stage, exit_code: int, exc: Exception) -> BuildReport:
        logger.error("Build failed at stage %s: %s", stage.value, exc)
        self.stages.append(StageOutcome(stage=Stage.FAIL.value, ok=False))
        return self._report(ok=False, exit_code=exit_code, failed_stage=stage.value, error_type=type(exc).__name__)

    def _report(
        self,
        ok: bool,
        exit_code: int,
        failed_stage: Optional[str] = None,
        error_type: Optional[str] = None,
    ) -> BuildReport:
        return BuildReport(
            ok=ok,
            exit_code=exit_code,
            failed_stage=failed_stage,
            error_type=error_type,
            stages=self.stages,
            issues=list(self.context.issues),
            counts_by_page_type=self.routes.by_type() if self.routes else {},
            failed_routes=sorted(self.failed),
            sitemap=self.sitemap,
        )


# ── Partial runs over an existing output tree ────────────────────────────────


def regenerate_sitemaps(context: BuildContext) -> SitemapResult:
    """Rebuild the sitemap set and robots.txt for an already emitted tree.

    Only routes whose document exists on disk are candidates.
    """
    config = context.config
    root = Path(config.output_root)
    if not root.is_dir():
        raise FatalIOError(f"Output root not found: {root}")

    snapshot = context.snapshot()
    classifier = IndexabilityClassifier(snapshot, context.is_fund_complete, config.gone_team_members)
    discovered = discover_routes(snapshot)
    emitted = [r for r in discovered.routes if output_path_for(root, r.path).exists()]
    build = SitemapBuilder(config, classifier).build(emitted, root)
    context.record(build.issues)
    return build.result


def validate_output(context: BuildContext) -> List[ValidationIssue]:
    """Run the canonical and URL-shape validators on an existing tree."""
    config = context.config
    root = Path(config.output_root)
    if not root.is_dir():
        raise FatalIOError(f"Output root not found: {root}")

    issues = list(validate_canonicals(root, config.base_url).issues)
    issues.extend(validate_sitemap_urls(root, config.base_url, context.snapshot()))
    context.record(issues)
    return issues
