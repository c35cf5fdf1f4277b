"""Command-line entry point: ``fundsite-build``.

Exit codes: 0 success, 1 build failed (ERROR issues, render failures or an
empty sitemap), 2 fatal I/O or content-source failure.
"""

import argparse
import json
import logging
import os
from datetime import date
from typing import List, Optional

from fundsite.config import BuildConfig
from fundsite.errors import BuildError, ContentSourceError, FatalIOError, SitemapError
from fundsite.logging_config import configure_logging
from fundsite.models.issues import errors_in
from fundsite.services.context import BuildContext
from fundsite.services.orchestrator import (
    EXIT_BUILD_FAILED,
    EXIT_FATAL_IO,
    EXIT_OK,
    BuildOrchestrator,
    regenerate_sitemaps,
    validate_output,
)

logger = logging.getLogger(__name__)


def _config_from_args(args: argparse.Namespace) -> BuildConfig:
    overrides = {
        "site_url": args.site_url,
        "output_root": args.output_root,
        "snapshot_path": args.snapshot,
        "log_level": args.log_level,
    }
    if getattr(args, "assets_dir", None):
        overrides["assets_dir"] = args.assets_dir
    if getattr(args, "max_workers", None):
        overrides["max_workers"] = args.max_workers
    if getattr(args, "build_date", None):
        overrides["build_date"] = date.fromisoformat(args.build_date)
    if getattr(args, "no_disk_audit", False):
        overrides["disk_audit"] = False
    if getattr(args, "no_repair_gaps", False):
        overrides["repair_gaps"] = False
    return BuildConfig.from_env(**overrides)


def run_build(args: argparse.Namespace) -> int:
    context = BuildContext(_config_from_args(args))
    report = BuildOrchestrator(context).run()
    if args.report:
        print(json.dumps(report.model_dump(mode="json"), indent=2, sort_keys=True))
    if not report.ok:
        for issue in errors_in(report.issues):
            logger.error("%s: %s", issue.context, issue.message)
    return report.exit_code


def run_sitemap(args: argparse.Namespace) -> int:
    context = BuildContext(_config_from_args(args))
    try:
        result = regenerate_sitemaps(context)
    except SitemapError as exc:
        logger.error("%s", exc)
        return EXIT_BUILD_FAILED
    print(json.dumps(result.model_dump(mode="json"), indent=2, sort_keys=True))
    return EXIT_OK


def run_validate(args: argparse.Namespace) -> int:
    context = BuildContext(_config_from_args(args))
    issues = validate_output(context)
    for issue in issues:
        log = logger.error if issue.severity == "error" else logger.warning
        log("%s: %s", issue.context, issue.message)
    return EXIT_BUILD_FAILED if errors_in(issues) else EXIT_OK


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--site-url", default=None, help="Public base URL (default: FUNDSITE_SITE_URL)")
    parser.add_argument("--output-root", default=None, help="Output directory (default: FUNDSITE_OUTPUT_ROOT or dist)")
    parser.add_argument("--snapshot", default=None, help="Offline content snapshot JSON instead of Supabase")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fundsite-build",
        description="Render the fund directory, write sitemaps and robots.txt, and gate the build.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_build = sub.add_parser("build", help="Run the full build pipeline")
    _add_common(p_build)
    p_build.add_argument("--assets-dir", default=None, help="Client bundle directory (default: <output-root>/assets)")
    p_build.add_argument("--max-workers", type=int, default=None, help="Render worker threads")
    p_build.add_argument("--build-date", default=None, help="YYYY-MM-DD used as default lastmod")
    p_build.add_argument("--no-disk-audit", action="store_true", help="Skip the on-disk sitemap cross-check")
    p_build.add_argument("--no-repair-gaps", action="store_true", help="Skip the sitemap gap-repair pass")
    p_build.add_argument("--report", action="store_true", help="Print the build report as JSON")
    p_build.set_defaults(func=run_build)

    p_sitemap = sub.add_parser("sitemap", help="Regenerate sitemaps and robots.txt for an existing tree")
    _add_common(p_sitemap)
    p_sitemap.add_argument("--build-date", default=None, help="YYYY-MM-DD used as default lastmod")
    p_sitemap.add_argument("--no-disk-audit", action="store_true", help="Skip the on-disk sitemap cross-check")
    p_sitemap.add_argument("--no-repair-gaps", action="store_true", help="Skip the sitemap gap-repair pass")
    p_sitemap.set_defaults(func=run_sitemap)

    p_validate = sub.add_parser("validate", help="Check canonicals and URL shape of an existing tree")
    _add_common(p_validate)
    p_validate.set_defaults(func=run_validate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or os.environ.get("FUNDSITE_LOG_LEVEL", "INFO"))
    try:
        return args.func(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_FATAL_IO
    except (FatalIOError, ContentSourceError) as exc:
        logger.error("Fatal: %s", exc)
        return EXIT_FATAL_IO
    except BuildError as exc:
        logger.error("Build failed: %s", exc)
        return EXIT_BUILD_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
