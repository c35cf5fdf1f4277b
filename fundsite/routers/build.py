import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from fundsite.config import BuildConfig
from fundsite.errors import ContentSourceError, FatalIOError
from fundsite.models.build import BuildReport, BuildRequest
from fundsite.services.context import BuildContext
from fundsite.services.orchestrator import EXIT_FATAL_IO, BuildOrchestrator

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


def config_for(body) -> BuildConfig:
    """Environment configuration with the request's overrides applied."""
    overrides = body.model_dump(exclude_none=True)
    if "site_url" in overrides:
        overrides["site_url"] = str(body.site_url)
    try:
        return BuildConfig.from_env(**overrides)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def context_for(config: BuildConfig) -> BuildContext:
    try:
        return BuildContext(config)
    except FatalIOError as exc:
        logger.error("No usable content source: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))


@router.post(
    "/build",
    response_model=BuildReport,
    summary="Run the full build pipeline",
    description=(
        "Renders every page, writes the manifest, 404 page, sitemaps and robots.txt, "
        "then runs every validator.  Returns the build report; HTTP 422 when the "
        "build gate rejects the output, 500 on fatal I/O, 502 when content cannot "
        "be fetched."
    ),
)
@limiter.limit("2/minute")
def build_site(request: Request, body: BuildRequest) -> BuildReport:
    config = config_for(body)
    logger.info("Build request received for %s into %s", config.site_url, config.output_root)

    report = BuildOrchestrator(context_for(config)).run()
    if report.ok:
        return report

    payload = report.model_dump(mode="json")
    if report.exit_code == EXIT_FATAL_IO:
        status = 502 if report.error_type == ContentSourceError.__name__ else 500
        return JSONResponse(status_code=status, content=payload)
    return JSONResponse(status_code=422, content=payload)


def fail_fatal(exc: Exception) -> HTTPException:
    """HTTP error for a fatal pipeline exception."""
    if isinstance(exc, ContentSourceError):
        logger.error("Content source failed: %s", exc)
        return HTTPException(status_code=502, detail=str(exc))
    logger.error("Fatal I/O error: %s", exc)
    return HTTPException(status_code=500, detail=str(exc))
