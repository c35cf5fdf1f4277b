import logging

from fastapi import APIRouter, HTTPException, Request

from fundsite.errors import ContentSourceError, FatalIOError, SitemapError
from fundsite.models.build import SitemapRequest, SitemapValidationResponse
from fundsite.models.issues import errors_in
from fundsite.models.sitemap import SitemapResult
from fundsite.routers.build import config_for, context_for, fail_fatal, limiter
from fundsite.services.orchestrator import regenerate_sitemaps, validate_output

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sitemaps", tags=["Sitemaps"])


@router.post(
    "/regenerate",
    response_model=SitemapResult,
    summary="Rebuild sitemaps and robots.txt for an existing output tree",
)
@limiter.limit("5/minute")
def regenerate(request: Request, body: SitemapRequest) -> SitemapResult:
    """Re-run the sitemap builder without re-rendering any page.

    Only routes whose document already exists under ``output_root`` are
    candidates; legacy aliases and noindex pages stay excluded.
    """
    context = context_for(config_for(body))
    try:
        return regenerate_sitemaps(context)
    except SitemapError as exc:
        logger.warning("Sitemap regeneration produced nothing: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc))
    except (FatalIOError, ContentSourceError) as exc:
        raise fail_fatal(exc)


@router.post(
    "/validate",
    response_model=SitemapValidationResponse,
    summary="Check canonical consistency and URL shape of the published sitemaps",
)
@limiter.limit("10/minute")
def validate(request: Request, body: SitemapRequest) -> SitemapValidationResponse:
    context = context_for(config_for(body))
    try:
        issues = validate_output(context)
    except (FatalIOError, ContentSourceError) as exc:
        raise fail_fatal(exc)
    return SitemapValidationResponse(valid=not errors_in(issues), issues=issues)
