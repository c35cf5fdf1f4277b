import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fundsite.logging_config import configure_logging
from fundsite.routers.build import limiter, router as build_router
from fundsite.routers.sitemaps import router as sitemaps_router

configure_logging(os.environ.get("FUNDSITE_LOG_LEVEL", "INFO"))

logger = logging.getLogger(__name__)

app = FastAPI(
    title="fundsite – Static Build & Indexing API",
    description="Builds the fund directory, publishes sitemaps and robots.txt, and gates deploys.",
    version="1.0.0",
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(build_router)
app.include_router(sitemaps_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from fundsite"}
