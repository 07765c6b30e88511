"""HTTP API for link previews."""

import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from backend.app.lifecycle import (
    check_db_health,
    get_db_manager,
    get_extractor,
    get_preview_service,
    is_ready,
    lifespan,
)
from linkpreview.crawler import MetadataExtractor
from linkpreview.errors import InvalidUrlError
from linkpreview.services.preview_service import PreviewService
from linkpreview.utils.url_normalizer import normalize_url

logger = logging.getLogger(__name__)

app = FastAPI(title="Link Preview API", lifespan=lifespan)

# CORS configuration - allow origins can be configured via
# ALLOWED_ORIGINS env var (comma-separated)
allowed = os.environ.get("ALLOWED_ORIGINS", "*")
if allowed == "*":
    origins = ["*"]
else:
    origins = [o.strip() for o in allowed.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LinkIn(BaseModel):
    short_code: str
    url: str


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancer probes."""
    return {"status": "healthy", "service": "link-preview"}


@app.get("/ready")
def readiness_check(request: Request, db=Depends(get_db_manager)):
    """Returns 200 once startup completed and the link store is reachable."""
    if not is_ready(request):
        raise HTTPException(
            status_code=503, detail="Application not ready: startup incomplete"
        )
    db_healthy, db_message = check_db_health(db)
    if not db_healthy:
        raise HTTPException(status_code=503, detail=f"Application not ready: {db_message}")
    return {"status": "ready", "service": "link-preview", "database": db_message}


@app.get("/api/metadata")
def get_metadata(
    url: str = Query(..., description="Page to extract preview metadata from"),
    extractor: MetadataExtractor = Depends(get_extractor),
):
    try:
        normalize_url(url)
    except InvalidUrlError as e:
        raise HTTPException(status_code=400, detail=f"Invalid URL: {e}")

    result = extractor.extract(url)
    return result.to_dict()


@app.post("/api/links", status_code=201)
def create_link(
    payload: LinkIn,
    response: Response,
    service: PreviewService = Depends(get_preview_service),
):
    """Register a caller-chosen short code and extract its preview.

    A URL that is already registered keeps its existing short code, which is
    returned with a 200 instead of creating a second link.
    """
    try:
        existing_code = service.store.lookup_by_url(payload.url)
    except InvalidUrlError as e:
        raise HTTPException(status_code=400, detail=f"Invalid URL: {e}")
    if existing_code is not None:
        existing = service.store.get(existing_code)
        if existing is not None:
            response.status_code = 200
            return existing.to_dict()

    if service.store.get(payload.short_code) is not None:
        raise HTTPException(status_code=409, detail="Short code already exists")
    try:
        service.store.add(payload.short_code, payload.url)
    except InvalidUrlError as e:
        raise HTTPException(status_code=400, detail=f"Invalid URL: {e}")
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Short code or URL already exists")

    record = service.refresh(payload.short_code)
    return record.to_dict()


@app.get("/api/links/{short_code}")
def get_link(
    short_code: str,
    crawler: bool = False,
    force: bool = False,
    service: PreviewService = Depends(get_preview_service),
):
    record = service.get_preview(short_code, is_crawler=crawler, force=force)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown short code")
    return record.to_dict()


@app.post("/api/refresh/{short_code}")
def refresh_link(
    short_code: str, service: PreviewService = Depends(get_preview_service)
):
    record = service.refresh(short_code)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown short code")
    return {"success": True, "record": record.to_dict()}


@app.get("/api/links/{short_code}/card")
def get_social_card(
    short_code: str, service: PreviewService = Depends(get_preview_service)
):
    """Preview fields as served to social-media crawlers."""
    record = service.get_preview(short_code, is_crawler=True)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown short code")
    return service.social_card(record)


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    logger.exception("Unhandled API error", exc_info=exc)
    # Return a JSON-friendly error so clients like `jq` can parse the response
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": str(exc),
        },
    )
