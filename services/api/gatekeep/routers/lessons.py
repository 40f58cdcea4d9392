"""Lesson content: read MDX/metadata files from CONTENT_ROOT through the path sandbox, rate limited per client."""
import json
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from gatekeep.deps import enforce_rate_limit, get_admission_controller
from gatekeep.rate_limit import AdmissionController, RateLimitPolicy
from gatekeep.safe_path import resolve_within_root
from gatekeep.schemas import LEVELS, LessonContent
from gatekeep.settings import settings

logger = logging.getLogger("gatekeep.lessons")

router = APIRouter(prefix="/lessons", tags=["lessons"])

SCOPE = "lessons"
METADATA_FILE = "metadata.json"


def _policy() -> RateLimitPolicy:
    return RateLimitPolicy(max_requests=settings.RATE_LIMIT_LESSONS_PER_MINUTE, window_seconds=60)


@router.get("/content", response_model=LessonContent)
def lesson_content(
    request: Request,
    response: Response,
    path: str | None = Query(None, description="Lesson slug path, e.g. css/selectors"),
    level: str | None = Query(None, description="beginner | intermediate | advanced"),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Return the raw MDX source for one lesson level."""
    limit = enforce_rate_limit(request, controller, SCOPE, _policy())
    response.headers.update(limit.headers())

    if not path or not level:
        raise HTTPException(status_code=400, detail="Missing path or level parameter", headers=limit.headers())
    if level not in LEVELS:
        raise HTTPException(status_code=400, detail="Invalid level", headers=limit.headers())

    mdx_path = resolve_within_root(settings.CONTENT_ROOT, path, f"{level}.mdx")
    if mdx_path is None:
        raise HTTPException(status_code=400, detail="Invalid path", headers=limit.headers())
    try:
        source = Path(mdx_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("lesson read failed path=%s level=%s: %s", path, level, e)
        raise HTTPException(status_code=404, detail="Lesson content not found", headers=limit.headers())
    return LessonContent(source=source, level=level)


@router.get("/metadata")
def lesson_metadata(
    request: Request,
    response: Response,
    path: str | None = Query(None, description="Lesson slug path, e.g. css/selectors"),
    controller: AdmissionController = Depends(get_admission_controller),
):
    """Return the lesson's metadata.json as-is (title, levels, prerequisites, ...)."""
    limit = enforce_rate_limit(request, controller, SCOPE, _policy())
    response.headers.update(limit.headers())

    if not path:
        raise HTTPException(status_code=400, detail="Missing path parameter", headers=limit.headers())
    meta_path = resolve_within_root(settings.CONTENT_ROOT, path, METADATA_FILE)
    if meta_path is None:
        raise HTTPException(status_code=400, detail="Invalid path", headers=limit.headers())
    try:
        data = json.loads(Path(meta_path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("lesson metadata unreadable path=%s: %s", path, e)
        raise HTTPException(status_code=404, detail="Lesson metadata not found", headers=limit.headers())
    if not isinstance(data, dict):
        raise HTTPException(status_code=404, detail="Lesson metadata not found", headers=limit.headers())
    return data
