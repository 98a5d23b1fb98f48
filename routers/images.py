import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from ai_providers import AIProviderError, ProviderRejected
from errors import APIError
from jobs import PENDING
from schemas_common import (
    ErrorResponse,
    GenerateImageRequest,
    JobAcceptedResponse,
    JobStatusResponse,
)
from services.image_jobs import ImageJobService
from time_utils import to_iso

logger = logging.getLogger("imagejobs.api")

router = APIRouter(tags=["images"])

MSG_ACCEPTED = "Task accepted"
MSG_START_FAILED = "Failed to start generation"
MSG_SERVER_ERROR = "Server error starting generation"


def get_image_jobs(request: Request) -> ImageJobService:
    return request.app.state.image_jobs


@router.post(
    "/generate-image",
    status_code=202,
    response_model=JobAcceptedResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def generate_image(
    body: Optional[GenerateImageRequest] = Body(default=None),
    jobs: ImageJobService = Depends(get_image_jobs),
):
    body = body or GenerateImageRequest()
    try:
        record = await jobs.submit(body.prompt, body.options)
    except APIError:
        raise
    except ProviderRejected as exc:
        logger.error("[submit] stage=provider rejected error=%s", exc)
        raise APIError(MSG_START_FAILED, stage="provider", status_code=500)
    except AIProviderError as exc:
        logger.error("[submit] stage=provider status=%s error=%s", exc.status_code, exc)
        extra = {"details": exc.details or str(exc)}
        raise APIError(MSG_START_FAILED, stage="provider", status_code=502, extra=extra)
    except Exception:
        logger.exception("[submit] stage=error")
        raise APIError(MSG_SERVER_ERROR, status_code=500)

    return JobAcceptedResponse(job_id=record.id, status=PENDING, message=MSG_ACCEPTED)


@router.get(
    "/status/{job_id}",
    response_model=JobStatusResponse,
    responses={404: {"model": JobStatusResponse}},
)
async def job_status(job_id: str, jobs: ImageJobService = Depends(get_image_jobs)):
    view = jobs.status(job_id)
    payload = JobStatusResponse(
        ok=view.found,
        job_id=view.job_id,
        status=view.status,
        results=view.results,
        message=view.message,
        created_at=to_iso(view.created_at) if view.created_at is not None else None,
    )
    if not view.found:
        return JSONResponse(status_code=404, content=payload.model_dump(exclude_none=True))
    return payload
