from typing import Optional, Any, List
from pydantic import BaseModel, Field


class BaseAPIResponse(BaseModel):
    """
    Базовый ответ API.
    """
    ok: bool


class OkResponse(BaseAPIResponse):
    ok: bool = True


class ErrorResponse(BaseAPIResponse):
    ok: bool = False
    error: str
    stage: Optional[str] = None
    details: Optional[str] = None


class GenerateImageRequest(BaseModel):
    # prompt проверяет сервис, чтобы отдать 400 с {error}, а не 422
    prompt: Optional[Any] = None
    options: Optional[Any] = None


class JobAcceptedResponse(OkResponse):
    job_id: str
    status: str
    message: str


class JobStatusResponse(BaseAPIResponse):
    job_id: str
    status: str
    results: List[str] = Field(default_factory=list)
    message: str
    created_at: Optional[str] = None
