import logging
from typing import Any, Dict, List, NamedTuple, Optional

import httpx

from http_client import RetryClient, build_client

logger = logging.getLogger("imagejobs.provider")

API_KEY_HEADER = "x-freepik-api-key"


class AIProviderError(Exception):
    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code
        self.details = details


class ProviderUnavailable(AIProviderError):
    """Network failure, missing credential or a non-2xx answer."""


class ProviderProtocolError(AIProviderError):
    """The provider answered, but the body is not what we can read."""


class ProviderRejected(AIProviderError):
    """Well-formed answer without a task id."""


class ProviderJobState(NamedTuple):
    status: str
    artifacts: List[str]
    error_message: Optional[str] = None


def _extract_image_urls(generated: Any) -> List[str]:
    images = []
    if isinstance(generated, list):
        for it in generated:
            if isinstance(it, dict) and it.get("url"):
                images.append(it["url"])
            elif isinstance(it, str):
                images.append(it)
    elif isinstance(generated, str):
        images.append(generated)
    return [u for u in images if isinstance(u, str) and u.strip()]


def _extract_error_message(body: Dict[str, Any], data: Dict[str, Any]) -> Optional[str]:
    err = body.get("error")
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    if isinstance(err, str) and err.strip():
        return err
    data_err = data.get("error")
    if isinstance(data_err, str) and data_err.strip():
        return data_err
    if isinstance(data_err, dict) and data_err.get("message"):
        return str(data_err["message"])
    return None


def _json_object(r: httpx.Response, what: str) -> Dict[str, Any]:
    try:
        body = r.json()
    except ValueError as exc:
        raise ProviderProtocolError(
            f"{what}: response is not JSON", status_code=r.status_code, details=r.text[:500]
        ) from exc
    if not isinstance(body, dict):
        raise ProviderProtocolError(
            f"{what}: unexpected response body", status_code=r.status_code, details=r.text[:500]
        )
    return body


class FreepikClient:
    """
    Client for the Freepik Mystic text-to-image API.
    A job is created with one POST and then followed with GETs by task id.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://api.freepik.com/v1/ai/mystic",
        default_resolution: str = "1k",
        default_model: str = "realism",
        client: Optional[RetryClient] = None,
        timeout_sec: float = 30,
        submit_retries: int = 2,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_resolution = default_resolution
        self.default_model = default_model
        self.submit_retries = submit_retries
        self._client = client or build_client(timeout_sec)

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", API_KEY_HEADER: self.api_key or ""}

    def build_body(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "prompt": prompt,
            "resolution": self.default_resolution,
            "model": self.default_model,
        }
        for key, value in (options or {}).items():
            if key == "prompt" or value is None:
                continue
            body[key] = value
        return body

    async def submit_job(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        if not self.api_key:
            raise ProviderUnavailable("FREEPIK_API_KEY is not set", retryable=False)

        try:
            r = await self._client.post(
                self.base_url,
                json=self.build_body(prompt, options),
                headers=self._headers(),
                retries=self.submit_retries,
            )
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"Provider request failed: {exc!r}", retryable=True) from exc

        if not r.is_success:
            details = r.text[:500]
            logger.error("submit failed status=%s body=%s", r.status_code, details)
            raise ProviderUnavailable(
                f"Provider {r.status_code}",
                retryable=r.status_code >= 500,
                status_code=r.status_code,
                details=details,
            )

        body = _json_object(r, "submit")
        data = body.get("data")
        task_id = data.get("task_id") if isinstance(data, dict) else None
        if not task_id:
            logger.error("no task_id in submit response body=%s", body)
            raise ProviderRejected(f"No task_id in provider response: {body}", status_code=r.status_code)
        return str(task_id)

    async def query_job(self, provider_job_id: str) -> ProviderJobState:
        try:
            # один запрос = одна попытка поллера, без внутренних ретраев
            r = await self._client.get(f"{self.base_url}/{provider_job_id}", headers=self._headers(), retries=0)
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"Provider request failed: {exc!r}", retryable=True) from exc

        if not r.is_success:
            raise ProviderUnavailable(
                f"Provider {r.status_code}",
                retryable=r.status_code >= 500,
                status_code=r.status_code,
                details=r.text[:500],
            )

        body = _json_object(r, "status")
        data = body.get("data")
        if not isinstance(data, dict):
            raise ProviderProtocolError("status: missing data object", status_code=r.status_code)

        return ProviderJobState(
            status=str(data.get("status") or "").upper(),
            artifacts=_extract_image_urls(data.get("generated")),
            error_message=_extract_error_message(body, data),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
