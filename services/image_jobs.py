# services/image_jobs.py
"""
Приём задач на генерацию и выдача их статуса.
Submission returns as soon as the provider has accepted the job; polling runs
in a detached asyncio task owned by this service.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from ai_providers import FreepikClient
from ai_worker import Sleep, poll_provider_job
from errors import InvalidRequest
from jobs import (
    NOT_FOUND,
    PENDING,
    DuplicateJobId,
    JobNotFound,
    JobRecord,
    JobStore,
    new_job_id,
)
from time_utils import epoch_seconds

logger = logging.getLogger("imagejobs.service")

MSG_STARTED = "Started"
MSG_NOT_FOUND = "Task not found"
ID_ALLOCATION_ATTEMPTS = 5


class JobStatusView(BaseModel):
    job_id: str
    status: str
    results: List[str] = Field(default_factory=list)
    message: str = ""
    created_at: Optional[float] = None

    @property
    def found(self) -> bool:
        return self.status != NOT_FOUND


class ImageJobService:
    def __init__(
        self,
        store: JobStore,
        provider: FreepikClient,
        *,
        poll_interval: float,
        max_attempts: int,
        id_factory: Callable[[], str] = new_job_id,
        clock: Callable[[], float] = epoch_seconds,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.provider = provider
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._id_factory = id_factory
        self._clock = clock
        self._sleep = sleep
        # сильные ссылки, иначе event loop может собрать задачу сборщиком мусора
        self._pollers: Set[asyncio.Task] = set()

    @property
    def active_pollers(self) -> int:
        return len(self._pollers)

    async def submit(self, prompt: Any, options: Optional[Dict[str, Any]] = None) -> JobRecord:
        if not isinstance(prompt, str) or not prompt.strip():
            raise InvalidRequest("Prompt is required")
        if options is not None and not isinstance(options, dict):
            raise InvalidRequest("options must be an object")

        # ошибки провайдера уходят наверх, запись не создаётся
        provider_job_id = await self.provider.submit_job(prompt.strip(), options)

        record = self._create_record(provider_job_id)
        self._spawn_poller(record.id, provider_job_id)
        logger.info("[submit] job_id=%s provider_job_id=%s stage=accepted", record.id, provider_job_id)
        return record

    def _create_record(self, provider_job_id: str) -> JobRecord:
        now = self._clock()
        for _ in range(ID_ALLOCATION_ATTEMPTS):
            record = JobRecord(
                id=self._id_factory(),
                status=PENDING,
                message=MSG_STARTED,
                created_at=now,
                updated_at=now,
                provider_job_id=provider_job_id,
            )
            try:
                self.store.create(record)
                return record
            except DuplicateJobId:
                logger.warning("[submit] job_id=%s already taken, allocating another", record.id)
        raise RuntimeError("Could not allocate a unique job id")

    def _spawn_poller(self, job_id: str, provider_job_id: str) -> asyncio.Task:
        task = asyncio.create_task(
            poll_provider_job(
                job_id,
                provider_job_id,
                store=self.store,
                provider=self.provider,
                poll_interval=self.poll_interval,
                max_attempts=self.max_attempts,
                sleep=self._sleep,
            ),
            name=f"poll-{job_id}",
        )
        self._pollers.add(task)
        task.add_done_callback(self._pollers.discard)
        return task

    def status(self, job_id: str) -> JobStatusView:
        try:
            record = self.store.get(job_id)
        except JobNotFound:
            return JobStatusView(job_id=job_id, status=NOT_FOUND, message=MSG_NOT_FOUND)
        return JobStatusView(
            job_id=record.id,
            status=record.status,
            results=record.results,
            message=record.message,
            created_at=record.created_at,
        )

    async def wait_idle(self) -> None:
        """Wait until every poller started so far has finished."""
        while self._pollers:
            await asyncio.gather(*list(self._pollers), return_exceptions=True)

    async def aclose(self) -> None:
        pending = list(self._pollers)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("[shutdown] cancelled pollers=%s", len(pending))
