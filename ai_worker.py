import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from ai_providers import AIProviderError, FreepikClient
from jobs import (
    COMPLETED,
    FAILED,
    PENDING,
    JobNotFound,
    JobRecord,
    JobStore,
)
from time_utils import age_seconds, epoch_seconds

logger = logging.getLogger("imagejobs.worker")

Sleep = Callable[[float], Awaitable[None]]

MSG_COMPLETED = "Completed"
MSG_IN_PROGRESS = "In progress"
MSG_PROVIDER_FAILED = "Generation failed"
MSG_TIMEOUT = "Timeout polling provider"
MSG_SERVER_ERROR = "Server error while polling"


def _write(
    store: JobStore,
    job_id: str,
    status: str,
    *,
    message: str,
    results: Optional[List[str]] = None,
) -> None:
    current = store.get(job_id)
    store.set(current.model_copy(update={"status": status, "message": message, "results": list(results or [])}))


async def poll_provider_job(
    job_id: str,
    provider_job_id: str,
    *,
    store: JobStore,
    provider: FreepikClient,
    poll_interval: float,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
) -> None:
    """
    Drive one job from PENDING to COMPLETED or FAILED.

    Every iteration waits `poll_interval`, asks the provider once and writes
    the outcome into the store. Provider errors only consume an attempt.
    When `max_attempts` run out the job is failed with a timeout message.
    If the reaper evicts the record meanwhile, the write raises JobNotFound
    and polling stops without recreating the record.
    """
    attempts = 0
    try:
        while attempts < max_attempts:
            attempts += 1
            await sleep(poll_interval)

            try:
                state = await provider.query_job(provider_job_id)
            except AIProviderError as exc:
                logger.warning(
                    "[poll] job_id=%s attempt=%s provider error=%s", job_id, attempts, exc
                )
                continue

            logger.info(
                "[poll] job_id=%s attempt=%s status=%s artifacts=%s",
                job_id, attempts, state.status or "-", len(state.artifacts),
            )

            if state.status == COMPLETED and state.artifacts:
                _write(store, job_id, COMPLETED, message=MSG_COMPLETED, results=state.artifacts)
                return
            if state.status == FAILED:
                _write(store, job_id, FAILED, message=state.error_message or MSG_PROVIDER_FAILED)
                return
            _write(store, job_id, PENDING, message=MSG_IN_PROGRESS)

        logger.warning("[poll] job_id=%s attempts=%s stage=timeout", job_id, attempts)
        _write(store, job_id, FAILED, message=MSG_TIMEOUT)
    except JobNotFound:
        logger.info("[poll] job_id=%s evicted, polling stopped", job_id)
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("[poll] job_id=%s attempt=%s stage=error", job_id, attempts)
        try:
            _write(store, job_id, FAILED, message=MSG_SERVER_ERROR)
        except Exception:
            logger.exception("[poll] job_id=%s could not record failure", job_id)


def is_expired(record: JobRecord, ttl_seconds: float, now: float) -> bool:
    return age_seconds(record.created_at, now) > ttl_seconds


def sweep_expired_jobs(store: JobStore, ttl_seconds: float, now: Optional[float] = None) -> None:
    now = epoch_seconds() if now is None else now
    expired = [r.id for r in store.snapshot() if is_expired(r, ttl_seconds, now)]
    for job_id in expired:
        store.delete(job_id)
    if expired:
        logger.info("[reaper] evicted=%s ttl=%ss", len(expired), ttl_seconds)


async def run_reaper(
    store: JobStore,
    *,
    ttl_seconds: float,
    interval_seconds: float,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], float] = epoch_seconds,
) -> None:
    while True:
        await sleep(interval_seconds)
        try:
            sweep_expired_jobs(store, ttl_seconds, now=clock())
        except Exception:
            logger.exception("[reaper] sweep failed")
