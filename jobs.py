# jobs.py
"""
Job records and the store that owns them.

The store is the single source of truth for job state. A record is created by
the job service, rewritten only by its own poller and removed only by the
reaper. Everything runs on one event loop, so each store method is atomic.
"""
from typing import Dict, List, Optional
import uuid

from pydantic import BaseModel, Field, model_validator

from time_utils import epoch_seconds

PENDING = "PENDING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"
NOT_FOUND = "NOT_FOUND"

TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})
JOB_STATUSES = frozenset({PENDING, COMPLETED, FAILED})


class JobStoreError(Exception):
    def __init__(self, job_id: str, message: str):
        super().__init__(f"{message}: {job_id}")
        self.job_id = job_id


class DuplicateJobId(JobStoreError):
    def __init__(self, job_id: str):
        super().__init__(job_id, "Job id already exists")


class JobNotFound(JobStoreError):
    def __init__(self, job_id: str):
        super().__init__(job_id, "Job not found")


class InvalidTransition(JobStoreError):
    def __init__(self, job_id: str, current: str, requested: str):
        super().__init__(job_id, f"Job is {current}, cannot move to {requested}")
        self.current = current
        self.requested = requested


class JobRecord(BaseModel):
    id: str
    status: str = PENDING
    results: List[str] = Field(default_factory=list)
    message: str = ""
    created_at: float = Field(default_factory=epoch_seconds)
    updated_at: float = Field(default_factory=epoch_seconds)
    provider_job_id: Optional[str] = None

    @model_validator(mode="after")
    def check_invariants(self) -> "JobRecord":
        if self.status not in JOB_STATUSES:
            raise ValueError(f"unknown job status: {self.status}")
        # results есть только у COMPLETED, и у COMPLETED они обязательны
        if (self.status == COMPLETED) != bool(self.results):
            raise ValueError("results must be non-empty iff status is COMPLETED")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def new_job_id() -> str:
    return uuid.uuid4().hex


class JobStore:
    """
    Storage contract used by the service, the pollers and the reaper.
    Swap the implementation without touching any of them.
    """

    def create(self, record: JobRecord) -> None:
        raise NotImplementedError

    def get(self, job_id: str) -> JobRecord:
        raise NotImplementedError

    def set(self, record: JobRecord) -> None:
        raise NotImplementedError

    def delete(self, job_id: str) -> None:
        raise NotImplementedError

    def snapshot(self) -> List[JobRecord]:
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._records: Dict[str, JobRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._records

    def create(self, record: JobRecord) -> None:
        if record.id in self._records:
            raise DuplicateJobId(record.id)
        self._records[record.id] = record.model_copy(deep=True)

    def get(self, job_id: str) -> JobRecord:
        record = self._records.get(job_id)
        if record is None:
            raise JobNotFound(job_id)
        return record.model_copy(deep=True)

    def set(self, record: JobRecord) -> None:
        current = self._records.get(record.id)
        # удалённую запись не воскрешаем: поллер должен остановиться
        if current is None:
            raise JobNotFound(record.id)
        if current.is_terminal:
            raise InvalidTransition(record.id, current.status, record.status)
        self._records[record.id] = current.model_copy(
            update={
                "status": record.status,
                "results": list(record.results),
                "message": record.message,
                "updated_at": epoch_seconds(),
            }
        )

    def delete(self, job_id: str) -> None:
        self._records.pop(job_id, None)

    def snapshot(self) -> List[JobRecord]:
        return [r.model_copy(deep=True) for r in list(self._records.values())]
