import asyncio
from typing import Any, Dict, List, Optional

import pytest

from ai_providers import ProviderJobState
from jobs import InMemoryJobStore


class FakeProvider:
    """Scripted stand-in for FreepikClient.

    `states` is consumed one item per query; an exception instance is raised
    instead of returned. The last item repeats once the script runs out.
    """

    def __init__(self, states: Optional[List[Any]] = None, *, task_id: str = "fp-task-1", submit_error: Optional[Exception] = None):
        self.states = list(states or [ProviderJobState("IN_PROGRESS", [])])
        self.task_id = task_id
        self.submit_error = submit_error
        self.submitted: List[Dict[str, Any]] = []
        self.queried: List[str] = []
        self.closed = False

    async def submit_job(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        self.submitted.append({"prompt": prompt, "options": options})
        if self.submit_error is not None:
            raise self.submit_error
        return self.task_id

    async def query_job(self, provider_job_id: str) -> ProviderJobState:
        self.queried.append(provider_job_id)
        item = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


def completed(*urls: str) -> ProviderJobState:
    return ProviderJobState("COMPLETED", list(urls))


def in_progress() -> ProviderJobState:
    return ProviderJobState("IN_PROGRESS", [])


def failed(message: Optional[str] = None) -> ProviderJobState:
    return ProviderJobState("FAILED", [], message)


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()
