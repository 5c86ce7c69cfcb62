from typing import Any, Literal

from pydantic import BaseModel


class AsyncSubmission(BaseModel):
    mode: Literal["async"] = "async"
    jobId: str
    status: str
    message: str
    pollUrl: str


class SyncSubmission(BaseModel):
    mode: Literal["sync"] = "sync"
    result: dict[str, Any]


class JobList(BaseModel):
    jobs: list[dict[str, Any]]
    count: int


class QueueStatsResponse(BaseModel):
    available: bool
    waiting: int
    active: int
    completed: int
    failed: int
    delayed: int


class ResolveResponse(BaseModel):
    platform: str
    platformId: str
    chainId: int
    entry: dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    queue: dict[str, Any]
