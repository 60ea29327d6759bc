"""Scheduler adapter implementations."""

from lsf_dispatch.orchestrator.scheduler.base import (
    SchedulerAdapter,
    SchedulerError,
    SubmitRequest,
)
from lsf_dispatch.orchestrator.scheduler.lsf import DEBUG_EXTERNAL_ID, LsfScheduler

__all__ = [
    "DEBUG_EXTERNAL_ID",
    "LsfScheduler",
    "SchedulerAdapter",
    "SchedulerError",
    "SubmitRequest",
]
