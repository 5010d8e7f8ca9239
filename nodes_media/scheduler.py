"""Background housekeeping jobs for the web service."""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from nodes_media.resource_guard import ResourceGuard

SWEEP_JOB_ID = "sweep_rate_limits"


def add_sweep_job(scheduler: BackgroundScheduler, guard: ResourceGuard, interval_minutes: int) -> None:
    scheduler.add_job(
        guard.sweep,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=SWEEP_JOB_ID,
        name="Sweep Rate Limit Entries",
        max_instances=1,
        replace_existing=True,
    )


def start_housekeeping(
    guard: ResourceGuard,
    interval_minutes: int,
    logger: Optional[logging.Logger] = None,
    *,
    scheduler: Optional[BackgroundScheduler] = None,
) -> BackgroundScheduler:
    """Start a daemon scheduler that periodically drops stale rate-limit keys."""
    log = logger or logging.getLogger(__name__)
    scheduler = scheduler or BackgroundScheduler(daemon=True)
    add_sweep_job(scheduler, guard, interval_minutes)
    scheduler.start()
    log.info("Rate-limit sweeper started (every %s minutes)", interval_minutes)
    return scheduler


def stop_housekeeping(scheduler: BackgroundScheduler, logger: Optional[logging.Logger] = None) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        (logger or logging.getLogger(__name__)).info("Rate-limit sweeper stopped")


__all__ = ["SWEEP_JOB_ID", "add_sweep_job", "start_housekeeping", "stop_housekeeping"]
