# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for the periodic reconciliation sweep.

Uses APScheduler to run StatsReconciler.reconcile_all at a fixed
interval so that counters left stale by an interrupted write converge
without waiting for the next write to the same class.

Example:
    scheduler = ReconciliationScheduler(reconciler, interval_minutes=15)
    await scheduler.start()
    ...
    await scheduler.stop()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.domains.enrollment.errors import EnrollmentServiceError
from src.domains.enrollment.reconciler import ReconciliationReport, StatsReconciler
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepState:
    """Bookkeeping for the sweep job.

    Attributes:
        id: Job identifier.
        name: Human-readable job name.
        interval_minutes: Minutes between runs.
        last_run: Last completed run.
        run_count: Total number of completed runs.
        error_count: Number of failed runs.
        last_report: Report of the last completed run.
    """

    name: str
    interval_minutes: int
    id: str = field(default_factory=lambda: str(uuid4()))
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0
    last_report: ReconciliationReport | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "interval_minutes": self.interval_minutes,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
            "last_drift": len(self.last_report.drift) if self.last_report else None,
        }


class ReconciliationScheduler:
    """Runs the full reconciliation sweep on an interval.

    Attributes:
        _reconciler: Reconciler the sweep calls.
        _scheduler: APScheduler instance, set while running.
        _state: Sweep bookkeeping.
    """

    def __init__(
        self,
        reconciler: StatsReconciler,
        interval_minutes: int = 15,
        start_immediately: bool = False,
    ) -> None:
        self._reconciler = reconciler
        self._scheduler: AsyncIOScheduler | None = None
        self._start_immediately = start_immediately
        self._state = SweepState(
            name="Reconciliation Sweep",
            interval_minutes=interval_minutes,
        )

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    async def run_sweep(self) -> ReconciliationReport | None:
        """Run one sweep.

        Returns:
            The sweep report, or None if the sweep failed.
        """
        logger.debug("Executing scheduled task: %s", self._state.name)
        try:
            report = await self._reconciler.reconcile_all()
        except EnrollmentServiceError as e:
            self._state.error_count += 1
            logger.error("Scheduled task %s failed: %s", self._state.name, str(e))
            return None

        self._state.last_run = utc_now()
        self._state.run_count += 1
        self._state.last_report = report
        if report.has_drift:
            logger.warning(
                "Reconciliation sweep corrected %d drifted counters",
                len(report.drift),
            )
        return report

    async def start(self) -> None:
        """Start the scheduler and register the sweep job."""
        if self._scheduler is not None:
            return

        # next_run_time=None would add the job paused
        extra: dict[str, Any] = {}
        if self._start_immediately:
            extra["next_run_time"] = utc_now()

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(minutes=self._state.interval_minutes),
            id=self._state.id,
            name=self._state.name,
            max_instances=1,
            coalesce=True,
            **extra,
        )
        self._scheduler.start()

        logger.info(
            "Reconciliation scheduler started (every %dm)",
            self._state.interval_minutes,
        )

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Reconciliation scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "sweep": self._state.to_dict(),
        }
