"""
Scheduler module for periodic ledger maintenance.

Runs recurrence materialization and debt auto-pay on a timer using
discord.ext.tasks, for hosts that stay up longer than one launch. Repeated
ticks are harmless: the occurrence and monthly-payment guards decide what
gets posted, not how often the tick runs.
"""

import logging
from datetime import date
from typing import TYPE_CHECKING, Optional

from discord.ext import tasks

from mizan.config import MAINTENANCE_INTERVAL_HOURS

if TYPE_CHECKING:
    from mizan.maintenance import MaintenanceRunner, StartupReport

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Timer-driven maintenance for a long-running host process."""

    def __init__(self, runner: "MaintenanceRunner", interval_hours: float = MAINTENANCE_INTERVAL_HOURS):
        """
        Initialize the scheduler.

        Args:
            runner: The maintenance runner whose periodic passes are invoked
            interval_hours: Hours between two ticks
        """
        self.runner = runner
        self.interval_hours = interval_hours
        self.ticks = 0
        self.last_report: Optional["StartupReport"] = None
        self._started = False
        if interval_hours != MAINTENANCE_INTERVAL_HOURS:
            self.maintenance_task.change_interval(hours=interval_hours)
        logger.info("MaintenanceScheduler initialized")

    @property
    def is_running(self) -> bool:
        return self.maintenance_task.is_running()

    def start(self):
        """Start the periodic task. Must be called with a running event loop."""
        if not self._started:
            self.maintenance_task.start()
            self._started = True
            logger.info(
                f"Maintenance scheduler started, running every {self.interval_hours:g} hours"
            )

    def stop(self):
        """Stop the periodic task."""
        if self._started:
            self.maintenance_task.cancel()
            self._started = False
            logger.info("Maintenance scheduler stopped")

    def run_once(self, today: Optional[date] = None) -> Optional["StartupReport"]:
        """
        Run one maintenance tick synchronously.

        Returns:
            The tick's report, or None if the tick failed outright
        """
        self.ticks += 1
        try:
            self.last_report = self.runner.run_periodic(today)
        except Exception as e:
            logger.error(f"Maintenance tick {self.ticks} failed: {e}", exc_info=True)
            return None
        return self.last_report

    @tasks.loop(hours=MAINTENANCE_INTERVAL_HOURS)
    async def maintenance_task(self):
        """Periodic tick. The store's connection is bound to this thread, so the tick runs inline."""
        logger.info("Starting scheduled maintenance...")
        self.run_once()

    @maintenance_task.error
    async def maintenance_error(self, error: BaseException):
        """Handle errors escaping the maintenance task."""
        logger.error(f"Error in maintenance_task: {error}", exc_info=True)
