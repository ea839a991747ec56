"""One watcher pass over every watch target.

Load state, check each unsettled target in order, save state once. A
failing target is recorded and skipped; only a state-loading failure
stops the run. The browser is always closed before the save.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from bookwatch.config import Settings
from bookwatch.errors import NotFoundError, RenderError, StateFileError
from bookwatch.extractor import extract_listings
from bookwatch.models import NotificationEvent, WatchTarget
from bookwatch.notifier import DispatchOutcome, Dispatcher
from bookwatch.novelty import reconcile, should_skip
from bookwatch.renderer import PageRenderer
from bookwatch.state import StateStore

logger = logging.getLogger(__name__)


class TargetStatus(str, Enum):
    SETTLED = "settled"  # already resolved, not rendered
    CHECKED = "checked"  # rendered and reconciled (possibly nothing new)
    SKIPPED = "skipped"  # render or extraction failure, state untouched
    FAILED = "failed"  # unexpected error


@dataclass
class TargetResult:
    target: WatchTarget
    status: TargetStatus
    reason: str = ""
    theatres_listed: int = 0
    events: list[NotificationEvent] = field(default_factory=list)
    deliveries: list[DispatchOutcome] = field(default_factory=list)


@dataclass
class RunReport:
    results: list[TargetResult] = field(default_factory=list)
    saved: bool = False
    save_error: str = ""
    duration: float = 0.0

    @property
    def events_sent(self) -> int:
        return sum(len(r.events) for r in self.results)

    @property
    def skipped(self) -> list[TargetResult]:
        return [
            r
            for r in self.results
            if r.status in (TargetStatus.SKIPPED, TargetStatus.FAILED)
        ]

    def status_of(self, name: str) -> TargetStatus | None:
        for r in self.results:
            if r.target.name == name:
                return r.status
        return None


class Runner:
    def __init__(
        self,
        settings: Settings,
        store: StateStore,
        renderer: PageRenderer,
        dispatcher: Dispatcher,
    ) -> None:
        self.settings = settings
        self.store = store
        self.renderer = renderer
        self.dispatcher = dispatcher

    async def run(self) -> RunReport:
        """Run one pass. Raises StateError if the state can't be loaded."""
        started = time.monotonic()
        targets = self.store.load()
        report = RunReport()

        try:
            for target in targets:
                report.results.append(await self._process_target(target))
        finally:
            await self.renderer.close()

        if self.settings.dry_run:
            logger.info("Dry run: state not saved")
        else:
            try:
                self.store.save(targets)
                report.saved = True
            except StateFileError as exc:
                logger.error("Error saving final state to JSON: %s", exc)
                report.save_error = str(exc)

        report.duration = time.monotonic() - started
        logger.info(
            "Run completed: %d targets, %d events, %d skipped, duration_in_seconds=%.2f",
            len(report.results),
            report.events_sent,
            len(report.skipped),
            report.duration,
        )
        return report

    async def _process_target(self, target: WatchTarget) -> TargetResult:
        if should_skip(target):
            return TargetResult(target=target, status=TargetStatus.SETTLED)

        try:
            return await self._check_target(target)
        except (RenderError, NotFoundError) as exc:
            logger.error(
                "Skipping %s (%s): %s", target.name, target.formatted_date, exc
            )
            return TargetResult(
                target=target, status=TargetStatus.SKIPPED, reason=str(exc)
            )
        except Exception as exc:
            logger.exception(
                "Unexpected error processing %s (%s)",
                target.name,
                target.formatted_date,
            )
            return TargetResult(
                target=target, status=TargetStatus.FAILED, reason=repr(exc)
            )

    async def _check_target(self, target: WatchTarget) -> TargetResult:
        settings = self.settings
        url = target.booking_url(settings.url_template, settings.base_url)
        logger.info("Checking %s (%s): %s", target.name, target.formatted_date, url)

        # Extraction finishes before the target is touched, so a failure
        # here leaves its state as it was.
        async with self.renderer.open(url, settings.page_timeout) as document:
            observations = await extract_listings(document, settings.selectors)

        events = reconcile(target, observations, settings.mode, url)
        result = TargetResult(
            target=target,
            status=TargetStatus.CHECKED,
            theatres_listed=len(observations),
            events=events,
        )

        for event in events:
            result.deliveries.append(await self.dispatcher.dispatch(event))
            logger.info(
                "Found bookings for %s date=%s theatre=%s theatres=%d city=%s url=%s",
                target.name,
                event.formatted_date,
                event.theatre or "-",
                len(observations),
                target.city,
                url,
            )

        return result
