"""Decide what is new on a booking page and record it on the target.

Two policies:

- incremental: every theatre not yet in ``target.theatres`` is recorded
  and produces one event. The target is never settled.
- first availability: the first non-empty listing settles the target
  (``found = True``) and produces a single summary event.

The target is updated in the same step that produces the events, so a
failed delivery later on does not cause a repeat alert next run.
"""

import logging
from typing import Callable

from bookwatch.models import Mode, NotificationEvent, TheatreObservation, WatchTarget

logger = logging.getLogger(__name__)


def should_skip(target: WatchTarget) -> bool:
    """Settled targets are never rendered again."""
    return target.found


def _reconcile_incremental(
    target: WatchTarget, observations: list[TheatreObservation], booking_url: str
) -> list[NotificationEvent]:
    events: list[NotificationEvent] = []
    for obs in observations:
        if not target.mark_seen(obs.name):
            continue
        events.append(
            NotificationEvent(
                target=target,
                booking_url=booking_url,
                theatre=obs.name,
                show_count=obs.show_count,
            )
        )
    return events


def _reconcile_first_availability(
    target: WatchTarget, observations: list[TheatreObservation], booking_url: str
) -> list[NotificationEvent]:
    if target.found:
        return []
    target.found = True
    return [
        NotificationEvent(
            target=target,
            booking_url=booking_url,
            theatre_count=len(observations),
        )
    ]


_POLICIES: dict[
    Mode,
    Callable[[WatchTarget, list[TheatreObservation], str], list[NotificationEvent]],
] = {
    Mode.INCREMENTAL: _reconcile_incremental,
    Mode.FIRST_AVAILABILITY: _reconcile_first_availability,
}


def reconcile(
    target: WatchTarget,
    observations: list[TheatreObservation],
    mode: Mode,
    booking_url: str,
) -> list[NotificationEvent]:
    """Update ``target`` in place and return events in observation order."""
    if not observations:
        return []

    events = _POLICIES[mode](target, observations, booking_url)
    if events:
        logger.info(
            "%s (%s): %d new event(s) from %d listed theatres",
            target.name,
            target.formatted_date,
            len(events),
            len(observations),
        )
    return events
