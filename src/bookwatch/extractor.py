"""Theatre listing extraction from a rendered booking page."""

import logging

from bookwatch.config import Selectors
from bookwatch.models import TheatreObservation
from bookwatch.renderer import Document, Element

logger = logging.getLogger(__name__)


async def extract_listings(
    document: Document, selectors: Selectors
) -> list[TheatreObservation]:
    """Return the theatres listed on ``document``, in page order.

    Raises NotFoundError("container") when the listing region is absent.
    An empty container is a valid result: nothing is bookable yet.
    """
    container = await document.find_one(selectors.container, what="container")
    items = await container.find_all(selectors.item)

    observations: list[TheatreObservation] = []
    for item in items:
        name = await _theatre_name(item, selectors.name)
        if not name:
            continue

        show_count = 0
        if selectors.count:
            show_count = len(await item.find_all(selectors.count))

        observations.append(TheatreObservation(name=name, show_count=show_count))

    logger.debug(
        "Extracted %d theatres from %d listing items", len(observations), len(items)
    )
    return observations


async def _theatre_name(item: Element, name_selector: str) -> str:
    if not name_selector:
        return (await item.text()).strip()

    # The item's full text includes showtimes, so it can't stand in for
    # a configured name element.
    matches = await item.find_all(name_selector)
    if not matches:
        logger.debug("Listing item has no %s element, ignoring it", name_selector)
        return ""
    return (await matches[0].text()).strip()
