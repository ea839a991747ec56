"""Tests for theatre listing extraction."""

import pytest

from bookwatch.config import Selectors
from bookwatch.errors import NotFoundError
from bookwatch.extractor import extract_listings
from bookwatch.models import TheatreObservation
from conftest import (
    CONTAINER,
    COUNT,
    ITEM,
    NAME,
    FakeDocument,
    FakeElement,
    listing_page,
    venue,
)

SELECTORS = Selectors(container=CONTAINER, item=ITEM, name=NAME, count=COUNT)


class TestExtractListings:
    async def test_names_and_counts_in_page_order(self) -> None:
        doc = listing_page(venue("PVR Lulu", 3), venue("Cinepolis Centre Square", 1))
        assert await extract_listings(doc, SELECTORS) == [
            TheatreObservation("PVR Lulu", 3),
            TheatreObservation("Cinepolis Centre Square", 1),
        ]

    async def test_missing_container_raises(self) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await extract_listings(FakeDocument({}), SELECTORS)
        assert exc_info.value.what == "container"

    async def test_empty_container_is_empty_result(self) -> None:
        assert await extract_listings(listing_page(), SELECTORS) == []

    async def test_names_are_trimmed(self) -> None:
        item = FakeElement(children={NAME: [FakeElement("  Shenoys \n")]})
        assert await extract_listings(listing_page(item), SELECTORS) == [
            TheatreObservation("Shenoys", 0)
        ]

    async def test_blank_names_are_dropped(self) -> None:
        blank = FakeElement(children={NAME: [FakeElement("   ")]})
        doc = listing_page(blank, venue("Kavitha", 2))
        assert await extract_listings(doc, SELECTORS) == [
            TheatreObservation("Kavitha", 2)
        ]

    async def test_no_showtime_elements_counts_zero(self) -> None:
        item = FakeElement(children={NAME: [FakeElement("Padma")]})
        result = await extract_listings(listing_page(item), SELECTORS)
        assert result[0].show_count == 0

    async def test_item_text_without_name_selector(self) -> None:
        selectors = Selectors(container=CONTAINER, item=ITEM)
        doc = listing_page(FakeElement(" Saritha "), FakeElement(""))
        assert await extract_listings(doc, selectors) == [
            TheatreObservation("Saritha", 0)
        ]

    async def test_item_without_name_element_is_ignored(self) -> None:
        unnamed = FakeElement(
            "PVR Lulu\n10:00 AM", children={COUNT: [FakeElement("10:00 AM")]}
        )
        doc = listing_page(unnamed, venue("Sridhar", 2))
        result = await extract_listings(doc, SELECTORS)
        assert result == [TheatreObservation("Sridhar", 2)]
