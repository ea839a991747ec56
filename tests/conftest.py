"""Shared test fixtures and in-memory fakes for the browser and notifiers."""

import json
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from bookwatch.config import Selectors, Settings
from bookwatch.errors import DeliveryError, NotFoundError, RenderTimeoutError
from bookwatch.models import Mode
from bookwatch.renderer import Document, Element, PageRenderer

CONTAINER = ".listing"
ITEM = ".venue"
NAME = ".venue-name"
COUNT = ".showtime"


class FakeElement(Element):
    def __init__(self, text: str = "", children: dict | None = None) -> None:
        self._text = text
        self._children = children or {}

    async def find_all(self, selector: str) -> list[Element]:
        return list(self._children.get(selector, []))

    async def text(self) -> str:
        return self._text


class FakeDocument(Document):
    def __init__(self, elements: dict[str, Element]) -> None:
        self._elements = elements

    async def find_one(self, selector: str, what: str = "element") -> Element:
        if selector not in self._elements:
            raise NotFoundError(what, selector)
        return self._elements[selector]


def venue(name: str, shows: int = 1) -> FakeElement:
    """A listing item with a name element and ``shows`` showtime buttons."""
    return FakeElement(
        text=f"{name}\n" + "\n".join("10:00 AM" for _ in range(shows)),
        children={
            NAME: [FakeElement(name)],
            COUNT: [FakeElement("10:00 AM") for _ in range(shows)],
        },
    )


def listing_page(*items: Element) -> FakeDocument:
    return FakeDocument({CONTAINER: FakeElement(children={ITEM: list(items)})})


class FakeRenderer(PageRenderer):
    """Serves pre-built documents keyed by URL substring.

    A value may be a FakeDocument or an exception to raise from open().
    """

    def __init__(self, pages: dict[str, object] | None = None) -> None:
        self.pages = pages or {}
        self.opened: list[str] = []
        self.closed = 0

    @asynccontextmanager
    async def open(self, url: str, timeout: float):
        self.opened.append(url)
        for key, page in self.pages.items():
            if key in url:
                if isinstance(page, Exception):
                    raise page
                yield page
                return
        raise RenderTimeoutError(f"navigation to {url} timed out")

    async def close(self) -> None:
        self.closed += 1


class FakeChat:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str, str]] = []

    async def send_message(self, body: str, link_text: str, link_url: str) -> None:
        self.sent.append((body, link_text, link_url))
        if self.fail:
            raise DeliveryError("telegram API error: Forbidden")


class FakeCall:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def trigger(self, value: str) -> None:
        self.calls.append(value)
        if self.fail:
            raise DeliveryError("error making IFTTT request: timeout")


def make_record(
    name: str = "Empuraan",
    slug: str = "l2-empuraan",
    code: str = "ET00305698",
    date: str = "20250327",
    found: bool = False,
    theatres: list[str] | None = None,
) -> dict:
    record = {
        "name": name,
        "slug_name": slug,
        "code": code,
        "city": "kochi",
        "city_code": "KOCH",
        "date": date,
        "found": found,
    }
    if theatres is not None:
        record["theatres"] = theatres
    return record


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    path = tmp_path / "bms.json"
    path.write_text(json.dumps([make_record()], indent=4), encoding="utf-8")
    return path


def make_settings(state_file: Path, mode: Mode = Mode.INCREMENTAL, **kw) -> Settings:
    return Settings(
        telegram_bot_token="123:abc",
        telegram_chat_id="42",
        ifttt_webhook_url="https://maker.ifttt.com/trigger/call/with/key/k",
        mode=mode,
        state_file=state_file,
        log_file=None,
        selectors=Selectors(container=CONTAINER, item=ITEM, name=NAME, count=COUNT),
        **kw,
    )
