"""Headless browser page rendering.

The watcher only needs a small slice of a browser: open a URL, find one
element, list its children, read their text. :class:`PageRenderer`,
:class:`Document` and :class:`Element` describe that slice;
:class:`PlaywrightRenderer` implements it with a single Chromium instance
per run.

Usage::

    renderer = PlaywrightRenderer(profile_dir, lookup_timeout=10)
    try:
        async with renderer.open(url, timeout=60) as doc:
            container = await doc.find_one(".listing", what="container")
            items = await container.find_all(".theatre")
    finally:
        await renderer.close()
"""

import logging
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncContextManager, AsyncIterator

from playwright.async_api import BrowserContext, ElementHandle, Page, Playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from bookwatch.errors import NotFoundError, RenderError, RenderTimeoutError

logger = logging.getLogger(__name__)

_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)


class Element(ABC):
    @abstractmethod
    async def find_all(self, selector: str) -> list["Element"]:
        """Return matching descendants (empty list if none)."""

    @abstractmethod
    async def text(self) -> str:
        """Return the element's rendered text."""


class Document(ABC):
    @abstractmethod
    async def find_one(self, selector: str, what: str = "element") -> Element:
        """Return the first element matching ``selector``.

        Raises NotFoundError(what) if nothing matches.
        """


class PageRenderer(ABC):
    @abstractmethod
    def open(self, url: str, timeout: float) -> AsyncContextManager[Document]:
        """Navigate to ``url`` and yield the rendered document.

        Raises RenderTimeoutError if navigation takes longer than
        ``timeout`` seconds, RenderError on any other navigation failure.
        """

    async def close(self) -> None:
        """Release browser resources. Safe to call more than once."""


# ------------------------------------------------------------------
# Playwright
# ------------------------------------------------------------------


class PlaywrightElement(Element):
    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    async def find_all(self, selector: str) -> list[Element]:
        handles = await self._handle.query_selector_all(selector)
        return [PlaywrightElement(h) for h in handles]

    async def text(self) -> str:
        return await self._handle.inner_text()


class PlaywrightDocument(Document):
    """A rendered page whose lookups never wait past ``deadline``.

    ``deadline`` is a :func:`time.monotonic` value; lookups made after it
    passes only check what is already attached.
    """

    def __init__(
        self, page: Page, lookup_timeout: float, deadline: float | None = None
    ) -> None:
        self._page = page
        self._lookup_timeout = lookup_timeout
        self._deadline = deadline

    def _wait_ms(self) -> float:
        wait = self._lookup_timeout
        if self._deadline is not None:
            wait = min(wait, self._deadline - time.monotonic())
        # Playwright treats 0 as "no timeout"
        return max(wait * 1000, 1)

    async def find_one(self, selector: str, what: str = "element") -> Element:
        try:
            handle = await self._page.wait_for_selector(
                selector, state="attached", timeout=self._wait_ms()
            )
        except PlaywrightTimeoutError as exc:
            raise NotFoundError(what, selector) from exc
        if handle is None:
            raise NotFoundError(what, selector)
        return PlaywrightElement(handle)


class PlaywrightRenderer(PageRenderer):
    """Chromium via Playwright, launched lazily and shared by all targets.

    The browser profile lives in a fresh directory under ``profile_dir``
    and is removed on :meth:`close`. Profiles left behind by killed runs
    are cleaned up by ``bookwatch-cleanup``.
    """

    def __init__(
        self,
        profile_dir: str | Path,
        lookup_timeout: float = 10.0,
        stealth: bool = True,
    ) -> None:
        self.profile_dir = Path(profile_dir)
        self.lookup_timeout = lookup_timeout
        self.stealth = stealth
        self._playwright: Playwright | None = None
        self._context: BrowserContext | None = None
        self._user_data_dir: Path | None = None

    async def _ensure_context(self) -> BrowserContext:
        if self._context is not None:
            return self._context

        self.profile_dir.mkdir(parents=True, exist_ok=True)
        self._user_data_dir = Path(tempfile.mkdtemp(dir=self.profile_dir))

        logger.info("Launching Playwright Chromium browser...")
        try:
            self._playwright = await async_playwright().start()
            self._context = await self._playwright.chromium.launch_persistent_context(
                str(self._user_data_dir),
                headless=True,
                viewport={"width": 1280, "height": 720},
                locale="en-IN",
                timezone_id="Asia/Kolkata",
                user_agent=_UA,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-gpu",
                    "--disable-blink-features=AutomationControlled",
                ],
            )
            if self.stealth:
                await Stealth().apply_stealth_async(self._context)
        except PlaywrightError as exc:
            await self.close()
            raise RenderError(f"error launching browser: {exc}") from exc

        logger.info("Browser launched (profile=%s)", self._user_data_dir)
        return self._context

    @asynccontextmanager
    async def open(self, url: str, timeout: float) -> AsyncIterator[Document]:
        context = await self._ensure_context()
        try:
            page = await context.new_page()
        except PlaywrightError as exc:
            raise RenderError(f"error opening page: {exc}") from exc
        try:
            deadline = await self._navigate(page, url, timeout)
            yield PlaywrightDocument(page, self.lookup_timeout, deadline)
        finally:
            try:
                await page.close()
            except PlaywrightError:
                logger.debug("Error closing page for %s", url)

    async def _navigate(self, page: Page, url: str, timeout: float) -> float:
        """Load ``url`` and return the monotonic deadline for the whole page."""
        deadline = time.monotonic() + timeout
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout * 1000)
        except PlaywrightTimeoutError as exc:
            raise RenderTimeoutError(
                f"navigation to {url} timed out after {timeout:g}s"
            ) from exc
        except PlaywrightError as exc:
            raise RenderError(f"navigation to {url} failed: {exc}") from exc

        # Listings are rendered client side; give the page whatever is left
        # of its budget to settle, but don't fail if background requests
        # never stop.
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug("No time left to wait for network idle on %s", url)
            return deadline
        try:
            await page.wait_for_load_state("networkidle", timeout=remaining * 1000)
        except PlaywrightTimeoutError:
            logger.debug("Network never went idle for %s", url)
        return deadline

    async def close(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
                logger.info("Browser closed.")
            except Exception:
                logger.exception("Error closing browser")
            self._context = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception:
                logger.exception("Error stopping Playwright")
            self._playwright = None

        if self._user_data_dir is not None:
            shutil.rmtree(self._user_data_dir, ignore_errors=True)
            self._user_data_dir = None
