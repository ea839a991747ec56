"""Notification delivery: Telegram chat messages and IFTTT call triggers.

:class:`Dispatcher` holds the delivery policy. Each event gets exactly one
chat attempt and, in first-availability mode, one call attempt. A failure
on one channel does not stop the other, and nothing is retried: the
target was already updated when the event was produced.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

import requests
from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.helpers import escape_markdown

from bookwatch.errors import DeliveryError
from bookwatch.models import Mode, NotificationEvent

logger = logging.getLogger(__name__)

BOOK_NOW_TEXT = "🎟️ Book Now"


class ChatNotifier(Protocol):
    async def send_message(self, body: str, link_text: str, link_url: str) -> None: ...


class CallTrigger(Protocol):
    async def trigger(self, value: str) -> None: ...


# ------------------------------------------------------------------
# Message formatting
# ------------------------------------------------------------------


def _md(text: str) -> str:
    return escape_markdown(text, version=2)


def format_message(event: NotificationEvent, mode: Mode) -> str:
    """Render a Telegram MarkdownV2 message for an event."""
    target = event.target
    if mode is Mode.INCREMENTAL:
        return (
            "🎬 *New Theatre Open for Booking\\!*\n\n"
            f"🎥 Movie: *{_md(target.name)}*\n"
            f"📅 Date: *{_md(event.formatted_date)}*\n"
            f"🏟️ Theatre: *{_md(event.theatre or '')}*\n"
            f"🎞️ Shows: *{event.show_count or 0}*"
        )
    return (
        "🎬 *ALERT: Bookings Started\\!*\n\n"
        f"🎥 Movie: *{_md(target.name)}*\n"
        f"📅 Date: *{_md(event.formatted_date)}*\n"
        f"🏟️ Found {event.theatre_count or 0} theatres in "
        f"*{_md(target.city.title())}*"
    )


# ------------------------------------------------------------------
# Channels
# ------------------------------------------------------------------


class TelegramNotifier:
    """Sends MarkdownV2 messages with a single link button to one chat."""

    def __init__(self, bot_token: str, chat_id: str) -> None:
        self.chat_id = chat_id
        self._bot = Bot(token=bot_token)
        self._initialized = False

    async def send_message(self, body: str, link_text: str, link_url: str) -> None:
        keyboard = InlineKeyboardMarkup(
            [[InlineKeyboardButton(text=link_text, url=link_url)]]
        )
        try:
            if not self._initialized:
                await self._bot.initialize()
                self._initialized = True
            await self._bot.send_message(
                chat_id=self.chat_id,
                text=body,
                parse_mode=ParseMode.MARKDOWN_V2,
                reply_markup=keyboard,
            )
        except TelegramError as exc:
            raise DeliveryError(f"telegram API error: {exc}") from exc

    async def close(self) -> None:
        if self._initialized:
            await self._bot.shutdown()
            self._initialized = False


class IftttCallTrigger:
    """Fires an IFTTT webhook that places a VoIP call."""

    def __init__(self, webhook_url: str, timeout: float = 15.0) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout

    def _post(self, value: str) -> str:
        try:
            resp = requests.post(
                self.webhook_url, json={"value1": value}, timeout=self.timeout
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise DeliveryError(f"error making IFTTT request: {exc}") from exc
        return resp.text

    async def trigger(self, value: str) -> None:
        body = await asyncio.to_thread(self._post, value)
        logger.info("Got response from IFTTT: %s", body)


# ------------------------------------------------------------------
# Dispatch policy
# ------------------------------------------------------------------


@dataclass
class DispatchOutcome:
    """What happened to one event's delivery attempts."""

    event: NotificationEvent
    chat_sent: bool = False
    call_sent: bool | None = None  # None = not attempted
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.chat_sent and self.call_sent is not False


class Dispatcher:
    def __init__(
        self,
        chat: ChatNotifier,
        mode: Mode,
        call_trigger: CallTrigger | None = None,
        dry_run: bool = False,
    ) -> None:
        self.chat = chat
        self.mode = mode
        self.call_trigger = call_trigger
        self.dry_run = dry_run

    async def dispatch(self, event: NotificationEvent) -> DispatchOutcome:
        """Deliver one event. Never raises DeliveryError."""
        outcome = DispatchOutcome(event=event)
        target = event.target
        body = format_message(event, self.mode)

        if self.dry_run:
            logger.info("[dry run] would send for %s:\n%s", target.name, body)
            outcome.chat_sent = True
            return outcome

        try:
            await self.chat.send_message(body, BOOK_NOW_TEXT, event.booking_url)
            outcome.chat_sent = True
        except DeliveryError as exc:
            logger.error(
                "Error sending Telegram notification for %s (%s) theatre=%s: %s",
                target.name,
                event.formatted_date,
                event.theatre,
                exc,
            )
            outcome.errors.append(str(exc))

        if self.mode is Mode.FIRST_AVAILABILITY and self.call_trigger is not None:
            try:
                await self.call_trigger.trigger(target.name)
                outcome.call_sent = True
            except DeliveryError as exc:
                logger.error(
                    "Error sending IFTTT VoIP call for %s (%s): %s",
                    target.name,
                    event.formatted_date,
                    exc,
                )
                outcome.call_sent = False
                outcome.errors.append(str(exc))

        return outcome
