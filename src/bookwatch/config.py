"""Process configuration, read once from the environment.

Values come from ``os.environ`` after loading an optional ``.env`` file.
The resulting :class:`Settings` is passed explicitly to everything that
needs it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

from dotenv import find_dotenv, load_dotenv

from bookwatch.errors import ConfigError
from bookwatch.models import Mode, UrlTemplate

DEFAULT_BASE_URL = "https://in.bookmyshow.com"
DEFAULT_CONTAINER_SELECTOR = ".sc-tk4ce6-2.kozbLe"
DEFAULT_ITEM_SELECTOR = ".sc-e8nk8f-3.iFKUFD"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Selectors:
    """CSS selectors locating the theatre listing on a booking page."""

    container: str = DEFAULT_CONTAINER_SELECTOR
    item: str = DEFAULT_ITEM_SELECTOR
    name: str = ""  # empty = use the item's own text
    count: str = ""  # empty = no per-theatre show count


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    telegram_chat_id: str
    ifttt_webhook_url: str = ""
    mode: Mode = Mode.FIRST_AVAILABILITY
    state_file: Path = Path("bms.json")
    lock_file: Path | None = None
    log_file: Path | None = Path("bms.log")
    url_template: UrlTemplate = UrlTemplate.CURRENT
    base_url: str = DEFAULT_BASE_URL
    selectors: Selectors = Selectors()
    page_timeout: float = 60.0  # seconds
    lookup_timeout: float = 10.0  # seconds
    stealth: bool = True
    profile_dir: Path = Path("/tmp/bookwatch/profiles")
    dry_run: bool = False

    @property
    def run_lock_file(self) -> Path:
        if self.lock_file is not None:
            return self.lock_file
        return self.state_file.with_name(self.state_file.name + ".lock")

    @property
    def places_calls(self) -> bool:
        """First-availability alerts also ring a phone when a webhook is set."""
        return self.mode is Mode.FIRST_AVAILABILITY and bool(self.ifttt_webhook_url)

    def with_overrides(self, **changes) -> Settings:
        """Return a copy with CLI overrides applied and re-validated."""
        updated = replace(self, **changes)
        updated.validate()
        return updated

    def validate(self) -> None:
        problems: list[str] = []
        if not self.telegram_bot_token:
            problems.append("TELEGRAM_BOT_TOKEN environment variable not set")
        if not self.telegram_chat_id:
            problems.append("TELEGRAM_CHAT_ID environment variable not set")
        if self.mode is Mode.INCREMENTAL:
            if not self.selectors.name:
                problems.append(
                    "BOOKWATCH_NAME_SELECTOR is required in incremental mode"
                )
            if not self.selectors.count:
                problems.append(
                    "BOOKWATCH_COUNT_SELECTOR is required in incremental mode"
                )
        if not self.selectors.container or not self.selectors.item:
            problems.append("container and item selectors must not be empty")
        if self.page_timeout <= 0 or self.lookup_timeout <= 0:
            problems.append("timeouts must be positive")
        if problems:
            raise ConfigError(problems)

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        env_file: str | os.PathLike | None = None,
    ) -> Settings:
        """Build settings from environment variables.

        When ``env`` is None the process environment is used, after
        loading ``env_file`` (or ``./.env``) without overriding variables
        that are already set.
        """
        if env is None:
            load_dotenv(env_file or find_dotenv(usecwd=True))
            env = os.environ

        problems: list[str] = []

        def enum_value(key, enum_cls, default):
            raw = env.get(key, "").strip()
            if not raw:
                return default
            try:
                return enum_cls(raw.lower())
            except ValueError:
                choices = ", ".join(m.value for m in enum_cls)
                problems.append(f"{key} must be one of {choices}, got {raw!r}")
                return default

        def float_value(key, default):
            raw = env.get(key, "").strip()
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError:
                problems.append(f"{key} must be a number, got {raw!r}")
                return default

        def bool_value(key, default):
            raw = env.get(key, "").strip().lower()
            if not raw:
                return default
            if raw in _TRUE:
                return True
            if raw in _FALSE:
                return False
            problems.append(f"{key} must be true or false, got {raw!r}")
            return default

        state_file = Path(env.get("BOOKWATCH_STATE_FILE") or "bms.json")
        lock_file = env.get("BOOKWATCH_LOCK_FILE")
        log_file = env.get("BOOKWATCH_LOG_FILE", "bms.log")

        settings = cls(
            telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN", "").strip(),
            telegram_chat_id=env.get("TELEGRAM_CHAT_ID", "").strip(),
            ifttt_webhook_url=env.get("IFTTT_WEBHOOK_API", "").strip(),
            mode=enum_value("BOOKWATCH_MODE", Mode, Mode.FIRST_AVAILABILITY),
            state_file=state_file,
            lock_file=Path(lock_file) if lock_file else None,
            log_file=Path(log_file) if log_file else None,
            url_template=enum_value(
                "BOOKWATCH_URL_TEMPLATE", UrlTemplate, UrlTemplate.CURRENT
            ),
            base_url=env.get("BOOKWATCH_BASE_URL") or DEFAULT_BASE_URL,
            selectors=Selectors(
                container=env.get("BOOKWATCH_CONTAINER_SELECTOR")
                or DEFAULT_CONTAINER_SELECTOR,
                item=env.get("BOOKWATCH_ITEM_SELECTOR") or DEFAULT_ITEM_SELECTOR,
                name=env.get("BOOKWATCH_NAME_SELECTOR", ""),
                count=env.get("BOOKWATCH_COUNT_SELECTOR", ""),
            ),
            page_timeout=float_value("BOOKWATCH_PAGE_TIMEOUT", 60.0),
            lookup_timeout=float_value("BOOKWATCH_LOOKUP_TIMEOUT", 10.0),
            stealth=bool_value("BOOKWATCH_STEALTH", True),
            profile_dir=Path(
                env.get("BOOKWATCH_PROFILE_DIR") or "/tmp/bookwatch/profiles"
            ),
        )

        if problems:
            raise ConfigError(problems)
        return settings
