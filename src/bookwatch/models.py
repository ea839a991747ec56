"""Data models for watch targets, observed listings and notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from bookwatch.errors import StateFormatError


class Mode(str, Enum):
    """Reconciliation policy for a run."""

    INCREMENTAL = "incremental"  # one alert per newly listed theatre
    FIRST_AVAILABILITY = "first_availability"  # one alert, then settle


class UrlTemplate(str, Enum):
    """Booking page URL layouts used by the ticketing site over time."""

    LEGACY = "legacy"
    CURRENT = "current"


_STRING_FIELDS = ("name", "slug_name", "code", "city", "city_code", "date")
_KNOWN_FIELDS = (*_STRING_FIELDS, "found", "theatres")


def format_show_date(compact: str) -> str:
    """Render a compact YYYYMMDD date as DD-MM-YYYY."""
    return f"{compact[6:8]}-{compact[4:6]}-{compact[0:4]}"


def _validate_date(value: str) -> None:
    if len(value) != 8 or not value.isdigit():
        raise StateFormatError(f"date must be YYYYMMDD, got {value!r}")
    try:
        datetime.strptime(value, "%Y%m%d")
    except ValueError as exc:
        raise StateFormatError(f"date {value!r} is not a calendar date") from exc


@dataclass
class WatchTarget:
    """One tracked movie showing.

    ``found`` is the settled flag. ``theatres`` holds the theatre names
    already seen and notified; it is ``None`` for records that never
    tracked individual theatres, and such records are saved without the
    key.
    """

    name: str
    slug_name: str
    code: str
    city: str
    city_code: str
    date: str  # YYYYMMDD
    found: bool = False
    theatres: list[str] | None = None
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def formatted_date(self) -> str:
        return format_show_date(self.date)

    @property
    def discovered(self) -> set[str]:
        return set(self.theatres or ())

    def has_seen(self, theatre: str) -> bool:
        return theatre in (self.theatres or ())

    def mark_seen(self, theatre: str) -> bool:
        """Add a theatre to the seen list. Returns False if already present."""
        if self.theatres is None:
            self.theatres = []
        if theatre in self.theatres:
            return False
        self.theatres.append(theatre)
        return True

    def booking_url(self, template: UrlTemplate, base_url: str) -> str:
        base = base_url.rstrip("/")
        if template is UrlTemplate.LEGACY:
            return (
                f"{base}/movies/{self.city}/{self.slug_name}"
                f"/buytickets/{self.code}/{self.date}"
            )
        return (
            f"{base}/buytickets/{self.slug_name}-{self.city}"
            f"/movie-{self.city_code}-{self.code}-MT/{self.date}"
        )

    @classmethod
    def from_dict(cls, raw: Any, index: int = 0) -> WatchTarget:
        """Build a target from one JSON record, validating every field."""
        if not isinstance(raw, dict):
            raise StateFormatError(f"record {index} is not an object")

        missing = [k for k in _STRING_FIELDS if k not in raw]
        if missing:
            raise StateFormatError(
                f"record {index} is missing {', '.join(missing)}"
            )
        for key in _STRING_FIELDS:
            if not isinstance(raw[key], str):
                raise StateFormatError(f"record {index}: {key} must be a string")

        found = raw.get("found", False)
        if not isinstance(found, bool):
            raise StateFormatError(f"record {index}: found must be a boolean")

        theatres = raw.get("theatres")
        if theatres is not None:
            if not isinstance(theatres, list) or not all(
                isinstance(t, str) for t in theatres
            ):
                raise StateFormatError(
                    f"record {index}: theatres must be a list of strings"
                )
            # Keep first occurrence only; the list is a set on disk.
            theatres = list(dict.fromkeys(theatres))

        try:
            _validate_date(raw["date"])
        except StateFormatError as exc:
            raise StateFormatError(f"record {index}: {exc}") from exc

        return cls(
            name=raw["name"],
            slug_name=raw["slug_name"],
            code=raw["code"],
            city=raw["city"],
            city_code=raw["city_code"],
            date=raw["date"],
            found=found,
            theatres=theatres,
            extra={k: v for k, v in raw.items() if k not in _KNOWN_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "slug_name": self.slug_name,
            "code": self.code,
            "city": self.city,
            "city_code": self.city_code,
            "date": self.date,
            "found": self.found,
        }
        if self.theatres is not None:
            data["theatres"] = list(self.theatres)
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class TheatreObservation:
    """A theatre currently listed on a booking page."""

    name: str
    show_count: int = 0


@dataclass(frozen=True)
class NotificationEvent:
    """Something new worth telling the user about.

    Incremental alerts carry ``theatre`` and ``show_count``; first
    availability alerts carry ``theatre_count``.
    """

    target: WatchTarget
    booking_url: str
    theatre: str | None = None
    show_count: int | None = None
    theatre_count: int | None = None

    @property
    def formatted_date(self) -> str:
        return self.target.formatted_date
