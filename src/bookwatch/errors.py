"""Exception hierarchy for the booking watcher.

Fatal errors (configuration, state loading, lock) abort a run before any
target is touched. Everything else is caught per target or per
notification by the runner.
"""


class BookwatchError(Exception):
    """Base class for all watcher errors."""


class ConfigError(BookwatchError):
    """Required configuration is missing or unparsable."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("; ".join(problems))


class StateError(BookwatchError):
    """The persisted state file could not be used."""


class StateFileError(StateError):
    """The state file could not be read or written."""


class StateFormatError(StateError):
    """The state file is not a valid list of watch targets."""


class RenderError(BookwatchError):
    """A page could not be opened in the browser."""


class RenderTimeoutError(RenderError):
    """Page navigation exceeded its time budget."""


class NotFoundError(BookwatchError):
    """An expected element is missing from a rendered page."""

    def __init__(self, what: str, selector: str = "") -> None:
        self.what = what
        self.selector = selector
        message = what if not selector else f"{what} ({selector})"
        super().__init__(message)


class DeliveryError(BookwatchError):
    """A chat message or call trigger could not be delivered."""


class LockHeldError(BookwatchError):
    """Another watcher run holds the run lock."""
