"""Removal of browser profile directories left behind by killed runs."""

import logging
import os
import shutil
import time
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 5 * 60  # seconds


@dataclass
class CleanupReport:
    before_count: int = 0
    before_size: int = 0
    after_count: int = 0
    after_size: int = 0

    @property
    def deleted(self) -> int:
        return self.before_count - self.after_count


def _dir_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            # Chromium may delete files while we walk.
            with suppress(FileNotFoundError):
                total += os.lstat(os.path.join(root, name)).st_size
    return total


def _subdirs(directory: Path) -> list[Path]:
    return [p for p in directory.iterdir() if p.is_dir() and not p.is_symlink()]


def cleanup_profiles(
    directory: str | os.PathLike,
    max_age: float = DEFAULT_MAX_AGE,
    now: float | None = None,
) -> CleanupReport:
    """Delete sub-directories of ``directory`` older than ``max_age`` seconds."""
    directory = Path(directory)
    report = CleanupReport()
    if not directory.is_dir():
        logger.info("Nothing to clean: %s does not exist", directory)
        return report

    now = time.time() if now is None else now
    report.before_count = len(_subdirs(directory))
    report.before_size = _dir_size(directory)

    for sub in _subdirs(directory):
        try:
            age = now - sub.stat().st_mtime
        except FileNotFoundError:
            continue
        if age > max_age:
            shutil.rmtree(sub, ignore_errors=True)
            logger.debug("Removed %s (%.0fs old)", sub, age)

    report.after_count = len(_subdirs(directory))
    report.after_size = _dir_size(directory)

    logger.info(
        "Folders before: %d (%d bytes), Folders after: %d (%d bytes), Deleted: %d",
        report.before_count,
        report.before_size,
        report.after_count,
        report.after_size,
        report.deleted,
    )
    return report
