"""JSON-file store for the watch-target list.

The whole list is read at the start of a run and written back once at
the end. Writes go through a temporary file in the same directory and
``os.replace`` so a failed save never leaves a half-written state file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from bookwatch.errors import StateFileError, StateFormatError
from bookwatch.models import WatchTarget

logger = logging.getLogger(__name__)


class StateStore:
    """Loads and saves :class:`WatchTarget` records."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def load(self) -> list[WatchTarget]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StateFileError(f"error reading file {self.path}: {exc}") from exc

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StateFormatError(f"error parsing {self.path}: {exc}") from exc

        if not isinstance(raw, list):
            raise StateFormatError(f"{self.path} must contain a JSON array")

        targets = [WatchTarget.from_dict(item, i) for i, item in enumerate(raw)]
        logger.info("Loaded %d watch targets from %s", len(targets), self.path)
        return targets

    def save(self, targets: list[WatchTarget]) -> None:
        payload = json.dumps(
            [t.to_dict() for t in targets], ensure_ascii=False, indent=4
        ) + "\n"

        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StateFileError(f"error writing file {self.path}: {exc}") from exc

        logger.info("Saved %d watch targets to %s", len(targets), self.path)
