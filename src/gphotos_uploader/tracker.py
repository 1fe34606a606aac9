"""Ledger of local files that were already uploaded."""

import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

TRACKER_FILENAME = "uploaded_files.json"


class FileTracker:
    """Thread-safe set of uploaded paths, optionally persisted as JSON.

    Every operation holds a lock, so concurrent workers may check and mark
    paths without coordinating with each other.
    """

    def __init__(self, path: Path | None = None) -> None:
        """Initialize file tracker.

        Args:
            path: JSON file backing the ledger. ``None`` keeps it in memory.
        """
        self.path = path
        self._lock = threading.Lock()
        self._tracked: set[str] = set()
        if path is not None and path.exists():
            try:
                self._tracked = set(json.loads(path.read_text(encoding="utf-8")))
            except (ValueError, TypeError) as e:
                raise ValueError(f"Corrupted file tracker at {path}: {e}") from e
            logger.debug(f"Loaded {len(self._tracked)} tracked file(s) from {path}")

    @staticmethod
    def _key(path: Path) -> str:
        return str(Path(path).expanduser().absolute())

    def is_tracked(self, path: Path) -> bool:
        with self._lock:
            return self._key(path) in self._tracked

    def mark_tracked(self, path: Path) -> None:
        with self._lock:
            self._tracked.add(self._key(path))

    def save(self) -> None:
        """Write the ledger to its JSON file, if it has one."""
        if self.path is None:
            return
        with self._lock:
            content = json.dumps(sorted(self._tracked), indent=2)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug(f"Saved file tracker to {self.path}")
