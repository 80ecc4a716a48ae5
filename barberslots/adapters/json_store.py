"""
Booking store backed by a JSON file.
"""

import json
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List

from filelock import FileLock, Timeout

from ..domain.exceptions import BookingDataError, DataSourceError
from ..domain.models import Booking
from .memory_store import InMemoryBookingStore

logger = logging.getLogger(__name__)


class JsonBookingStore(InMemoryBookingStore):
    """
    Loads bookings from a JSON array of records and writes every change back.

    Records use the same shape as the site's ``bookings`` rows, e.g.
    ``{"id": 1, "date": "2025-03-10", "time": "10:00", "duration": 30,
    "status": "confirmed"}``. A missing file starts an empty store.

    Every transaction takes an exclusive lock on ``<path>.lock`` and re-reads
    the file, so separate processes sharing one file see each other's
    bookings before checking for conflicts. Writes replace the file
    atomically. Rows that cannot be parsed are skipped with a warning and
    written back unchanged.
    """

    def __init__(self, path: Path, lock_timeout: float = 10):
        self.path = Path(path)
        self._file_lock = FileLock(f"{self.path}.lock", timeout=lock_timeout)
        self._unparsed: List[Dict[str, Any]] = []
        super().__init__(self._load())

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._file_lock.is_locked:
                # Nested inside this store's own transaction
                yield
                return

            self._acquire_file_lock()
            try:
                self._bookings = self._load()
                yield
            finally:
                self._file_lock.release()

    def _acquire_file_lock(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file_lock.acquire()
        except Timeout as exc:
            raise DataSourceError(f"Timed out waiting for the lock on {self.path}") from exc
        except OSError as exc:
            raise DataSourceError(f"Could not lock {self.path}: {exc}") from exc

    def _load(self) -> List[Booking]:
        self._unparsed = []
        if not self.path.exists():
            logger.info("Bookings file %s does not exist yet, starting empty", self.path)
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise DataSourceError(f"Could not read bookings from {self.path}: {exc}") from exc

        if not isinstance(records, list):
            raise BookingDataError(f"{self.path} must contain a JSON array of bookings")

        bookings: List[Booking] = []
        for record in records:
            try:
                if not isinstance(record, dict):
                    raise BookingDataError(f"Expected an object, got {record!r}")
                bookings.append(Booking.from_record(record))
            except BookingDataError as exc:
                logger.warning("Skipping booking row in %s: %s", self.path, exc)
                self._unparsed.append(record)

        logger.debug("Loaded %d bookings from %s", len(bookings), self.path)
        return bookings

    def _used_ids(self) -> Iterator[int]:
        yield from super()._used_ids()
        # Skipped rows keep their ids reserved
        for record in self._unparsed:
            try:
                yield int(record["id"])
            except (KeyError, TypeError, ValueError):
                continue

    def _persist(self, bookings: List[Booking]) -> None:
        records = [booking.to_record() for booking in bookings] + self._unparsed
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise DataSourceError(f"Could not save bookings to {self.path}: {exc}") from exc
