"""
Flat-file subscriber persistence.

The whole record list is read on every load and rewritten on every save.
Callers hold ``store.lock`` around a load-mutate-save cycle.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from app.core.exceptions import CorruptStoreError, StorageError
from app.schemas.subscriber import SubscriberDocument, SubscriberRecord

logger = logging.getLogger(__name__)


class SubscriberStore(ABC):
    """Load/save contract for the subscriber list."""

    def __init__(self) -> None:
        self.lock = threading.Lock()

    @abstractmethod
    def load(self) -> list[SubscriberRecord]:
        """Return every stored record; never raises."""

    @abstractmethod
    def save(self, records: list[SubscriberRecord]) -> None:
        """Replace the stored list; failures are logged, not raised."""

    def ensure_initialized(self) -> None:
        return None

    def is_healthy(self) -> bool:
        return True


def dump_document(records: list[SubscriberRecord]) -> dict[str, Any]:
    return SubscriberDocument(subscribers=records).model_dump(mode="json", exclude_none=True)


def parse_document(raw: str) -> tuple[list[SubscriberRecord], list[Any]]:
    """Split a store file into valid records and raw entries that fail validation.

    Only undecodable JSON or a wrong top-level shape makes the whole file corrupt.
    """
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise CorruptStoreError(f"not valid JSON: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("subscribers", []), list):
        raise CorruptStoreError('expected an object with a "subscribers" list')

    records: list[SubscriberRecord] = []
    unreadable: list[Any] = []
    for index, entry in enumerate(data.get("subscribers", [])):
        try:
            records.append(SubscriberRecord.model_validate(entry))
        except ValidationError as exc:
            logger.warning("Skipping unreadable subscriber entry #%d: %d error(s)", index, exc.error_count())
            unreadable.append(entry)
    return records, unreadable


class JsonFileSubscriberStore(SubscriberStore):
    """Stores ``{"subscribers": [...]}`` in a single pretty-printed JSON file.

    Entries that fail validation are never handed to callers but are written
    back untouched on the next save.
    """

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        self._unreadable: list[Any] = []

    def ensure_initialized(self) -> None:
        if self.path.exists():
            return
        try:
            self._write(dump_document([]))
            logger.info("Created empty subscriber store at %s", self.path)
        except StorageError as exc:
            logger.error("Could not initialize subscriber store: %s", exc)

    def load(self) -> list[SubscriberRecord]:
        if not self.path.exists():
            logger.warning("Subscriber store %s missing, starting empty", self.path)
            self._unreadable = []
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Could not read subscriber store %s: %s", self.path, exc)
            return []
        try:
            records, self._unreadable = parse_document(raw)
        except CorruptStoreError as exc:
            logger.error("Subscriber store %s is corrupt: %s", self.path, exc)
            self._unreadable = []
            self._quarantine(raw)
            return []
        return records

    def save(self, records: list[SubscriberRecord]) -> None:
        document = dump_document(records)
        document["subscribers"].extend(self._unreadable)
        try:
            self._write(document)
        except StorageError as exc:
            logger.error("Subscriber store write failed, %d record(s) not persisted: %s", len(records), exc)

    def is_healthy(self) -> bool:
        try:
            parse_document(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, CorruptStoreError):
            return False
        return True

    def _write(self, document: dict[str, Any]) -> None:
        """Write to a sibling temp file and rename it over the target."""
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(str(exc)) from exc

    def _quarantine(self, raw: str) -> None:
        """Copy an unreadable store aside, once per distinct content."""
        digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:12]
        backup_path = self.path.with_name(f"{self.path.name}.corrupt-{digest}")
        if backup_path.exists():
            return
        try:
            shutil.copy2(self.path, backup_path)
            logger.warning("Corrupt subscriber store copied to %s", backup_path)
        except OSError as exc:
            logger.error("Could not back up corrupt subscriber store: %s", exc)


class InMemorySubscriberStore(SubscriberStore):
    """Process-local store, used by tests and local experiments."""

    def __init__(self, records: list[SubscriberRecord] | None = None) -> None:
        super().__init__()
        self._records: list[SubscriberRecord] = [r.model_copy(deep=True) for r in records or []]
        self.save_count = 0

    def load(self) -> list[SubscriberRecord]:
        return [r.model_copy(deep=True) for r in self._records]

    def save(self, records: list[SubscriberRecord]) -> None:
        self._records = [r.model_copy(deep=True) for r in records]
        self.save_count += 1
