"""Persistence of enrolled face embeddings.

Records are append-only: enrolling a label again adds another sample next
to the existing ones. Reads return snapshots in insertion order, which is
the order the matcher uses to break ties.

The durable store keeps one JSON object per line. Embeddings are written as
the base64 of their little-endian float64 bytes so that a stored vector
reads back bit-for-bit identical.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple

import numpy as np

from face_login.errors import StoreUnavailable
from face_login.interfaces import as_embedding
from face_login.logging_config import get_logger

logger = get_logger(__name__)

_VECTOR_DTYPE = np.dtype("<f8")
_TAIL_SCAN_CHUNK = 4096


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=False)
class EnrollmentRecord:
    """One enrolled face sample.

    Attributes:
        label: Identity label (opaque, non-empty)
        embedding: Read-only float64 embedding
        enrolled_at: When the sample was captured (UTC)
    """

    label: str
    embedding: np.ndarray
    enrolled_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not isinstance(self.label, str) or not self.label.strip():
            raise ValueError("EnrollmentRecord label must be a non-empty string")
        object.__setattr__(self, "embedding", as_embedding(self.embedding))

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])

    def to_json(self) -> str:
        """Serialize as a single JSON line (without the newline)."""
        raw = self.embedding.astype(_VECTOR_DTYPE, copy=False).tobytes()
        return json.dumps(
            {
                "label": self.label,
                "dim": self.dimension,
                "embedding": base64.b64encode(raw).decode("ascii"),
                "enrolled_at": self.enrolled_at.isoformat(),
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, line: str) -> EnrollmentRecord:
        """Parse a line written by to_json().

        Raises:
            ValueError: If the line is malformed.
        """
        try:
            data = json.loads(line)
            raw = base64.b64decode(data["embedding"], validate=True)
            vector = np.frombuffer(raw, dtype=_VECTOR_DTYPE)
            dim = int(data["dim"])
            enrolled_at = datetime.fromisoformat(data["enrolled_at"])
            label = data["label"]
        except (KeyError, TypeError, binascii.Error, json.JSONDecodeError) as e:
            raise ValueError(f"Malformed enrollment record: {e}") from e

        if vector.shape[0] != dim:
            raise ValueError(
                f"Stored embedding has {vector.shape[0]} values, header says {dim}"
            )

        return cls(label=label, embedding=vector, enrolled_at=enrolled_at)

    def __repr__(self) -> str:
        return (
            f"EnrollmentRecord(label='{self.label}', dim={self.dimension}, "
            f"enrolled_at={self.enrolled_at.isoformat()})"
        )


def _labels_in_order(records) -> List[str]:
    seen: dict[str, None] = {}
    for record in records:
        seen.setdefault(record.label, None)
    return list(seen)


class MemoryEmbeddingStore:
    """Process-local store, used for tests and ephemeral sessions.

    Example:
        >>> store = MemoryEmbeddingStore()
        >>> store.append(EnrollmentRecord("alice", [0.1, 0.2]))
        >>> [r.label for r in store.all_records()]
        ['alice']
    """

    def __init__(self) -> None:
        self._records: List[EnrollmentRecord] = []
        self._lock = threading.Lock()

    def append(self, record: EnrollmentRecord) -> None:
        with self._lock:
            self._records.append(record)
        logger.debug(f"Appended {record} to memory store")

    def all_records(self) -> Tuple[EnrollmentRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def records_for_label(self, label: str) -> Tuple[EnrollmentRecord, ...]:
        return tuple(r for r in self.all_records() if r.label == label)

    def labels(self) -> List[str]:
        return _labels_in_order(self.all_records())

    def count_for_label(self, label: str) -> int:
        return len(self.records_for_label(label))

    def delete_label(self, label: str) -> int:
        with self._lock:
            kept = [r for r in self._records if r.label != label]
            removed = len(self._records) - len(kept)
            self._records = kept

        if removed:
            logger.info(f"Deleted {removed} record(s) for '{label}'")
        return removed

    def __len__(self) -> int:
        return len(self.all_records())

    def __repr__(self) -> str:
        return f"MemoryEmbeddingStore(records={len(self)})"


class JsonlEmbeddingStore:
    """Durable store backed by a JSON Lines file.

    Appends are serialised by a lock and each record is written, flushed and
    fsynced as one line, so concurrent enrollments never interleave. Reads
    take no lock; a final line without its newline belongs to an append in
    flight and is skipped. If that append never completed, the next append
    truncates the fragment before writing.

    Attributes:
        path: Location of the JSON Lines file (created on first append)

    Example:
        >>> store = JsonlEmbeddingStore("data/enrollments.jsonl")
        >>> store.append(EnrollmentRecord("alice", embedding))
        >>> store.records_for_label("alice")
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

        logger.debug(f"Initialized JsonlEmbeddingStore at {self.path}")

    def append(self, record: EnrollmentRecord) -> None:
        """Append one record.

        Raises:
            StoreUnavailable: If the file cannot be written.
        """
        line = record.to_json() + "\n"

        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._drop_partial_tail()
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise StoreUnavailable(f"Could not append to {self.path}: {e}") from e

        logger.info(f"Stored enrollment for '{record.label}' in {self.path.name}")

    def _drop_partial_tail(self) -> None:
        """Truncate a final line left without its newline by an interrupted append.

        Must be called with the lock held.
        """
        try:
            f = open(self.path, "rb+")
        except FileNotFoundError:
            return

        with f:
            size = f.seek(0, os.SEEK_END)
            if size == 0:
                return
            f.seek(size - 1)
            if f.read(1) == b"\n":
                return

            keep = 0
            pos = size
            while pos > 0:
                step = min(_TAIL_SCAN_CHUNK, pos)
                pos -= step
                f.seek(pos)
                idx = f.read(step).rfind(b"\n")
                if idx != -1:
                    keep = pos + idx + 1
                    break

            f.truncate(keep)
            f.flush()
            os.fsync(f.fileno())

        logger.warning(
            f"Discarded {size - keep} byte(s) of an interrupted append in {self.path.name}"
        )

    def all_records(self) -> Tuple[EnrollmentRecord, ...]:
        """Snapshot of every record in insertion order.

        Raises:
            StoreUnavailable: If the file cannot be read or is corrupt.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                content = f.read()
        except FileNotFoundError:
            return ()
        except UnicodeDecodeError as e:
            raise StoreUnavailable(f"Undecodable contents in {self.path}: {e}") from e
        except OSError as e:
            raise StoreUnavailable(f"Could not read {self.path}: {e}") from e

        lines = content.split("\n")
        # Last element is "" after a complete file, or a partial append
        complete = lines[:-1]

        records = []
        for lineno, line in enumerate(complete, start=1):
            if not line.strip():
                continue
            try:
                records.append(EnrollmentRecord.from_json(line))
            except ValueError as e:
                raise StoreUnavailable(
                    f"Corrupt record at {self.path}:{lineno}: {e}"
                ) from e

        return tuple(records)

    def records_for_label(self, label: str) -> Tuple[EnrollmentRecord, ...]:
        return tuple(r for r in self.all_records() if r.label == label)

    def labels(self) -> List[str]:
        """Enrolled labels in order of first enrollment."""
        return _labels_in_order(self.all_records())

    def count_for_label(self, label: str) -> int:
        return len(self.records_for_label(label))

    def delete_label(self, label: str) -> int:
        """Remove every record for a label.

        The file is rewritten to a temporary sibling and atomically swapped
        in, so readers see either the old or the new contents.

        Returns:
            Number of records removed.

        Raises:
            StoreUnavailable: If the file cannot be rewritten.
        """
        with self._lock:
            records = self.all_records()
            kept = [r for r in records if r.label != label]
            removed = len(records) - len(kept)

            if removed == 0:
                logger.warning(f"Label '{label}' not found in {self.path.name}")
                return 0

            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    for record in kept:
                        f.write(record.to_json() + "\n")
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except OSError as e:
                raise StoreUnavailable(f"Could not rewrite {self.path}: {e}") from e

        logger.info(f"Deleted {removed} record(s) for '{label}'")
        return removed

    def __repr__(self) -> str:
        return f"JsonlEmbeddingStore(path={self.path})"
