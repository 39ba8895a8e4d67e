"""Tracks which repositories already have a full graph baseline."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone


@dataclass(frozen=True)
class BaselineRecord:
    repo_full_name: str
    is_fully_parsed: bool = False
    last_commit_sha: str = ""
    last_parsed_at: datetime | None = None


class BaselineTracker:
    """In-process baseline store keyed by repository full name (``owner/repo``).

    There is no expiry and no reset: once a repository is marked it stays
    marked for the lifetime of the process.
    """

    def __init__(self) -> None:
        self._records: dict[str, BaselineRecord] = {}
        self._lock = threading.Lock()

    def is_fully_parsed(self, key: str) -> bool:
        with self._lock:
            record = self._records.get(key)
        return record is not None and record.is_fully_parsed

    def mark_fully_parsed(self, key: str, commit_sha: str) -> BaselineRecord:
        with self._lock:
            record = self._records.get(key, BaselineRecord(repo_full_name=key))
            record = replace(
                record,
                is_fully_parsed=True,
                last_commit_sha=commit_sha,
                last_parsed_at=datetime.now(timezone.utc),
            )
            self._records[key] = record
        return record

    def get(self, key: str) -> BaselineRecord | None:
        with self._lock:
            return self._records.get(key)
