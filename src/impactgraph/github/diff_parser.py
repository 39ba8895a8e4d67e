"""Unified diff parsing - changed line ranges and per-file change records.

GitHub's pull request files API returns one patch per file (hunks only, no
file headers); ``git diff`` output holds many files. Both end up as
``ChangeRecord`` objects whose ``ranges`` are in new-file line numbers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

UNKNOWN_LINE = -1

HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
COMMENT_PREFIXES = ("//", "/*", "*", "#")


@dataclass(frozen=True)
class LineRange:
    """Inclusive, 1-based line range in the new file. ``-1`` means unknown."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.is_known and self.start > self.end:
            raise ValueError(f"LineRange start {self.start} is after end {self.end}")

    @property
    def is_known(self) -> bool:
        return self.start != UNKNOWN_LINE and self.end != UNKNOWN_LINE

    def __len__(self) -> int:
        return self.end - self.start + 1 if self.is_known else 0


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"

    @classmethod
    def from_status(cls, status: str | None) -> ChangeKind:
        """Map a hosting-platform file status; anything unknown is a modification."""
        status = (status or "").lower()
        if status in ("deleted", "removed"):
            return cls.DELETED
        if status in ("added", "renamed"):
            return cls(status)
        return cls.MODIFIED


@dataclass
class ChangeRecord:
    """One changed file in a pull request."""

    file_path: str
    change_kind: ChangeKind = ChangeKind.MODIFIED
    patch: str | None = None
    ranges: list[LineRange] | None = None
    previous_path: str | None = None

    def derive_ranges(self) -> list[LineRange]:
        """Extract (once) and return the changed line ranges of ``patch``."""
        if self.ranges is None:
            self.ranges = extract_changed_ranges(self.patch)
        return self.ranges

    @property
    def has_patch(self) -> bool:
        return bool(self.patch)


def extract_changed_ranges(patch: str | None) -> list[LineRange]:
    """Parse a single-file unified diff into added/modified line ranges.

    Each range is a maximal run of consecutive ``+`` lines, numbered in the
    new file. Removed lines neither advance the new-file counter nor break a
    run; context lines, a new hunk header and end of input all close it.
    Text before the first hunk header is ignored, and malformed input yields
    an empty list.
    """
    ranges: list[LineRange] = []
    if not patch:
        return ranges

    in_hunk = False
    line_num = 0
    run_start = run_end = UNKNOWN_LINE

    def close_run() -> None:
        nonlocal run_start, run_end
        if run_start != UNKNOWN_LINE:
            ranges.append(LineRange(run_start, run_end))
            run_start = run_end = UNKNOWN_LINE

    for line in patch.splitlines():
        if line.startswith("@@"):
            close_run()
            match = HUNK_HEADER.match(line)
            in_hunk = match is not None
            if match:
                line_num = int(match.group(3))
            continue
        if not in_hunk or line.startswith("\\"):
            # "\ No newline at end of file" belongs to neither side
            continue

        if line.startswith("+"):
            if run_start == UNKNOWN_LINE:
                run_start = line_num
            run_end = line_num
            line_num += 1
        elif line.startswith("-"):
            continue
        else:
            close_run()
            line_num += 1

    close_run()
    return ranges


def is_comment_only(patch: str | None) -> bool:
    """True if the patch adds at least one line and every added line is a comment or blank."""
    if not patch:
        return False

    added = 0
    for line in patch.splitlines():
        if not line.startswith("+") or line.startswith("+++"):
            continue
        added += 1
        text = line[1:].strip()
        if text and not text.startswith(COMMENT_PREFIXES):
            return False
    return added > 0


def parse_diff(diff_text: str) -> list[ChangeRecord]:
    """Parse multi-file ``git diff`` output into change records."""
    records: list[ChangeRecord] = []
    current: ChangeRecord | None = None
    hunk_lines: list[str] = []

    def finish() -> None:
        if current is not None:
            current.patch = "\n".join(hunk_lines) if hunk_lines else None
            current.derive_ranges()
            records.append(current)

    for line in diff_text.splitlines():
        if line.startswith("diff --git"):
            finish()
            parts = line.split(" b/")
            path = parts[-1] if len(parts) > 1 else ""
            current = ChangeRecord(file_path=path)
            hunk_lines = []
            continue

        if current is None:
            continue

        if not hunk_lines:
            if line.startswith("new file"):
                current.change_kind = ChangeKind.ADDED
                continue
            if line.startswith("deleted file"):
                current.change_kind = ChangeKind.DELETED
                continue
            if line.startswith("rename from "):
                current.previous_path = line[len("rename from "):]
                current.change_kind = ChangeKind.RENAMED
                continue
            if line.startswith("rename to "):
                current.file_path = line[len("rename to "):]
                continue
            if line.startswith("+++ b/"):
                current.file_path = line[6:]
                continue
            if not line.startswith("@@"):
                continue

        hunk_lines.append(line)

    finish()
    return records
