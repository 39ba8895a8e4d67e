"""Map changed line ranges onto the methods they touch."""

from __future__ import annotations

from dataclasses import dataclass

from impactgraph.github.diff_parser import UNKNOWN_LINE, ChangeKind, ChangeRecord, LineRange
from impactgraph.parser.models import EntityDescriptor


@dataclass(frozen=True)
class MethodSpan:
    entity_id: str
    start: int
    end: int


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Inclusive interval overlap; any unknown bound means no overlap."""
    if UNKNOWN_LINE in (a_start, a_end, b_start, b_end):
        return False
    return a_start <= b_end and a_end >= b_start


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class ChangeLocalizer:
    """Turns per-file change records into the set of changed entity ids."""

    def modified_spans(self, spans: list[MethodSpan], ranges: list[LineRange]) -> list[str]:
        """Ids of spans overlapping at least one range, in span order."""
        hit = [
            span.entity_id
            for span in spans
            if any(overlaps(span.start, span.end, r.start, r.end) for r in ranges)
        ]
        return _dedupe(hit)

    def localize(self, change: ChangeRecord, descriptors: list[EntityDescriptor]) -> list[str]:
        """Changed entity ids for one file.

        With line ranges the result is the overlapping methods. Without them
        a deleted file contributes its class ids and any other file all of
        its method ids.
        """
        in_file = [d for d in descriptors if d.file_path == change.file_path]
        ranges = change.derive_ranges()

        if ranges:
            spans = [
                MethodSpan(m.entity_id, m.start_line, m.end_line)
                for d in in_file
                for m in d.methods
            ]
            return self.modified_spans(spans, ranges)

        if change.change_kind is ChangeKind.DELETED:
            return _dedupe([d.name for d in in_file])
        return _dedupe([m.entity_id for d in in_file for m in d.methods])

    def localize_all(
        self, changes: list[ChangeRecord], descriptors: list[EntityDescriptor]
    ) -> list[str]:
        """Union of ``localize`` over every change, in first-seen order."""
        ids: list[str] = []
        for change in changes:
            ids.extend(self.localize(change, descriptors))
        return _dedupe(ids)
