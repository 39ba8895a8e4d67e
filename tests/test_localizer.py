"""Tests for mapping changed lines onto methods."""

from __future__ import annotations

import pytest

from impactgraph.github.diff_parser import ChangeKind, ChangeRecord, LineRange
from impactgraph.github.localizer import ChangeLocalizer, MethodSpan, overlaps


class TestOverlaps:
    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ((5, 20), (10, 12), True),
            ((5, 20), (20, 25), True),
            ((5, 20), (1, 5), True),
            ((5, 20), (21, 30), False),
            ((30, 40), (10, 12), False),
            ((7, 7), (7, 7), True),
        ],
    )
    def test_inclusive_and_symmetric(self, a, b, expected):
        assert overlaps(*a, *b) is expected
        assert overlaps(*b, *a) is expected

    @pytest.mark.parametrize("bounds", [(-1, 10, 1, 5), (1, -1, 1, 5), (1, 10, -1, 5), (1, 10, 1, -1)])
    def test_unknown_bound_never_overlaps(self, bounds):
        assert overlaps(*bounds) is False


class TestChangeLocalizer:
    def test_modified_spans(self):
        spans = [MethodSpan("a", 1, 4), MethodSpan("b", 5, 20), MethodSpan("c", -1, -1)]
        hit = ChangeLocalizer().modified_spans(spans, [LineRange(3, 6)])
        assert hit == ["a", "b"]

    def test_ranges_select_overlapping_methods(self, service_descriptors):
        change = ChangeRecord("app/OrderService.java", ranges=[LineRange(10, 12)])
        changed = ChangeLocalizer().localize(change, service_descriptors)
        assert changed == ["app.OrderService.place"]

    def test_ranges_from_patch(self, service_descriptors):
        patch = "@@ -30,3 +30,4 @@\n a\n+b\n c\n"
        change = ChangeRecord("app/OrderService.java", patch=patch)
        assert ChangeLocalizer().localize(change, service_descriptors) == [
            "app.OrderService.validate"
        ]

    def test_no_ranges_falls_back_to_all_methods(self, service_descriptors):
        change = ChangeRecord("app/OrderService.java", change_kind=ChangeKind.MODIFIED)
        assert ChangeLocalizer().localize(change, service_descriptors) == [
            "app.OrderService.place",
            "app.OrderService.validate",
        ]

    def test_deleted_file_falls_back_to_classes(self, service_descriptors):
        change = ChangeRecord("app/OrderService.java", change_kind=ChangeKind.DELETED)
        assert ChangeLocalizer().localize(change, service_descriptors) == ["app.OrderService"]

    def test_other_files_ignored(self, service_descriptors):
        change = ChangeRecord("app/Unrelated.java", ranges=[LineRange(1, 100)])
        assert ChangeLocalizer().localize(change, service_descriptors) == []

    def test_localize_all_union_dedupes(self, service_descriptors):
        changes = [
            ChangeRecord("app/OrderService.java", ranges=[LineRange(10, 12)]),
            ChangeRecord("app/OrderService.java", ranges=[LineRange(6, 6), LineRange(35, 35)]),
            ChangeRecord("app/OrderController.java", ranges=[LineRange(15, 15)]),
        ]
        assert ChangeLocalizer().localize_all(changes, service_descriptors) == [
            "app.OrderService.place",
            "app.OrderService.validate",
            "app.OrderController.create",
        ]
