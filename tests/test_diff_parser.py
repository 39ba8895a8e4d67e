"""Tests for unified diff parsing."""

from __future__ import annotations

import pytest

from impactgraph.github.diff_parser import (
    ChangeKind,
    ChangeRecord,
    LineRange,
    extract_changed_ranges,
    is_comment_only,
    parse_diff,
)


SAMPLE_DIFF = """\
diff --git a/shop/service.py b/shop/service.py
index abc1234..def5678 100644
--- a/shop/service.py
+++ b/shop/service.py
@@ -13,4 +13,5 @@ class OrderService:
     @transactional
     def place(self, order):
-        self.validate(order)
+        if not self.validate(order):
+            raise ValueError(order)
         return self.repo.save(order)
diff --git a/shop/new.py b/shop/new.py
new file mode 100644
index 0000000..abc1234
--- /dev/null
+++ b/shop/new.py
@@ -0,0 +1,2 @@
+def brand_new():
+    return True
diff --git a/shop/old.py b/shop/old.py
deleted file mode 100644
index abc1234..0000000
--- a/shop/old.py
+++ /dev/null
@@ -1,2 +0,0 @@
-def gone():
-    return None
diff --git a/shop/a.py b/shop/b.py
similarity index 100%
rename from shop/a.py
rename to shop/b.py
"""


class TestLineRange:
    def test_length(self):
        assert len(LineRange(4, 6)) == 3
        assert LineRange(4, 4).is_known

    def test_unknown(self):
        unknown = LineRange(-1, -1)
        assert not unknown.is_known
        assert len(unknown) == 0

    def test_start_after_end_rejected(self):
        with pytest.raises(ValueError):
            LineRange(7, 3)


class TestExtractChangedRanges:
    def test_single_added_line(self):
        patch = "@@ -1,3 +1,4 @@\n context\n+added\n context\n"
        assert extract_changed_ranges(patch) == [LineRange(2, 2)]

    def test_consecutive_additions_merge(self):
        patch = "@@ -10,2 +10,5 @@\n keep\n+one\n+two\n+three\n keep\n"
        assert extract_changed_ranges(patch) == [LineRange(11, 13)]

    def test_removals_do_not_advance_or_break(self):
        patch = "@@ -5,4 +5,4 @@\n a\n+b2\n-b\n+c2\n-c\n d\n"
        assert extract_changed_ranges(patch) == [LineRange(6, 7)]

    def test_context_splits_runs(self):
        patch = "@@ -1,5 +1,7 @@\n a\n+x\n b\n+y\n+z\n c\n"
        assert extract_changed_ranges(patch) == [LineRange(2, 2), LineRange(4, 5)]

    def test_blank_context_line_closes_run(self):
        patch = "@@ -1,2 +1,3 @@\n+x\n\n+y\n"
        assert extract_changed_ranges(patch) == [LineRange(1, 1), LineRange(3, 3)]

    def test_multiple_hunks(self):
        patch = (
            "@@ -1,2 +1,3 @@\n a\n+b\n c\n"
            "@@ -40,2 +41,3 @@\n x\n+y\n"
        )
        assert extract_changed_ranges(patch) == [LineRange(2, 2), LineRange(42, 42)]

    def test_hunk_header_without_counts(self):
        assert extract_changed_ranges("@@ -3 +3 @@\n+only\n") == [LineRange(3, 3)]

    def test_no_newline_marker_ignored(self):
        patch = "@@ -1,1 +1,2 @@\n+a\n\\ No newline at end of file\n+b\n"
        assert extract_changed_ranges(patch) == [LineRange(1, 2)]

    def test_removal_only(self):
        assert extract_changed_ranges("@@ -1,2 +0,0 @@\n-a\n-b\n") == []

    @pytest.mark.parametrize("patch", [None, "", "not a diff", "+stray line before hunk"])
    def test_malformed_input(self, patch):
        assert extract_changed_ranges(patch) == []


class TestCommentOnly:
    def test_all_comments(self):
        patch = "@@ -1,2 +1,4 @@\n code()\n+// explain\n+# python too\n+\n"
        assert is_comment_only(patch)

    def test_block_comment_lines(self):
        assert is_comment_only("@@ -1 +1,3 @@\n+/**\n+ * docs\n+ */\n")

    def test_code_added(self):
        assert not is_comment_only("@@ -1 +1,2 @@\n+// why\n+call()\n")

    def test_removals_only_is_not_comment_only(self):
        assert not is_comment_only("@@ -1,2 +1 @@\n-call()\n")

    def test_file_header_ignored(self):
        assert is_comment_only("+++ b/x.py\n@@ -1 +1,2 @@\n+# note\n")

    @pytest.mark.parametrize("patch", [None, ""])
    def test_empty(self, patch):
        assert not is_comment_only(patch)


class TestChangeRecord:
    @pytest.mark.parametrize(
        "status, kind",
        [
            ("added", ChangeKind.ADDED),
            ("modified", ChangeKind.MODIFIED),
            ("removed", ChangeKind.DELETED),
            ("deleted", ChangeKind.DELETED),
            ("renamed", ChangeKind.RENAMED),
            ("changed", ChangeKind.MODIFIED),
            (None, ChangeKind.MODIFIED),
        ],
    )
    def test_from_status(self, status, kind):
        assert ChangeKind.from_status(status) is kind

    def test_derive_ranges_once(self):
        record = ChangeRecord("x.py", patch="@@ -1 +1,2 @@\n a\n+b\n")
        assert record.derive_ranges() == [LineRange(2, 2)]
        record.patch = None
        assert record.ranges == [LineRange(2, 2)]

    def test_no_patch(self):
        record = ChangeRecord("x.py")
        assert not record.has_patch
        assert record.derive_ranges() == []


class TestParseDiff:
    def test_files_and_kinds(self):
        records = parse_diff(SAMPLE_DIFF)

        assert [(r.file_path, r.change_kind) for r in records] == [
            ("shop/service.py", ChangeKind.MODIFIED),
            ("shop/new.py", ChangeKind.ADDED),
            ("shop/old.py", ChangeKind.DELETED),
            ("shop/b.py", ChangeKind.RENAMED),
        ]
        assert records[3].previous_path == "shop/a.py"

    def test_ranges_per_file(self):
        records = parse_diff(SAMPLE_DIFF)

        assert records[0].ranges == [LineRange(15, 16)]
        assert records[1].ranges == [LineRange(1, 2)]
        assert records[2].ranges == []
        assert records[3].patch is None

    def test_patch_starts_at_first_hunk(self):
        records = parse_diff(SAMPLE_DIFF)
        assert records[0].patch.startswith("@@ -13,4 +13,5 @@")

    def test_empty(self):
        assert parse_diff("") == []
