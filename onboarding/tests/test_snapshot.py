"""Tests for the content snapshot normalizer."""

import json

from onboarding.assessments.models import ModuleDescriptor
from onboarding.assessments.snapshot import canonical_descriptors, normalize, snapshots_equal


class TestNormalize:

    def test_order_independent(self):
        first = [
            {"title": "Beta", "topics": ["z", "a"], "objectives": ["o2", "o1"]},
            {"title": "Alpha", "topics": ["t"], "objectives": []},
        ]
        second = [
            {"title": "Alpha", "topics": ["t"], "objectives": []},
            {"title": "Beta", "topics": ["a", "z"], "objectives": ["o1", "o2"]},
        ]

        assert normalize(first) == normalize(second)
        assert snapshots_equal(first, second)

    def test_content_change_is_detected(self):
        before = [{"title": "Alpha", "topics": ["t1"], "objectives": ["o"]}]
        after = [{"title": "Alpha", "topics": ["t1", "t2"], "objectives": ["o"]}]

        assert normalize(before) != normalize(after)

    def test_drops_entries_without_string_title(self):
        result = canonical_descriptors([
            {"title": "Kept", "topics": [], "objectives": []},
            {"title": 42, "topics": ["x"]},
            {"topics": ["y"]},
            "not an object",
            None,
        ])

        assert [item["title"] for item in result] == ["Kept"]

    def test_is_compact_sorted_json(self):
        canonical = normalize([{"title": "A", "topics": ["b", "a"], "objectives": ["c"]}])

        assert canonical == '[{"objectives":["c"],"title":"A","topics":["a","b"]}]'
        assert json.loads(canonical)[0]["topics"] == ["a", "b"]

    def test_accepts_descriptors_and_ignores_ids(self):
        descriptor = ModuleDescriptor(id="m1", title="Alpha", topics=("b", "a"), objectives=("o",))
        same_content = ModuleDescriptor(id="other", title="Alpha", topics=("a", "b"), objectives=("o",))

        assert normalize([descriptor]) == normalize([same_content])
        assert normalize([descriptor]) == normalize([{"title": "Alpha", "topics": ["a", "b"], "objectives": ["o"]}])

    def test_missing_lists_normalize_to_empty(self):
        assert normalize([{"title": "A"}]) == normalize([{"title": "A", "topics": [], "objectives": []}])

    def test_empty_input(self):
        assert normalize([]) == "[]"
        assert normalize(None) == "[]"
