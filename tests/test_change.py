"""Tests for change classification and baselines."""

import pytest

from savekeep.scan.change import (
    Baseline,
    ScanChange,
    classify,
    classify_against,
    normalize_registry_path,
    registry_key_id,
)


class TestClassify:
    def test_new_without_counterpart(self):
        assert classify("abc", None) is ScanChange.NEW

    def test_same_hash(self):
        assert classify("abc", "abc") is ScanChange.SAME

    def test_different_hash(self):
        assert classify("abc", "def") is ScanChange.DIFFERENT

    def test_untracked_is_unknown(self):
        assert classify("abc", "abc", tracked=False) is ScanChange.UNKNOWN
        assert classify("abc", None, tracked=False) is ScanChange.UNKNOWN

    def test_missing_current_is_unknown(self):
        assert classify(None, "abc") is ScanChange.UNKNOWN

    @pytest.mark.parametrize(
        "current,previous",
        [("a", None), ("a", "a"), ("a", "b"), (None, "a")],
    )
    def test_repeatable(self, current, previous):
        assert classify(current, previous) is classify(current, previous)


class TestScanChange:
    def test_symbols(self):
        assert ScanChange.NEW.symbol == "+"
        assert ScanChange.DIFFERENT.symbol == "Δ"
        assert ScanChange.SAME.symbol == "="
        assert ScanChange.UNKNOWN.symbol == "?"

    def test_is_changed(self):
        assert ScanChange.NEW.is_changed()
        assert ScanChange.DIFFERENT.is_changed()
        assert not ScanChange.SAME.is_changed()
        assert not ScanChange.UNKNOWN.is_changed()

    def test_worst_prefers_new(self):
        changes = [ScanChange.SAME, ScanChange.DIFFERENT, ScanChange.NEW, ScanChange.UNKNOWN]
        assert ScanChange.worst(changes) is ScanChange.NEW

    def test_worst_same_beats_unknown(self):
        assert ScanChange.worst([ScanChange.UNKNOWN, ScanChange.SAME]) is ScanChange.SAME

    def test_worst_empty_is_unknown(self):
        assert ScanChange.worst([]) is ScanChange.UNKNOWN

    def test_serialises_as_name(self):
        assert ScanChange.DIFFERENT.value == "Different"


class TestRegistryPaths:
    def test_normalize(self):
        assert normalize_registry_path("HKEY_CURRENT_USER\\Software\\Foo\\") == (
            "HKEY_CURRENT_USER/Software/Foo"
        )

    def test_key_id_is_case_insensitive(self):
        assert registry_key_id("HKEY_CURRENT_USER/Software/Foo") == registry_key_id(
            "hkey_current_user\\SOFTWARE\\foo"
        )


class TestBaseline:
    def test_classify_file(self):
        baseline = Baseline(files={"/saves/a": "h1", "/saves/b": "h2"})
        assert baseline.classify_file("/saves/a", "h1") is ScanChange.SAME
        assert baseline.classify_file("/saves/b", "other") is ScanChange.DIFFERENT
        assert baseline.classify_file("/saves/c", "h3") is ScanChange.NEW

    def test_classification_leaves_baseline_untouched(self):
        baseline = Baseline(files={"/saves/a": "h1"})
        baseline.classify_file("/saves/a", "h2")
        baseline.classify_file("/saves/new", "h3")
        assert baseline.files == {"/saves/a": "h1"}

    def test_registry_key_presence(self):
        baseline = Baseline(registry={"HKEY_CURRENT_USER/Software/Foo": {}})
        assert baseline.classify_registry_key("hkey_current_user/software/foo") is ScanChange.SAME
        assert baseline.classify_registry_key("HKEY_CURRENT_USER/Software/Bar") is ScanChange.NEW

    def test_registry_values(self):
        baseline = Baseline(registry={"HKEY_CURRENT_USER/Software/Foo": {"a": "h1", "b": None}})
        key = "HKEY_CURRENT_USER/Software/Foo"
        assert baseline.classify_registry_value(key, "a", "h1") is ScanChange.SAME
        assert baseline.classify_registry_value(key, "a", "h2") is ScanChange.DIFFERENT
        assert baseline.classify_registry_value(key, "b", "anything") is ScanChange.SAME
        assert baseline.classify_registry_value(key, "c", "h3") is ScanChange.NEW

    def test_key_same_while_value_new(self):
        baseline = Baseline(registry={"HKEY_CURRENT_USER/Key1": {}})
        assert baseline.classify_registry_key("HKEY_CURRENT_USER/Key1") is ScanChange.SAME
        assert baseline.classify_registry_value("HKEY_CURRENT_USER/Key1", "v", "h") is ScanChange.NEW

    def test_no_baseline_is_unknown(self):
        assert classify_against(None, "/saves/a", "h1") is ScanChange.UNKNOWN

    def test_against_baseline(self):
        assert classify_against(Baseline(files={"/a": "h"}), "/a", "h") is ScanChange.SAME
