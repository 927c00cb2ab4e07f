"""
Tests for the query matcher and aggregation stages.

Run with: pytest tests/test_query.py -v
"""
import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import UnsupportedStageError
from core.query import apply_pipeline, matches


class TestMatchesLiterals:
    """Literal equality."""

    def test_empty_query_matches_everything(self):
        assert matches({"a": 1}, None)
        assert matches({"a": 1}, {})

    def test_all_keys_anded(self):
        row = {"trangThai": "dangThue", "tang": 2}
        assert matches(row, {"trangThai": "dangThue", "tang": 2})
        assert not matches(row, {"trangThai": "dangThue", "tang": 3})

    def test_strict_equality(self):
        assert not matches({"tang": "2"}, {"tang": 2})
        assert not matches({"daXoa": 1}, {"daXoa": True})
        assert matches({"daXoa": True}, {"daXoa": True})

    def test_none_matches_missing_or_blank(self):
        assert matches({"ghiChu": ""}, {"ghiChu": None})
        assert matches({}, {"ghiChu": None})
        assert not matches({"ghiChu": "x"}, {"ghiChu": None})


class TestMatchesEmailAndPhone:
    """Normalised fields."""

    def test_email_case_and_whitespace(self):
        assert matches({"email": "  An.Nguyen@Example.com "}, {"email": "an.nguyen@example.com"})

    def test_email_in_operator(self):
        assert matches({"email": "A@B.VN"}, {"email": {"$in": ["x@y.vn", "a@b.vn"]}})

    def test_email_regex_case_insensitive(self):
        assert matches({"email": "An@Example.com"}, {"email": {"$regex": "^an@"}})

    def test_phone_number_cell_matches_text_query(self):
        assert matches({"soDienThoai": 912345678}, {"soDienThoai": "0912345678"})

    def test_phone_formats_agree(self):
        assert matches({"soDienThoai": "'0912345678"}, {"soDienThoai": "091 234 5678"})

    def test_phone_nin(self):
        row = {"soDienThoai": 912345678}
        assert not matches(row, {"soDienThoai": {"$nin": ["0912345678"]}})

    def test_custom_phone_fields(self):
        row = {"sdtNguoiThan": 987654321}
        assert matches(row, {"sdtNguoiThan": "0987654321"}, phone_fields=("sdtNguoiThan",))


class TestMatchesOperators:
    """Operator objects."""

    def test_eq_ne(self):
        assert matches({"a": 1}, {"a": {"$eq": 1}})
        assert matches({"a": 1}, {"a": {"$ne": 2}})
        assert not matches({"a": 1}, {"a": {"$ne": 1}})

    def test_in_nin(self):
        assert matches({"phong": "p2"}, {"phong": {"$in": ["p1", "p2"]}})
        assert not matches({"phong": "p3"}, {"phong": {"$in": ["p1", "p2"]}})
        assert matches({"phong": "p3"}, {"phong": {"$nin": ["p1", "p2"]}})

    def test_regex_with_options(self):
        assert matches({"ten": "Nguyen Van An"}, {"ten": {"$regex": "^nguyen", "$options": "i"}})
        assert not matches({"ten": "Nguyen Van An"}, {"ten": {"$regex": "^nguyen"}})

    def test_multiple_operators_anded(self):
        assert matches({"tang": 3}, {"tang": {"$ne": 1, "$in": [2, 3]}})
        assert not matches({"tang": 1}, {"tang": {"$ne": 1, "$in": [1, 2]}})

    def test_unknown_operator_never_matches(self, caplog):
        with caplog.at_level("WARNING", logger="core.query"):
            assert not matches({"tang": 3}, {"tang": {"$gt": 1}})
        assert "$gt" in caplog.text

    def test_plain_dict_is_literal(self):
        assert matches({"diaChi": {"quan": 1}}, {"diaChi": {"quan": 1}})


class TestApplyPipeline:
    """Aggregation stage subset."""

    DOCS = [
        {"_id": "a", "tang": 2, "trangThai": "trong"},
        {"_id": "b", "tang": 1, "trangThai": "dangThue"},
        {"_id": "c", "tang": 3, "trangThai": "trong"},
        {"_id": "d", "trangThai": "trong"},
    ]

    def test_match_sort_limit(self):
        out = apply_pipeline(self.DOCS, [
            {"$match": {"trangThai": "trong"}},
            {"$sort": {"tang": -1}},
            {"$limit": 2},
        ])
        assert [d["_id"] for d in out] == ["c", "a"]

    def test_missing_values_sort_first_ascending(self):
        out = apply_pipeline(self.DOCS, [{"$sort": {"tang": 1}}])
        assert [d["_id"] for d in out] == ["d", "b", "a", "c"]

    def test_sort_is_stable(self):
        out = apply_pipeline(self.DOCS, [{"$sort": {"trangThai": 1}}])
        assert [d["_id"] for d in out] == ["b", "a", "c", "d"]

    def test_skip(self):
        out = apply_pipeline(self.DOCS, [{"$sort": {"_id": 1}}, {"$skip": 1}, {"$limit": 2}])
        assert [d["_id"] for d in out] == ["b", "c"]

    def test_limit_zero_means_no_limit(self):
        assert len(apply_pipeline(self.DOCS, [{"$limit": 0}])) == 4

    def test_unsupported_stage(self):
        with pytest.raises(UnsupportedStageError):
            apply_pipeline(self.DOCS, [{"$group": {"_id": "$trangThai"}}])

    def test_bad_sort_direction(self):
        with pytest.raises(UnsupportedStageError):
            apply_pipeline(self.DOCS, [{"$sort": {"tang": "asc"}}])
