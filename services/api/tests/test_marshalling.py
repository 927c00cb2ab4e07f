"""
Tests for row <-> document marshalling.

Run with: pytest tests/test_marshalling.py -v
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.marshalling import (
    FieldKind,
    RowMarshaller,
    canonical_phone,
    denormalize_phone,
    document_to_row,
    interpret_user_entered,
    row_to_document,
)

BCRYPT_HASH = "$2b$10$N9qo8uLOickgx2ZMRZoMyeIjZAgcfl7p92ldGxad68LJZdL17lhWy"


def through_sheet(marshaller, doc):
    """What a read returns after `doc` was written with USER_ENTERED input."""
    row = marshaller.document_to_row(doc)
    stored = {k: interpret_user_entered(v) for k, v in row.items()}
    return marshaller.row_to_document(stored)


class TestDocumentToRow:
    """Write side."""

    def test_none_fields_omitted(self):
        assert document_to_row({"_id": "a", "ghiChu": None}) == {"_id": "a"}

    def test_composites_serialized_compact(self):
        row = document_to_row({"tienNghi": ["wifi", "điều hòa"], "diaChi": {"duong": "Lê Lợi"}})
        assert row["tienNghi"] == '["wifi","điều hòa"]'
        assert row["diaChi"] == '{"duong":"Lê Lợi"}'

    def test_bool_and_numbers(self):
        row = document_to_row({"daXoa": True, "giaThue": 3500000, "dienTich": 25.5})
        assert row == {"daXoa": "TRUE", "giaThue": "3500000", "dienTich": "25.5"}

    def test_phone_gets_text_sentinel_once(self):
        assert document_to_row({"soDienThoai": "0912345678"})["soDienThoai"] == "'0912345678"
        assert document_to_row({"soDienThoai": "'0912345678"})["soDienThoai"] == "'0912345678"

    def test_formula_like_text_is_escaped(self):
        assert document_to_row({"ghiChu": "=SUM(A1:A3)"})["ghiChu"] == "'=SUM(A1:A3)"

    def test_text_field_protected_from_retyping(self):
        m = RowMarshaller({"maPhong": FieldKind.TEXT})
        assert m.encode_value("maPhong", "0101") == "'0101"
        assert m.encode_value("maPhong", "P101") == "P101"

    def test_numeric_looking_id_stays_text(self):
        assert document_to_row({"_id": "12345"})["_id"] == "'12345"


class TestRowToDocument:
    """Read side."""

    def test_phone_number_cell_restored(self):
        assert row_to_document({"soDienThoai": 912345678}) == {"soDienThoai": "0912345678"}
        assert row_to_document({"soDienThoai": 912345678.0}) == {"soDienThoai": "0912345678"}

    def test_phone_text_forms(self):
        assert row_to_document({"soDienThoai": "'0912345678"})["soDienThoai"] == "0912345678"
        assert row_to_document({"soDienThoai": "912345678"})["soDienThoai"] == "0912345678"

    def test_json_text_decoded(self):
        doc = row_to_document({"anhPhong": '["a.jpg","b.jpg"]', "meta": '{"k":1}'})
        assert doc == {"anhPhong": ["a.jpg", "b.jpg"], "meta": {"k": 1}}

    def test_malformed_json_kept_raw(self):
        assert row_to_document({"ghiChu": "[chưa xác nhận"})["ghiChu"] == "[chưa xác nhận"

    def test_secret_hash_never_parsed(self):
        assert row_to_document({"matKhau": BCRYPT_HASH})["matKhau"] == BCRYPT_HASH

    def test_plain_values_untouched(self):
        doc = row_to_document({"ten": "An", "tang": 3, "daXoa": True})
        assert doc == {"ten": "An", "tang": 3, "daXoa": True}


class TestFieldKinds:
    """Per-field kinds override the prefix heuristic."""

    def test_text_field_not_json_decoded(self):
        m = RowMarshaller({"moTa": FieldKind.TEXT})
        assert m.decode_value("moTa", "[draft]") == "[draft]"
        assert m.decode_value("moTa", 101) == "101"

    def test_json_field_tolerates_leading_space(self):
        m = RowMarshaller({"tienNghi": FieldKind.JSON})
        assert m.decode_value("tienNghi", ' ["wifi"]') == ["wifi"]

    def test_number_field_coerces_text(self):
        m = RowMarshaller({"giaThue": FieldKind.NUMBER})
        assert m.decode_value("giaThue", "3500000") == 3500000
        assert m.decode_value("giaThue", "25.5") == 25.5
        assert m.decode_value("giaThue", "") == ""

    def test_secret_field_with_unknown_prefix(self):
        m = RowMarshaller({"matKhau": FieldKind.SECRET})
        assert m.decode_value("matKhau", "[not-json-secret") == "[not-json-secret"

    def test_phone_fields_property(self):
        m = RowMarshaller({"sdtNguoiThan": FieldKind.PHONE})
        assert m.phone_fields == {"soDienThoai", "sdtNguoiThan"}


class TestRoundTrip:
    """decode(encode(v)) == v through the sheet's USER_ENTERED typing."""

    def test_composites_and_scalars(self):
        m = RowMarshaller()
        doc = {
            "_id": "lq3k2x9abcdefghijk",
            "anhPhong": ["a.jpg", "b.jpg"],
            "phiDichVu": [{"ten": "wifi", "gia": 100000}],
            "diaChi": {"duong": "Lê Lợi", "quan": 1},
            "giaThue": 3500000,
            "dienTich": 25.5,
            "daXoa": False,
            "ten": "Phòng 1",
        }
        assert through_sheet(m, doc) == doc

    def test_phone_keeps_leading_zero(self):
        doc = {"soDienThoai": "0912345678"}
        assert through_sheet(RowMarshaller(), doc) == doc

    def test_text_field_keeps_leading_zero(self):
        m = RowMarshaller({"soCCCD": FieldKind.TEXT})
        doc = {"soCCCD": "001099012345"}
        assert through_sheet(m, doc) == doc

    def test_secret_hash(self):
        m = RowMarshaller({"matKhau": FieldKind.SECRET})
        doc = {"matKhau": BCRYPT_HASH}
        assert through_sheet(m, doc) == doc


class TestPhoneHelpers:
    """Phone canonicalisation."""

    def test_canonical_forms_agree(self):
        forms = ["0912345678", "'0912345678", 912345678, "912345678", "091 234 5678", "091-234-5678"]
        assert {canonical_phone(f) for f in forms} == {"0912345678"}

    def test_denormalize_leaves_other_text(self):
        assert denormalize_phone("+84 912 345 678") == "+84 912 345 678"
        assert denormalize_phone(None) is None
