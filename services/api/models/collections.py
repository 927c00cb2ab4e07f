"""
Collection catalogue of the rental-management app.

Each collection is one sheet tab. `headers` is the column layout written by
`init_database` (the sheet can grow more columns later through writes);
`field_kinds` tells the row marshaller how to treat the declared fields.
Fields not listed fall back to the AUTO heuristic.
"""
from __future__ import annotations

from typing import Dict, List, Mapping

from core.marshalling import FieldKind, RowMarshaller

PHONE = FieldKind.PHONE
TEXT = FieldKind.TEXT
NUMBER = FieldKind.NUMBER
JSON = FieldKind.JSON
SECRET = FieldKind.SECRET

COLLECTIONS: Dict[str, Dict[str, object]] = {
    "NguoiDung": {
        "headers": [
            "_id", "ten", "email", "matKhau", "soDienThoai", "vaiTro",
            "trangThai", "anhDaiDien", "diaChi", "ngaySinh", "gioiTinh",
            "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "matKhau": SECRET,
            "soDienThoai": PHONE,
        },
    },
    "ToaNha": {
        "headers": [
            "_id", "tenToaNha", "diaChi", "moTa", "anhToaNha", "chuSoHuu",
            "tongSoPhong", "tienNghiChung", "ngayTao", "ngayCapNhat",
            "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "anhToaNha": JSON,
            "tienNghiChung": JSON,
            "tongSoPhong": NUMBER,
        },
    },
    "Phong": {
        "headers": [
            "_id", "maPhong", "toaNha", "tang", "dienTich", "giaThue", "tienCoc",
            "moTa", "anhPhong", "tienNghi", "trangThai", "soNguoiToiDa",
            "ngayTao", "ngayCapNhat", "createdAt", "updatedAt",
        ],
        "field_kinds": {
            # "101" must stay "101", not become the number 101
            "maPhong": TEXT,
            "tang": NUMBER,
            "dienTich": NUMBER,
            "giaThue": NUMBER,
            "tienCoc": NUMBER,
            "soNguoiToiDa": NUMBER,
            "anhPhong": JSON,
            "tienNghi": JSON,
        },
    },
    "KhachThue": {
        "headers": [
            "_id", "ten", "soDienThoai", "email", "soCCCD", "ngaySinh",
            "gioiTinh", "queQuan", "diaChiHienTai", "ngheNghiep",
            "anhCCCD", "trangThai", "ghiChu", "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "soDienThoai": PHONE,
            "soCCCD": TEXT,
            "cccd": TEXT,
            "anhCCCD": JSON,
            "matKhau": SECRET,
        },
    },
    "HopDong": {
        "headers": [
            "_id", "soHopDong", "phong", "khachThue", "chuNha", "ngayBatDau",
            "ngayKetThuc", "giaThue", "tienCoc", "tienDien", "tienNuoc",
            "tienDichVu", "quyDinh", "trangThai", "fileHopDong",
            "ghiChu", "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "soHopDong": TEXT,
            "maHopDong": TEXT,
            "khachThueId": JSON,
            "phiDichVu": JSON,
            "giaThue": NUMBER,
            "tienCoc": NUMBER,
            "tienDien": NUMBER,
            "tienNuoc": NUMBER,
            "tienDichVu": NUMBER,
            "giaDien": NUMBER,
            "giaNuoc": NUMBER,
            "chiSoDienBanDau": NUMBER,
            "chiSoNuocBanDau": NUMBER,
            # day of month here; a date in HoaDon / ThanhToan
            "ngayThanhToan": NUMBER,
        },
    },
    "ChiSoDienNuoc": {
        "headers": [
            "_id", "phong", "thang", "nam", "chiSoDienCu", "chiSoDienMoi",
            "chiSoNuocCu", "chiSoNuocMoi", "soKwh", "soKhoi", "ngayGhi",
            "nguoiGhi", "hinhAnhChiSo", "ghiChu", "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "thang": NUMBER,
            "nam": NUMBER,
            "chiSoDienCu": NUMBER,
            "chiSoDienMoi": NUMBER,
            "chiSoNuocCu": NUMBER,
            "chiSoNuocMoi": NUMBER,
            "soKwh": NUMBER,
            "soKhoi": NUMBER,
        },
    },
    "HoaDon": {
        "headers": [
            "_id", "soHoaDon", "phong", "khachThue", "thang", "nam",
            "tienPhong", "tienDien", "tienNuoc", "tienDichVu", "tienPhat",
            "giamGia", "tongTien", "trangThai", "hanThanhToan", "ngayTao",
            "ngayThanhToan", "phuongThucThanhToan", "ghiChu", "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "soHoaDon": TEXT,
            "maHoaDon": TEXT,
            "phiDichVu": JSON,
            "thang": NUMBER,
            "nam": NUMBER,
            "tienPhong": NUMBER,
            "tienDien": NUMBER,
            "tienNuoc": NUMBER,
            "tienDichVu": NUMBER,
            "tienPhat": NUMBER,
            "giamGia": NUMBER,
            "tongTien": NUMBER,
            "daThanhToan": NUMBER,
            "conLai": NUMBER,
        },
    },
    "ThanhToan": {
        "headers": [
            "_id", "hoaDon", "soTien", "phuongThuc", "ngayThanhToan",
            "nguoiThu", "ghiChu", "hinhAnhBienLai", "trangThai",
            "maGiaoDich", "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "soTien": NUMBER,
            "maGiaoDich": TEXT,
        },
    },
    "SuCo": {
        "headers": [
            "_id", "tieuDe", "moTa", "phong", "nguoiBao", "loaiSuCo",
            "mucDoUuTien", "trangThai", "ngayBao", "ngayXuLy", "nguoiXuLy",
            "chiPhiSuaChua", "hinhAnh", "ghiChu", "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "chiPhiSuaChua": NUMBER,
            "hinhAnh": JSON,
        },
    },
    "ThongBao": {
        "headers": [
            "_id", "tieuDe", "noiDung", "loai", "nguoiGui", "nguoiNhan",
            "trangThai", "ngayGui", "ngayDoc", "uu_tien", "url_lienKet",
            "createdAt", "updatedAt",
        ],
        "field_kinds": {
            "nguoiNhan": JSON,
        },
    },
}

COLLECTION_NAMES: List[str] = list(COLLECTIONS)


def headers_for(collection: str) -> List[str]:
    return list(COLLECTIONS[collection]["headers"])  # type: ignore[arg-type]


def field_kinds_for(collection: str) -> Mapping[str, FieldKind]:
    return dict(COLLECTIONS[collection]["field_kinds"])  # type: ignore[arg-type]


def collection_marshallers() -> Dict[str, RowMarshaller]:
    """One RowMarshaller per catalogued collection."""
    return {name: RowMarshaller(field_kinds_for(name)) for name in COLLECTIONS}
