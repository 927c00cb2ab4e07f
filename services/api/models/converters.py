from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

from core.ids import extract_id_from_relationship, normalize_id_array

from . import (
    ChiSoDienNuoc,
    HoaDon,
    HopDong,
    KhachThue,
    NguoiDung,
    Phong,
    SheetEntity,
    SuCo,
    ThanhToan,
    ThongBao,
    ToaNha,
)


def _str(v: Any) -> Optional[str]:
    if v is None or v == "":
        return None
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def _num(v: Any) -> float:
    """Sheets number cell -> float. Blank / non-numeric -> 0."""
    if isinstance(v, bool):
        return float(v)
    if isinstance(v, (int, float)):
        return v
    try:
        return float(str(v).strip())
    except ValueError:
        return 0


def _int(v: Any) -> int:
    return int(_num(v))


def _str_list(v: Any) -> List[str]:
    """
    List column -> list of strings.
    Accepts a decoded JSON array, JSON text, or a comma separated string.
    """
    if v is None or v == "":
        return []
    if isinstance(v, str):
        text = v.strip()
        if text.startswith("["):
            try:
                v = json.loads(text)
            except ValueError:
                return [text]
        else:
            return [part.strip() for part in text.split(",") if part.strip()]
    if isinstance(v, (list, tuple)):
        return [str(x) for x in v if x is not None and x != ""]
    return [str(v)]


def _dict_list(v: Any) -> List[Dict[str, Any]]:
    if isinstance(v, str):
        try:
            v = json.loads(v)
        except ValueError:
            return []
    if isinstance(v, list):
        return [x for x in v if isinstance(x, dict)]
    return []


def _rel(v: Any) -> Optional[str]:
    return extract_id_from_relationship(v)


def _base(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc.get("_id") or ""),
        "created_at": _str(doc.get("createdAt")),
        "updated_at": _str(doc.get("updatedAt")),
    }


def nguoi_dung_from_document(doc: Dict[str, Any]) -> NguoiDung:
    return NguoiDung(
        **_base(doc),
        ten=_str(doc.get("ten")) or "",
        email=_str(doc.get("email")),
        so_dien_thoai=_str(doc.get("soDienThoai")),
        vai_tro=_str(doc.get("vaiTro")),
        trang_thai=_str(doc.get("trangThai")),
        anh_dai_dien=_str(doc.get("anhDaiDien")),
        dia_chi=_str(doc.get("diaChi")),
        ngay_sinh=_str(doc.get("ngaySinh")),
        gioi_tinh=_str(doc.get("gioiTinh")),
        mat_khau=_str(doc.get("matKhau")),
    )


def toa_nha_from_document(doc: Dict[str, Any]) -> ToaNha:
    return ToaNha(
        **_base(doc),
        ten_toa_nha=_str(doc.get("tenToaNha")) or "",
        dia_chi=doc.get("diaChi") or None,
        mo_ta=_str(doc.get("moTa")),
        anh_toa_nha=_str_list(doc.get("anhToaNha")),
        chu_so_huu=_rel(doc.get("chuSoHuu")),
        tong_so_phong=_int(doc.get("tongSoPhong")),
        tien_nghi_chung=_str_list(doc.get("tienNghiChung")),
    )


def phong_from_document(doc: Dict[str, Any]) -> Phong:
    return Phong(
        **_base(doc),
        ma_phong=_str(doc.get("maPhong")) or "",
        toa_nha=_rel(doc.get("toaNha")),
        tang=_int(doc.get("tang")),
        dien_tich=_num(doc.get("dienTich")),
        gia_thue=_num(doc.get("giaThue")),
        tien_coc=_num(doc.get("tienCoc")),
        mo_ta=_str(doc.get("moTa")),
        anh_phong=_str_list(doc.get("anhPhong")),
        tien_nghi=_str_list(doc.get("tienNghi")),
        trang_thai=_str(doc.get("trangThai")),
        so_nguoi_toi_da=_int(doc.get("soNguoiToiDa")),
    )


def khach_thue_from_document(doc: Dict[str, Any]) -> KhachThue:
    return KhachThue(
        **_base(doc),
        # older rows use hoTen / cccd
        ten=_str(doc.get("ten") or doc.get("hoTen")) or "",
        so_dien_thoai=_str(doc.get("soDienThoai")),
        email=_str(doc.get("email")),
        so_cccd=_str(doc.get("soCCCD") or doc.get("cccd")),
        ngay_sinh=_str(doc.get("ngaySinh")),
        gioi_tinh=_str(doc.get("gioiTinh")),
        que_quan=_str(doc.get("queQuan")),
        dia_chi_hien_tai=_str(doc.get("diaChiHienTai")),
        nghe_nghiep=_str(doc.get("ngheNghiep")),
        anh_cccd=doc.get("anhCCCD") or None,
        trang_thai=_str(doc.get("trangThai")),
        ghi_chu=_str(doc.get("ghiChu")),
    )


def hop_dong_from_document(doc: Dict[str, Any]) -> HopDong:
    ngay_thanh_toan = doc.get("ngayThanhToan")
    return HopDong(
        **_base(doc),
        so_hop_dong=_str(doc.get("soHopDong") or doc.get("maHopDong")) or "",
        phong=_rel(doc.get("phong")),
        khach_thue=normalize_id_array(doc.get("khachThueId") or doc.get("khachThue")),
        nguoi_dai_dien=_rel(doc.get("nguoiDaiDien")),
        ngay_bat_dau=_str(doc.get("ngayBatDau")),
        ngay_ket_thuc=_str(doc.get("ngayKetThuc")),
        gia_thue=_num(doc.get("giaThue")),
        tien_coc=_num(doc.get("tienCoc")),
        gia_dien=_num(doc.get("giaDien") or doc.get("tienDien")),
        gia_nuoc=_num(doc.get("giaNuoc") or doc.get("tienNuoc")),
        ngay_thanh_toan=_int(ngay_thanh_toan) if ngay_thanh_toan not in (None, "") else None,
        phi_dich_vu=_dict_list(doc.get("phiDichVu")),
        trang_thai=_str(doc.get("trangThai")),
        file_hop_dong=_str(doc.get("fileHopDong")),
        ghi_chu=_str(doc.get("ghiChu")),
    )


def chi_so_dien_nuoc_from_document(doc: Dict[str, Any]) -> ChiSoDienNuoc:
    return ChiSoDienNuoc(
        **_base(doc),
        phong=_rel(doc.get("phong")),
        thang=_int(doc.get("thang")),
        nam=_int(doc.get("nam")),
        chi_so_dien_cu=_num(doc.get("chiSoDienCu")),
        chi_so_dien_moi=_num(doc.get("chiSoDienMoi")),
        chi_so_nuoc_cu=_num(doc.get("chiSoNuocCu")),
        chi_so_nuoc_moi=_num(doc.get("chiSoNuocMoi")),
        so_kwh=_num(doc.get("soKwh")),
        so_khoi=_num(doc.get("soKhoi")),
        ngay_ghi=_str(doc.get("ngayGhi")),
        nguoi_ghi=_rel(doc.get("nguoiGhi")),
        ghi_chu=_str(doc.get("ghiChu")),
    )


def hoa_don_from_document(doc: Dict[str, Any]) -> HoaDon:
    return HoaDon(
        **_base(doc),
        so_hoa_don=_str(doc.get("soHoaDon") or doc.get("maHoaDon")) or "",
        hop_dong=_rel(doc.get("hopDong")),
        phong=_rel(doc.get("phong")),
        khach_thue=_rel(doc.get("khachThue")),
        thang=_int(doc.get("thang")),
        nam=_int(doc.get("nam")),
        tien_phong=_num(doc.get("tienPhong")),
        tien_dien=_num(doc.get("tienDien")),
        tien_nuoc=_num(doc.get("tienNuoc")),
        tien_dich_vu=_num(doc.get("tienDichVu")),
        tien_phat=_num(doc.get("tienPhat")),
        giam_gia=_num(doc.get("giamGia")),
        tong_tien=_num(doc.get("tongTien")),
        da_thanh_toan=_num(doc.get("daThanhToan")),
        con_lai=_num(doc.get("conLai")),
        trang_thai=_str(doc.get("trangThai")),
        han_thanh_toan=_str(doc.get("hanThanhToan")),
        ngay_thanh_toan=_str(doc.get("ngayThanhToan")),
        ghi_chu=_str(doc.get("ghiChu")),
    )


def thanh_toan_from_document(doc: Dict[str, Any]) -> ThanhToan:
    return ThanhToan(
        **_base(doc),
        hoa_don=_rel(doc.get("hoaDon")),
        so_tien=_num(doc.get("soTien")),
        phuong_thuc=_str(doc.get("phuongThuc")),
        ngay_thanh_toan=_str(doc.get("ngayThanhToan")),
        nguoi_thu=_rel(doc.get("nguoiThu")),
        ma_giao_dich=_str(doc.get("maGiaoDich")),
        trang_thai=_str(doc.get("trangThai")),
        ghi_chu=_str(doc.get("ghiChu")),
    )


def su_co_from_document(doc: Dict[str, Any]) -> SuCo:
    return SuCo(
        **_base(doc),
        tieu_de=_str(doc.get("tieuDe")) or "",
        mo_ta=_str(doc.get("moTa")),
        phong=_rel(doc.get("phong")),
        nguoi_bao=_rel(doc.get("nguoiBao")),
        loai_su_co=_str(doc.get("loaiSuCo")),
        muc_do_uu_tien=_str(doc.get("mucDoUuTien")),
        trang_thai=_str(doc.get("trangThai")),
        ngay_bao=_str(doc.get("ngayBao")),
        ngay_xu_ly=_str(doc.get("ngayXuLy")),
        chi_phi_sua_chua=_num(doc.get("chiPhiSuaChua")),
        hinh_anh=_str_list(doc.get("hinhAnh")),
    )


def thong_bao_from_document(doc: Dict[str, Any]) -> ThongBao:
    return ThongBao(
        **_base(doc),
        tieu_de=_str(doc.get("tieuDe")) or "",
        noi_dung=_str(doc.get("noiDung")),
        loai=_str(doc.get("loai")),
        nguoi_gui=_rel(doc.get("nguoiGui")),
        nguoi_nhan=normalize_id_array(doc.get("nguoiNhan")),
        trang_thai=_str(doc.get("trangThai")),
        ngay_gui=_str(doc.get("ngayGui")),
        ngay_doc=_str(doc.get("ngayDoc")),
    )


CONVERTERS: Dict[str, Callable[[Dict[str, Any]], SheetEntity]] = {
    "NguoiDung": nguoi_dung_from_document,
    "ToaNha": toa_nha_from_document,
    "Phong": phong_from_document,
    "KhachThue": khach_thue_from_document,
    "HopDong": hop_dong_from_document,
    "ChiSoDienNuoc": chi_so_dien_nuoc_from_document,
    "HoaDon": hoa_don_from_document,
    "ThanhToan": thanh_toan_from_document,
    "SuCo": su_co_from_document,
    "ThongBao": thong_bao_from_document,
}


def entity_from_document(collection: str, doc: Dict[str, Any]) -> SheetEntity:
    """Convert a store document of `collection` into its domain model."""
    try:
        convert = CONVERTERS[collection]
    except KeyError:
        raise KeyError(f"No domain model for collection '{collection}'") from None
    return convert(doc)
