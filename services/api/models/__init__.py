from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class SheetEntity(BaseModel):
    """
    Common fields of every row stored by the sheets document store.

    Extra columns are kept: a sheet can grow columns the model does not
    know about yet.
    """
    model_config = ConfigDict(extra="allow")

    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class NguoiDung(SheetEntity):
    """
    Domain model for a row from the `NguoiDung` (user account) sheet.
    """
    ten: str = ""
    email: Optional[str] = None
    so_dien_thoai: Optional[str] = None
    vai_tro: Optional[str] = None
    trang_thai: Optional[str] = None
    anh_dai_dien: Optional[str] = None
    dia_chi: Optional[str] = None
    ngay_sinh: Optional[str] = None
    gioi_tinh: Optional[str] = None

    # Password hash, never the plain password
    mat_khau: Optional[str] = None


class ToaNha(SheetEntity):
    """
    Domain model for a row from the `ToaNha` (building) sheet.
    """
    ten_toa_nha: str = ""
    # Either free text or a structured address object
    dia_chi: Any = None
    mo_ta: Optional[str] = None
    anh_toa_nha: List[str] = []
    chu_so_huu: Optional[str] = None
    tong_so_phong: int = 0
    tien_nghi_chung: List[str] = []


class Phong(SheetEntity):
    """
    Domain model for a row from the `Phong` (room) sheet.
    """
    ma_phong: str = ""
    toa_nha: Optional[str] = None
    tang: int = 0
    dien_tich: float = 0
    gia_thue: float = 0
    tien_coc: float = 0
    mo_ta: Optional[str] = None
    anh_phong: List[str] = []
    tien_nghi: List[str] = []
    trang_thai: Optional[str] = None
    so_nguoi_toi_da: int = 0


class KhachThue(SheetEntity):
    """
    Domain model for a row from the `KhachThue` (tenant) sheet.
    """
    ten: str = ""
    so_dien_thoai: Optional[str] = None
    email: Optional[str] = None
    so_cccd: Optional[str] = None
    ngay_sinh: Optional[str] = None
    gioi_tinh: Optional[str] = None
    que_quan: Optional[str] = None
    dia_chi_hien_tai: Optional[str] = None
    nghe_nghiep: Optional[str] = None
    anh_cccd: Any = None
    trang_thai: Optional[str] = None
    ghi_chu: Optional[str] = None


class HopDong(SheetEntity):
    """
    Domain model for a row from the `HopDong` (lease contract) sheet.
    """
    so_hop_dong: str = ""
    phong: Optional[str] = None
    khach_thue: List[str] = []
    nguoi_dai_dien: Optional[str] = None
    ngay_bat_dau: Optional[str] = None
    ngay_ket_thuc: Optional[str] = None
    gia_thue: float = 0
    tien_coc: float = 0
    gia_dien: float = 0
    gia_nuoc: float = 0
    # Day of month the rent is due
    ngay_thanh_toan: Optional[int] = None
    phi_dich_vu: List[Dict[str, Any]] = []
    trang_thai: Optional[str] = None
    file_hop_dong: Optional[str] = None
    ghi_chu: Optional[str] = None


class ChiSoDienNuoc(SheetEntity):
    """
    Domain model for a row from the `ChiSoDienNuoc` (meter reading) sheet.
    """
    phong: Optional[str] = None
    thang: int = 0
    nam: int = 0
    chi_so_dien_cu: float = 0
    chi_so_dien_moi: float = 0
    chi_so_nuoc_cu: float = 0
    chi_so_nuoc_moi: float = 0
    so_kwh: float = 0
    so_khoi: float = 0
    ngay_ghi: Optional[str] = None
    nguoi_ghi: Optional[str] = None
    ghi_chu: Optional[str] = None


class HoaDon(SheetEntity):
    """
    Domain model for a row from the `HoaDon` (invoice) sheet.
    """
    so_hoa_don: str = ""
    hop_dong: Optional[str] = None
    phong: Optional[str] = None
    khach_thue: Optional[str] = None
    thang: int = 0
    nam: int = 0
    tien_phong: float = 0
    tien_dien: float = 0
    tien_nuoc: float = 0
    tien_dich_vu: float = 0
    tien_phat: float = 0
    giam_gia: float = 0
    tong_tien: float = 0
    da_thanh_toan: float = 0
    con_lai: float = 0
    trang_thai: Optional[str] = None
    han_thanh_toan: Optional[str] = None
    ngay_thanh_toan: Optional[str] = None
    ghi_chu: Optional[str] = None


class ThanhToan(SheetEntity):
    """
    Domain model for a row from the `ThanhToan` (payment) sheet.
    """
    hoa_don: Optional[str] = None
    so_tien: float = 0
    phuong_thuc: Optional[str] = None
    ngay_thanh_toan: Optional[str] = None
    nguoi_thu: Optional[str] = None
    ma_giao_dich: Optional[str] = None
    trang_thai: Optional[str] = None
    ghi_chu: Optional[str] = None


class SuCo(SheetEntity):
    """
    Domain model for a row from the `SuCo` (incident report) sheet.
    """
    tieu_de: str = ""
    mo_ta: Optional[str] = None
    phong: Optional[str] = None
    nguoi_bao: Optional[str] = None
    loai_su_co: Optional[str] = None
    muc_do_uu_tien: Optional[str] = None
    trang_thai: Optional[str] = None
    ngay_bao: Optional[str] = None
    ngay_xu_ly: Optional[str] = None
    chi_phi_sua_chua: float = 0
    hinh_anh: List[str] = []


class ThongBao(SheetEntity):
    """
    Domain model for a row from the `ThongBao` (notification) sheet.
    """
    tieu_de: str = ""
    noi_dung: Optional[str] = None
    loai: Optional[str] = None
    nguoi_gui: Optional[str] = None
    nguoi_nhan: List[str] = []
    trang_thai: Optional[str] = None
    ngay_gui: Optional[str] = None
    ngay_doc: Optional[str] = None


from .sheets_model import Models, SheetsModel  # noqa: E402
