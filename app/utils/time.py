from datetime import datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta


def get_utc_now() -> datetime:
    """
    Trả về thời điểm hiện tại theo UTC, dạng naive.

    Các cột DateTime trong DB đều lưu UTC không kèm timezone, nên mọi phép so sánh
    trong ứng dụng đều dùng giá trị naive này.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months_clamped(start: datetime, months: int) -> datetime:
    """
    Cộng `months` tháng dương lịch vào `start`.

    Nếu ngày trong tháng không tồn tại ở tháng đích (vd 31/01 + 1 tháng) thì kẹp về
    ngày cuối cùng của tháng đích (29/02 năm nhuận), không tràn sang tháng sau.
    relativedelta đã làm đúng việc này, khác với cách setMonth() của nhiều thư viện.
    """
    return start + relativedelta(months=months)


def next_midnight(now: datetime) -> datetime:
    """Mốc 00:00 của ngày kế tiếp, dùng để reset bộ đếm sử dụng theo ngày."""
    return (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
