import math
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")

class ResponseModel(BaseModel, Generic[T]):
    data: Optional[T] = None
    message: Optional[str] = None
    status_code: Optional[int] = 200
    total: Optional[int] = None
    totalPages: Optional[int] = None
    pagination: Optional[dict] = None

    @classmethod
    def success(cls, data: T = None, message: str = "Success", status_code: int = 200, total: int = None, totalPages: int = None, pagination: dict = None):
        return cls(data=data, message=message, status_code=status_code, total=total, totalPages=totalPages, pagination=pagination)

    @classmethod
    def paginated(cls, items: List, total: int, page: int, limit: int, message: str = "Success"):
        """Danh sách có phân trang theo page/limit (page bắt đầu từ 1)."""
        return cls.success(
            data=items,
            message=message,
            total=total,
            totalPages=math.ceil(total / limit) if total else 0,
            pagination={"page": page, "limit": limit},
        )
