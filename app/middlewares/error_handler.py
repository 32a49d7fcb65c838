import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.exceptions.base_exception import AppException

logger = logging.getLogger(__name__)

class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware để xử lý lỗi từ application
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except AppException as e:
            return JSONResponse(status_code=e.status_code, content=e.to_dict())
        except Exception as e:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}: {e}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "message": "Internal server error",
                    "error_code": "INTERNAL_SERVER_ERROR",
                    "detail": str(e) if request.app.debug else None
                }
            )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler đăng ký qua app.add_exception_handler cho AppException phát sinh trong dependency."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
