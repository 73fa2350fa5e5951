"""
统一响应信封

所有接口（包括 webhook 回执与错误）都返回同一结构：
``{"code": int, "message": str, "data": ..., "error": {...} | null}``
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


T = TypeVar("T")


def _utc_iso(ts: datetime) -> str:
    ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


class ErrorDetail(BaseModel):
    type: str = Field(..., description="异常类型，例如 SignatureInvalid、RateLimited")
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def _serialize_timestamp(self, timestamp: datetime) -> str:
        return _utc_iso(timestamp)


class Response(BaseModel, Generic[T]):
    """成功时 error 为空；失败时 data 为空且 code 为非零业务码"""
    code: int = Field(..., description="业务码，0 表示成功")
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Response:
    """
    构造错误信封；HTTP 状态码由 core.exceptions 根据业务码决定

    Args:
        code: 业务码（BusinessCode / PaymentCode）
        message: 面向调用方的错误信息，网关拒绝时为网关原文
        error_type: 异常类型名
        details: 结构化上下文
        field: 出错字段（参数校验）
        request_id: 当前请求 ID，便于与日志关联
    """
    return Response(
        code=code,
        message=message,
        error=ErrorDetail(type=error_type, details=details, field=field, request_id=request_id),
    )
