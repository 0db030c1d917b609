"""统一 API 响应模型"""

from typing import Any, Optional

from pydantic import BaseModel


def _dump(data: Any) -> Any:
    """将 pydantic 模型（或模型列表）转换为可 JSON 序列化的结构"""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return data


class ApiResponse(BaseModel):
    """标准 API 响应封装：{success, data, message, error}"""
    success: bool = True
    data: Optional[Any] = None
    message: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(success=True, data=_dump(data), message=message)

    @classmethod
    def fail(cls, error: str, message: str = "failed") -> "ApiResponse":
        return cls(success=False, error=error, message=message)
