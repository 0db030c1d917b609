"""服务内统一异常定义"""

from typing import Optional


class CryptoServiceError(Exception):
    """服务异常基类"""


class ProviderError(CryptoServiceError):
    """数据源请求失败：网络错误、超时、非 2xx 状态或响应无法解析"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(CryptoServiceError):
    """未跟踪的币种，立即抛出，不缓存、不重试"""
