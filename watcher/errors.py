# 异常体系
from __future__ import annotations
from typing import Optional


class WatcherError(Exception):
    """短信监听相关异常的基类。"""


class PermissionDenied(WatcherError):
    """调用方缺少接收短信的系统权限；start() 不做任何注册。"""

    code = "PERMISSION_DENIED"

    def __init__(self, permission: str):
        super().__init__(f"permission not granted: {permission}")
        self.permission = permission


class DecodeError(WatcherError):
    """单个消息单元解码失败。只影响该单元，不影响同一事件中的其它单元。"""


class PduDecodeError(DecodeError):
    """
    PDU 解析失败。
      reason : 可读原因
      offset : 出错时的字节偏移（未知为 None）
      index  : 该单元在事件 pdus 列表中的位置（由 EventRelay 填充）
    """

    def __init__(self, reason: str, offset: Optional[int] = None, index: Optional[int] = None):
        self.reason = reason
        self.offset = offset
        self.index = index
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [self.reason]
        if self.offset is not None:
            parts.append(f"offset={self.offset}")
        if self.index is not None:
            parts.append(f"unit={self.index}")
        return "; ".join(parts)

    def at_index(self, index: int) -> "PduDecodeError":
        self.index = index
        self.args = (self._render(),)
        return self


class ConsumerUnavailable(WatcherError):
    """转发通道已断开；EventRelay 静默丢弃，不上抛给宿主。"""


class MethodNotImplemented(WatcherError):
    """命令分发器不认识的方法名。"""

    code = "NOT_IMPLEMENTED"

    def __init__(self, method: str):
        super().__init__(f"method not implemented: {method}")
        self.method = method
