# 宿主适配层：事件源 + 权限查询
from __future__ import annotations
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Protocol

from commons.base_logger import BaseLogger
from watcher.models import PlatformEvent


class Receiver(Protocol):
    """宿主广播接收者：每条匹配广播回调一次 on_receive。"""

    def on_receive(self, event: PlatformEvent) -> object: ...


class EventSource(ABC):
    """宿主广播机制的抽象。WatcherController 只通过它注册/注销。"""

    @abstractmethod
    def register(self, receiver: Receiver, action: str, priority: int = 0) -> None:
        """注册接收者；priority 越大越先收到。"""

    @abstractmethod
    def unregister(self, receiver: Receiver) -> None:
        """注销接收者；未注册时抛 ValueError（与 Android 的行为一致）。"""


class PermissionChecker(ABC):
    @abstractmethod
    def has_permission(self, permission: str) -> bool:
        """同步查询当前授权状态，不发起授权请求。"""


@dataclass
class _Registration:
    receiver: Receiver
    action: str
    priority: int
    seq: int


class LocalBroadcastSource(EventSource):
    """
    进程内广播源：
      - 按 priority 从高到低、同优先级按注册先后投递
      - 投递前对注册表做快照，回调中注册/注销不影响本次投递
      - 接收者抛出的异常只记录日志，不影响其它接收者
    用于本地运行（配合 pdu_feed）与测试。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._registrations: List[_Registration] = []
        self._seq = 0
        self.logger = BaseLogger(name="LocalBroadcastSource")

    def register(self, receiver: Receiver, action: str, priority: int = 0) -> None:
        with self._lock:
            self._seq += 1
            self._registrations.append(_Registration(receiver, action, int(priority), self._seq))

    def unregister(self, receiver: Receiver) -> None:
        with self._lock:
            before = len(self._registrations)
            self._registrations = [r for r in self._registrations if r.receiver is not receiver]
            if len(self._registrations) == before:
                raise ValueError(f"receiver not registered: {receiver!r}")

    def registration_count(self, action: str | None = None) -> int:
        with self._lock:
            return sum(1 for r in self._registrations if action is None or r.action == action)

    def send_broadcast(self, event: PlatformEvent) -> int:
        """投递一次广播，返回收到该广播的接收者数量。"""
        with self._lock:
            targets = sorted(
                (r for r in self._registrations if r.action == event.action),
                key=lambda r: (-r.priority, r.seq),
            )
        for reg in targets:
            try:
                reg.receiver.on_receive(event)
            except Exception:
                self.logger.log_error(f"receiver failed: {reg.receiver!r}")
        return len(targets)


class StaticPermissions(PermissionChecker):
    """固定授权表；grant/revoke 供本地运行与测试切换。"""

    def __init__(self, granted: Iterable[str] = ()):
        self._granted = set(granted)

    def has_permission(self, permission: str) -> bool:
        return permission in self._granted

    def grant(self, permission: str) -> None:
        self._granted.add(permission)

    def revoke(self, permission: str) -> None:
        self._granted.discard(permission)
