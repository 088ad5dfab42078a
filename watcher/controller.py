#     监听控制器 WatcherController
from __future__ import annotations
import threading

from commons.base_logger import BaseLogger
from watcher.errors import PermissionDenied
from watcher.host import EventSource, PermissionChecker
from watcher.models import RECEIVE_SMS, SMS_RECEIVED_ACTION
from watcher.relay import EventRelay

DEFAULT_PRIORITY = 1000


class WatcherController:
    """
    短信监听的生命周期：
      Stopped --start()--> Watching --stop()--> Stopped

      - start()：先查权限，无权限抛 PermissionDenied 且不做任何注册；
                 已在监听时直接返回，不会重复注册
      - stop() ：注销订阅；未监听时什么也不做；宿主注销失败也回到 Stopped，不抛异常
      - close()：释放时无条件 stop()，避免订阅比控制器活得更久

    状态切换由一把锁保护（先判断再注册/注销），并发调用 start/stop 也不会重复注册。
    """

    def __init__(self,
                 source: EventSource,
                 permissions: PermissionChecker,
                 relay: EventRelay,
                 *,
                 action: str = SMS_RECEIVED_ACTION,
                 permission: str = RECEIVE_SMS,
                 priority: int = DEFAULT_PRIORITY):
        self._source = source
        self._permissions = permissions
        self._relay = relay
        self.action = action
        self.permission = permission
        self.priority = priority
        self._registered = False
        self._lock = threading.Lock()
        self.logger = BaseLogger(name="WatcherController")

    @property
    def is_watching(self) -> bool:
        return self._registered

    @property
    def relay(self) -> EventRelay:
        return self._relay

    def start(self) -> None:
        with self._lock:
            if not self._permissions.has_permission(self.permission):
                self.logger.log_event("start_denied", permission=self.permission)
                raise PermissionDenied(self.permission)
            if self._registered:
                return
            self._source.register(self._relay, self.action, self.priority)
            self._registered = True
            self.logger.log_event("watcher_started", action=self.action, priority=self.priority)

    def stop(self) -> None:
        with self._lock:
            if not self._registered:
                return
            try:
                self._source.unregister(self._relay)
            except (ValueError, KeyError) as e:
                # 宿主已不认识这个接收者，等同于已经停止
                self.logger.log_warning(f"unregister failed, treating as stopped: {e}")
            except Exception:
                self.logger.log_error("unregister raised, watcher marked stopped")
            finally:
                self._registered = False
                self.logger.log_event("watcher_stopped", action=self.action)

    def close(self) -> None:
        self.stop()

    def __enter__(self) -> "WatcherController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
