# bridge/commands.py
from __future__ import annotations
from typing import Any, Callable, Dict

from watcher.controller import WatcherController
from watcher.errors import MethodNotImplemented

STARTED = "SMS Watcher started"
STOPPED = "SMS Watcher stopped"


class CommandDispatcher:
    """
    应用层命令：
      startWatcher / startSmsWatcher -> controller.start()，返回 "SMS Watcher started"
      stopWatcher  / stopSmsWatcher  -> controller.stop()，返回 "SMS Watcher stopped"
    权限不足时 PermissionDenied 原样抛出，由 MethodChannel 转成错误结果。
    """

    def __init__(self, controller: WatcherController):
        self.controller = controller
        self._commands: Dict[str, Callable[[], str]] = {
            "startWatcher": self.start_watcher,
            "stopWatcher": self.stop_watcher,
            "startSmsWatcher": self.start_watcher,
            "stopSmsWatcher": self.stop_watcher,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._commands)

    def start_watcher(self) -> str:
        self.controller.start()
        return STARTED

    def stop_watcher(self) -> str:
        self.controller.stop()
        return STOPPED

    def dispatch(self, method: str, arguments: Any = None) -> str:
        """命令不接收参数，arguments 只为对齐通道签名。"""
        command = self._commands.get(method)
        if command is None:
            raise MethodNotImplemented(method)
        return command()

    __call__ = dispatch
