# bridge/channel.py
from __future__ import annotations
import threading
from typing import Any, Callable, Dict, List, Optional

from bridge.adapters.record_payload import (
    error_payload,
    not_implemented_payload,
    record_arguments,
    success_payload,
)
from commons.base_logger import BaseLogger
from mydataclass.message import MessageRecord
from watcher.errors import ConsumerUnavailable, MethodNotImplemented, WatcherError

MethodCallHandler = Callable[[str, Any], Any]
Listener = Callable[[str, Any], None]


class MethodChannel:
    """
    跨运行时的命名方法通道（对应移动端的 MethodChannel）：
      - 入方向：应用层调用 handle_method_call(method, arguments)，交给 method call handler
      - 出方向：invoke_method(method, arguments) 广播给所有 listener（SSE、测试替身等）
      - close() 之后出方向调用抛 ConsumerUnavailable
    """

    def __init__(self, name: str):
        self.name = name
        self._handler: Optional[MethodCallHandler] = None
        self._listeners: List[Listener] = []
        self._closed = False
        self._lock = threading.Lock()
        self.logger = BaseLogger(name="MethodChannel")

    # === 入方向 ===

    def set_method_call_handler(self, handler: Optional[MethodCallHandler]) -> None:
        self._handler = handler

    def handle_method_call(self, method: str, arguments: Any = None) -> Dict[str, Any]:
        """
        执行一次方法调用，返回结果 payload：
          success_payload / error_payload(code=异常的 code) / not_implemented_payload
        """
        if self._handler is None:
            return not_implemented_payload(method)
        try:
            result = self._handler(method, arguments)
        except MethodNotImplemented:
            return not_implemented_payload(method)
        except WatcherError as e:
            return error_payload(str(e), code=getattr(e, "code", "WATCHER_ERROR"))
        return success_payload(result)

    # === 出方向 ===

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._listeners.clear()

    def invoke_method(self, method: str, arguments: Any = None) -> None:
        """单向调用，不等待应答；单个 listener 失败只记日志。"""
        with self._lock:
            if self._closed:
                raise ConsumerUnavailable(f"channel closed: {self.name}")
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(method, arguments)
            except Exception:
                self.logger.log_error(f"listener failed on {method}")


class ChannelConsumer:
    """EventRelay 持有的 consumer：把 MessageRecord 转成一次 invoke_method。"""

    def __init__(self, channel: MethodChannel, method: str = "onSmsReceived"):
        self.channel = channel
        self.method = method

    def on_record_received(self, record: MessageRecord) -> None:
        self.channel.invoke_method(self.method, record_arguments(record))
