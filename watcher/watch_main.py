# watch_main.py
"""
=========================================
主程序入口
=========================================

功能说明：
  - 组装 事件源 / 权限 / EventRelay / WatcherController / MethodChannel
  - 启动 FastAPI 桥接服务（SSE 推送短信，HTTP 接收 start/stop 命令）
  - 从标准输入读取十六进制 PDU，模拟宿主的短信广播
  - 支持 Ctrl+C 优雅退出；退出时无条件注销监听
"""

from __future__ import annotations
import asyncio
import contextlib
import signal
import sys
import threading
from dataclasses import dataclass
from typing import Iterable, Optional

from bridge.bus import RecordBus
from bridge.channel import ChannelConsumer, MethodChannel
from bridge.commands import CommandDispatcher
from bridge.sse_runner import build_sse_app, channel_to_bus, start_sse_background, stop_sse_background
from commons.base_logger import BaseLogger
from watcher import setting
from watcher.controller import WatcherController
from watcher.errors import PermissionDenied
from watcher.host import LocalBroadcastSource, StaticPermissions
from watcher.pdu_feed import feed_lines
from watcher.relay import EventRelay


@dataclass
class WatcherComponents:
    source: LocalBroadcastSource
    permissions: StaticPermissions
    channel: MethodChannel
    consumer: ChannelConsumer   # 组合根持有强引用，EventRelay 只持弱引用
    relay: EventRelay
    controller: WatcherController
    dispatcher: CommandDispatcher

    def close(self) -> None:
        self.controller.close()
        self.channel.close()


def build_watcher(granted: Optional[Iterable[str]] = None) -> WatcherComponents:
    """按 setting 组装一套互相独立的组件（没有进程级单例，测试可多次调用）。"""
    source = LocalBroadcastSource()
    permissions = StaticPermissions(setting.GRANTED if granted is None else granted)
    channel = MethodChannel(setting.CHANNEL_NAME)
    consumer = ChannelConsumer(channel, method=setting.RECORD_METHOD)
    relay = EventRelay(consumer, action=setting.ACTION)
    controller = WatcherController(
        source, permissions, relay,
        action=setting.ACTION,
        permission=setting.PERMISSION,
        priority=setting.PRIORITY,
    )
    dispatcher = CommandDispatcher(controller)
    channel.set_method_call_handler(dispatcher)
    return WatcherComponents(source, permissions, channel, consumer, relay, controller, dispatcher)


async def main(autostart: bool = True, stream=None) -> None:
    """
    主入口：
      1. 设置退出信号 (SIGINT / SIGTERM)
      2. 组装组件，启动 SSE 桥接服务
      3. 可选：直接执行 startWatcher
      4. 后台线程读取 stdin 的 PDU 行并投递广播，读完（EOF）即退出
    """
    BaseLogger.configure(setting.LOG_LEVEL, setting.LOG_TO_FILE)
    log = BaseLogger(name="WatchMain")

    stop_evt = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _stop(*_):
        stop_evt.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):  # Windows 下可能不支持
            loop.add_signal_handler(sig, _stop)

    parts = build_watcher()
    bus = RecordBus(queue_cap=setting.QUEUE_CAP)
    bus.bind(loop)
    channel_to_bus(parts.channel, bus, record_method=setting.RECORD_METHOD)

    app = build_sse_app(parts.channel, bus, keepalive_seconds=setting.KEEPALIVE_S)
    handle = await start_sse_background(app, host=setting.SSE_HOST, port=setting.SSE_PORT)

    if autostart:
        try:
            log.log_info(parts.dispatcher.dispatch("startWatcher"))
        except PermissionDenied as e:
            log.log_warning(f"autostart skipped: {e}")

    # stdin 读取是阻塞的，放到守护线程里，避免退出时卡住
    stop_flag = threading.Event()

    def _feed():
        try:
            n = feed_lines(parts.source, stream or sys.stdin, stop_flag, action=setting.ACTION)
            log.log_event("feed_finished", broadcasts=n)
        finally:
            with contextlib.suppress(RuntimeError):  # 事件循环已关闭
                loop.call_soon_threadsafe(stop_evt.set)

    threading.Thread(target=_feed, name="pdu-feed", daemon=True).start()

    try:
        await stop_evt.wait()
    finally:
        stop_flag.set()
        parts.close()
        await stop_sse_background(handle)
        log.log_event("bye")


def run() -> None:
    """
    同步入口点：
      - asyncio.run(main()) 启动事件循环
      - 捕获 KeyboardInterrupt，确保安全退出
    """
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
