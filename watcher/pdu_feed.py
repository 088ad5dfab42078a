# 行式 PDU 输入：没有真机时用来模拟宿主广播
from __future__ import annotations
import re
import threading
from typing import Iterable, Optional

from watcher.host import LocalBroadcastSource
from watcher.models import SMS_RECEIVED_ACTION, PlatformEvent

_SPLIT = re.compile(r"[,\s]+")


def parse_feed_line(line: str, action: str = SMS_RECEIVED_ACTION) -> Optional[PlatformEvent]:
    """
    一行 = 一次广播，行内多个 PDU 用逗号或空白分隔。
      - '#' 之后为注释；空行返回 None
      - action 取监听配置的广播名，与 EventRelay 保持一致
      - 不是合法十六进制的片段原样保留为 str，交给 EventRelay 报解码错误
    """
    text = line.split("#", 1)[0].strip()
    if not text:
        return None
    units = []
    for token in _SPLIT.split(text):
        if not token:
            continue
        try:
            units.append(bytes.fromhex(token))
        except ValueError:
            units.append(token)
    return PlatformEvent.sms_received(units, action=action)


def feed_lines(source: LocalBroadcastSource,
               lines: Iterable[str],
               stop_flag: Optional[threading.Event] = None,
               action: str = SMS_RECEIVED_ACTION) -> int:
    """逐行投递到 source，返回投递的广播数；stop_flag 置位后不再读取。"""
    sent = 0
    for line in lines:
        if stop_flag is not None and stop_flag.is_set():
            break
        event = parse_feed_line(line, action)
        if event is None:
            continue
        source.send_broadcast(event)
        sent += 1
    return sent
