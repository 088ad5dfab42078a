# 数据模型
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from watcher.errors import PduDecodeError

SMS_RECEIVED_ACTION = "android.provider.Telephony.SMS_RECEIVED"
RECEIVE_SMS = "android.permission.RECEIVE_SMS"

FORMAT_3GPP = "3gpp"
FORMAT_3GPP2 = "3gpp2"


@dataclass(frozen=True)
class PlatformEvent:
    """
    宿主投递的一次广播（下游只依赖 action + extras，不关心宿主细节）
    extras 约定：
      "pdus"   : 二进制消息单元序列（每个元素一个 bytes）
      "format" : "3gpp"（默认）| "3gpp2"
    """
    action: str
    extras: Optional[Mapping[str, Any]] = None

    @classmethod
    def sms_received(cls, pdus, fmt: str = FORMAT_3GPP,
                     action: str = SMS_RECEIVED_ACTION) -> "PlatformEvent":
        return cls(action=action, extras={"pdus": list(pdus), "format": fmt})


@dataclass
class RelayOutcome:
    """一次 on_platform_event 的处理结果汇总（宿主忽略它，测试与调用方可用）。"""
    forwarded: int = 0
    errors: List[PduDecodeError] = field(default_factory=list)
