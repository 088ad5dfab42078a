from __future__ import annotations

import time
from typing import Any, Dict, Optional

from mydataclass.message import MessageRecord

SCHEMA_VERSION = "1.0"


def _now_ms() -> int:
    return int(time.time() * 1000)


# =========================
# 短信记录
# =========================

def record_arguments(r: MessageRecord) -> Dict[str, Any]:
    """通道调用 onSmsReceived 的参数：只有三个字段，与移动端约定保持一致。"""
    return {"sender": r.sender, "body": r.body, "timestamp": r.timestamp}


def record_payload(arguments: Dict[str, Any], *, channel: Optional[str] = None) -> Dict[str, Any]:
    """SSE 推送给前端的一帧。"""
    return {
        "type": "sms/received",
        "schema_version": SCHEMA_VERSION,
        "ts": _now_ms(),
        "channel": channel,
        "sms": dict(arguments),
    }


# =========================
# 方法调用结果
# =========================

def success_payload(result: Any) -> Dict[str, Any]:
    return {
        "type": "result",
        "schema_version": SCHEMA_VERSION,
        "ts": _now_ms(),
        "result": result,
    }


def error_payload(message: str, code: str = "INTERNAL") -> Dict[str, Any]:
    return {
        "type": "error",
        "schema_version": SCHEMA_VERSION,
        "ts": _now_ms(),
        "error": {"code": code, "message": message},
    }


def not_implemented_payload(method: str) -> Dict[str, Any]:
    return error_payload(f"method not implemented: {method}", code="NOT_IMPLEMENTED")
