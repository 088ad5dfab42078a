# mydataclass/message.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List

from commons.base_dataclasses import BaseDataClass
from commons.normalizers import (
    ensure_non_negative,
    ensure_required,
    to_int_or_none,
    to_str_or_none,
)


@dataclass(frozen=True, slots=True)
class MessageRecord(BaseDataClass):
    """
    一条解析后的入站短信，只在一次转发调用期间存在，不落库。

    字段：
      sender    : 发件人（号码或字母数字发件人 ID）
      body      : 短信正文，原样保留（不 strip）
      timestamp : 短信中心时间戳，UTC 毫秒，原值透传不做换算
    """
    sender: str
    body: str
    timestamp: int

    CONVERTERS: ClassVar[Dict[str, Any]] = {
        "sender": to_str_or_none,
        "body": to_str_or_none,
        "timestamp": to_int_or_none,
    }

    VALIDATORS: ClassVar[List[Any]] = [
        ensure_required("sender", "body", "timestamp"),
        ensure_non_negative("timestamp"),
    ]
