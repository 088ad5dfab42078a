# -*- coding: utf-8 -*-
# commons/normalizers.py
from __future__ import annotations

"""
normalizers
-----------
通用“字段级转换 / 行级校验”函数库。
转换函数：func(value) -> new_value；校验函数：func(row_dict) -> None（异常表示失败）。
"""

from typing import Any, Optional


def empty_to_none(x: Any) -> Any:
    """将空串（含全空白）转换为 None，其它值保持不变。"""
    return None if isinstance(x, str) and x.strip() == "" else x


def to_int_or_none(x: Any) -> Optional[int]:
    """
    把值尽量强转为 int；空串/None/非法值返回 None：
    - "123" -> 123
    - 123.0 -> 123
    - "" / "  " / None -> None
    - "abc" -> None
    """
    if isinstance(x, bool):
        return None
    try:
        return int(x) if x is not None and str(x).strip() != "" else None
    except (TypeError, ValueError):
        return None


def to_str_or_none(x: Any) -> Optional[str]:
    """None 保持 None；bytes 按 UTF-8 宽松解码；其它值 str()。不去除空白（短信正文的空白有意义）。"""
    if x is None:
        return None
    if isinstance(x, (bytes, bytearray)):
        return bytes(x).decode("utf-8", "replace")
    return x if isinstance(x, str) else str(x)


def ensure_required(*keys: str):
    """生成行级校验器：指定字段缺失或为 None 时抛 ValueError。"""
    def _validator(row: dict) -> None:
        missing = [k for k in keys if row.get(k) is None]
        if missing:
            raise ValueError(f"缺少必填字段: {', '.join(missing)}")
    _validator.__name__ = f"ensure_required({', '.join(keys)})"
    return _validator


def ensure_non_negative(key: str):
    """生成行级校验器：指定字段为 int 且小于 0 时抛 ValueError。"""
    def _validator(row: dict) -> None:
        v = row.get(key)
        if isinstance(v, int) and v < 0:
            raise ValueError(f"{key}({v}) < 0")
    _validator.__name__ = f"ensure_non_negative({key})"
    return _validator
