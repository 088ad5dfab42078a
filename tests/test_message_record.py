import dataclasses
import json

import pytest

from mydataclass.message import MessageRecord


def test_from_dict_canonical_keys():
    obj = MessageRecord.from_dict({
        "sender": "+15551234567",
        "body": "Hello",
        "timestamp": "1700000000000",
        "extra": "ignored",
    })
    assert obj == MessageRecord(sender="+15551234567", body="Hello", timestamp=1_700_000_000_000)


@pytest.mark.parametrize("ts", [0, 1, 86_400_000, 1_700_000_000, 1_700_000_000_000])
def test_timestamp_millis_passed_through(ts):
    """毫秒值原样保留，小数值也不会被当成秒放大"""
    obj = MessageRecord.from_dict({"sender": "+1", "body": "x", "timestamp": ts}, strict=True)
    assert obj.timestamp == ts


def test_record_is_immutable():
    obj = MessageRecord(sender="+1", body="x", timestamp=1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        obj.body = "y"


def test_to_dict_and_json():
    obj = MessageRecord(sender="+8613800138000", body="你好", timestamp=1_700_000_000_000)
    assert obj.to_dict() == {"sender": "+8613800138000", "body": "你好", "timestamp": 1_700_000_000_000}
    assert json.loads(obj.to_json()) == obj.to_dict()
    assert "你好" in obj.to_json()


@pytest.mark.parametrize("raw", [
    {"sender": "+1", "body": "x"},                        # 缺 timestamp
    {"sender": None, "body": "x", "timestamp": 1},
    {"sender": "+1", "body": "x", "timestamp": "abc"},    # 转换为 None
    {"sender": "+1", "body": "x", "timestamp": -5},
])
def test_invalid_rows_raise(raw):
    with pytest.raises(ValueError):
        MessageRecord.from_dict(raw)


def test_non_mapping_strict():
    with pytest.raises(TypeError):
        MessageRecord.from_dict(["not", "a", "dict"], strict=True)
