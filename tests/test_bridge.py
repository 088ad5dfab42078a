import pytest

from bridge.channel import ChannelConsumer, MethodChannel
from bridge.commands import STARTED, STOPPED, CommandDispatcher
from watcher.controller import WatcherController
from watcher.errors import ConsumerUnavailable, MethodNotImplemented, PermissionDenied
from watcher.host import LocalBroadcastSource, StaticPermissions
from watcher.models import RECEIVE_SMS, PlatformEvent
from watcher.relay import EventRelay
from samples import HELLO, NIHAO, TRUNCATED


@pytest.fixture
def wiring():
    """source + channel + consumer + relay + controller + dispatcher 一整套"""
    source = LocalBroadcastSource()
    perms = StaticPermissions([RECEIVE_SMS])
    channel = MethodChannel("com.smartpaisa.sms_watcher")
    consumer = ChannelConsumer(channel)
    relay = EventRelay(consumer)
    controller = WatcherController(source, perms, relay)
    dispatcher = CommandDispatcher(controller)
    channel.set_method_call_handler(dispatcher)
    calls = []
    channel.add_listener(lambda method, args: calls.append((method, args)))
    # consumer 只被弱引用，这里随 dict 一起持有
    return {"source": source, "perms": perms, "channel": channel, "consumer": consumer,
            "controller": controller, "dispatcher": dispatcher, "calls": calls}


@pytest.mark.parametrize("method,expected", [
    ("startWatcher", STARTED),
    ("startSmsWatcher", STARTED),
    ("stopWatcher", STOPPED),
    ("stopSmsWatcher", STOPPED),
])
def test_dispatch_status_strings(wiring, method, expected):
    assert wiring["dispatcher"].dispatch(method) == expected


def test_dispatch_unknown_method(wiring):
    with pytest.raises(MethodNotImplemented):
        wiring["dispatcher"].dispatch("deleteAllSms")


def test_dispatch_permission_denied(wiring):
    wiring["perms"].revoke(RECEIVE_SMS)
    with pytest.raises(PermissionDenied):
        wiring["dispatcher"].dispatch("startWatcher")


def test_channel_results(wiring):
    channel = wiring["channel"]
    ok = channel.handle_method_call("startWatcher")
    assert ok["type"] == "result"
    assert ok["result"] == STARTED

    missing = channel.handle_method_call("nope")
    assert missing["type"] == "error"
    assert missing["error"]["code"] == "NOT_IMPLEMENTED"

    wiring["perms"].revoke(RECEIVE_SMS)
    wiring["controller"].stop()
    denied = channel.handle_method_call("startWatcher")
    assert denied["error"]["code"] == "PERMISSION_DENIED"


def test_channel_without_handler_is_not_implemented():
    assert MethodChannel("x").handle_method_call("startWatcher")["error"]["code"] == "NOT_IMPLEMENTED"


def test_records_reach_channel_listeners(wiring):
    wiring["dispatcher"].dispatch("startWatcher")
    wiring["source"].send_broadcast(PlatformEvent.sms_received([HELLO, TRUNCATED, NIHAO]))

    assert wiring["calls"] == [
        ("onSmsReceived", {"sender": "+15551234567", "body": "Hello", "timestamp": 1_700_000_000_000}),
        ("onSmsReceived", {"sender": "+8613800138000", "body": "你好", "timestamp": 1_700_000_000_000}),
    ]


def test_closed_channel_drops_records(wiring):
    wiring["dispatcher"].dispatch("startWatcher")
    wiring["channel"].close()
    # 宿主投递不能因为通道断开而失败
    wiring["source"].send_broadcast(PlatformEvent.sms_received([HELLO]))
    assert wiring["calls"] == []
    with pytest.raises(ConsumerUnavailable):
        wiring["channel"].invoke_method("onSmsReceived", {})


def test_failing_listener_does_not_block_others():
    channel = MethodChannel("x")
    seen = []

    def bad(method, args):
        raise RuntimeError("boom")

    channel.add_listener(bad)
    channel.add_listener(lambda m, a: seen.append(m))
    channel.invoke_method("onSmsReceived", {})
    assert seen == ["onSmsReceived"]

    channel.remove_listener(bad)
    channel.remove_listener(bad)  # 重复移除无副作用
