import threading

import pytest

from watcher.controller import WatcherController
from watcher.errors import PermissionDenied
from watcher.host import EventSource, LocalBroadcastSource, StaticPermissions
from watcher.models import RECEIVE_SMS, SMS_RECEIVED_ACTION, PlatformEvent
from watcher.relay import EventRelay
from samples import HELLO, Recorder


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def source():
    return LocalBroadcastSource()


@pytest.fixture
def permissions():
    return StaticPermissions([RECEIVE_SMS])


@pytest.fixture
def controller(source, permissions, recorder):
    return WatcherController(source, permissions, EventRelay(recorder))


def _sms():
    return PlatformEvent.sms_received([HELLO])


def test_start_twice_registers_once(controller, source, recorder):
    controller.start()
    controller.start()
    assert source.registration_count(SMS_RECEIVED_ACTION) == 1

    source.send_broadcast(_sms())
    assert len(recorder.records) == 1


def test_stop_twice_is_safe(controller, source):
    controller.start()
    controller.stop()
    controller.stop()
    assert not controller.is_watching
    assert source.registration_count() == 0


def test_stop_without_start_is_noop(controller):
    controller.stop()
    assert not controller.is_watching


def test_permission_gate(source, recorder):
    controller = WatcherController(source, StaticPermissions(), EventRelay(recorder))
    with pytest.raises(PermissionDenied) as ei:
        controller.start()
    assert ei.value.permission == RECEIVE_SMS
    assert not controller.is_watching
    assert source.registration_count() == 0

    source.send_broadcast(_sms())
    assert recorder.records == []


def test_no_relay_after_stop(controller, source, recorder):
    controller.start()
    controller.stop()
    source.send_broadcast(_sms())
    assert recorder.records == []


def test_restart_after_grant(source, recorder):
    perms = StaticPermissions()
    controller = WatcherController(source, perms, EventRelay(recorder))
    with pytest.raises(PermissionDenied):
        controller.start()
    perms.grant(RECEIVE_SMS)
    controller.start()
    source.send_broadcast(_sms())
    assert recorder.bodies == ["Hello"]


def test_registers_with_high_priority(source, permissions, recorder):
    """高优先级的监听先于默认处理收到广播"""
    order = []

    class Default:
        def on_receive(self, event):
            order.append("default")

    class Tap(EventRelay):
        def on_platform_event(self, event):
            order.append("watcher")
            return super().on_platform_event(event)

    source.register(Default(), SMS_RECEIVED_ACTION, priority=0)
    controller = WatcherController(source, permissions, Tap(recorder), priority=1000)
    controller.start()
    source.send_broadcast(_sms())
    assert order == ["watcher", "default"]


def test_unregister_failure_treated_as_stopped(controller, source):
    controller.start()
    source.unregister(controller.relay)  # 宿主侧已经丢了注册
    controller.stop()
    assert not controller.is_watching


class FailingUnregister(EventSource):
    def __init__(self):
        self.registered = []

    def register(self, receiver, action, priority=0):
        self.registered.append(receiver)

    def unregister(self, receiver):
        raise RuntimeError("host binder died")


def test_unexpected_unregister_error_still_stops(permissions, recorder):
    source = FailingUnregister()
    controller = WatcherController(source, permissions, EventRelay(recorder))
    controller.start()
    controller.stop()  # 不抛异常
    assert not controller.is_watching
    controller.start()  # 可以重新进入 Watching
    assert controller.is_watching
    assert len(source.registered) == 2


def test_close_and_context_manager(source, permissions, recorder):
    with WatcherController(source, permissions, EventRelay(recorder)) as controller:
        controller.start()
        assert source.registration_count() == 1
    assert source.registration_count() == 0
    assert not controller.is_watching


def test_concurrent_start_registers_once(controller, source):
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        controller.start()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert source.registration_count() == 1


def test_independent_controllers(permissions):
    """没有进程级单例：两套组件互不影响"""
    a_src, b_src = LocalBroadcastSource(), LocalBroadcastSource()
    a_rec, b_rec = Recorder(), Recorder()
    a = WatcherController(a_src, permissions, EventRelay(a_rec))
    b = WatcherController(b_src, permissions, EventRelay(b_rec))
    a.start()
    b.start()
    b.stop()
    a_src.send_broadcast(_sms())
    b_src.send_broadcast(_sms())
    assert len(a_rec.records) == 1
    assert b_rec.records == []
