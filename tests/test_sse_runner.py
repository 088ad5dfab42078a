import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from bridge.bus import RecordBus
from bridge.sse_runner import _sse_frame, build_sse_app, channel_to_bus
from watcher.models import RECEIVE_SMS, PlatformEvent
from watcher.watch_main import build_watcher
from samples import HELLO


@pytest.fixture
def parts():
    p = build_watcher(granted=[RECEIVE_SMS])
    yield p
    p.close()


@pytest.fixture
def client(parts):
    app = build_sse_app(parts.channel, RecordBus(), keepalive_seconds=0.05)
    with TestClient(app) as c:
        yield c


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["channel"] == "com.smartpaisa.sms_watcher"


def test_start_stop_over_http(client, parts):
    r = client.post("/api/methods/startWatcher")
    assert r.status_code == 200
    assert r.json()["result"] == "SMS Watcher started"
    assert parts.controller.is_watching

    r = client.post("/api/methods/stopSmsWatcher", json=None)
    assert r.status_code == 200
    assert r.json()["result"] == "SMS Watcher stopped"
    assert not parts.controller.is_watching


def test_permission_denied_is_403(client, parts):
    parts.permissions.revoke(RECEIVE_SMS)
    r = client.post("/api/methods/startWatcher")
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "PERMISSION_DENIED"
    assert not parts.controller.is_watching


def test_unknown_method_is_404(client):
    r = client.post("/api/methods/readInbox")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_IMPLEMENTED"


def test_bad_json_is_400(client):
    r = client.post("/api/methods/startWatcher", content=b"{not json",
                    headers={"content-type": "application/json"})
    assert r.status_code == 400


def test_sse_frame_format():
    frame = _sse_frame("sms", {"sms": {"body": "你好"}}).decode("utf-8")
    assert frame.startswith("event: sms\ndata: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame.split("data: ", 1)[1]) == {"sms": {"body": "你好"}}


def test_records_flow_from_host_to_bus(parts):
    """宿主广播 -> relay -> channel -> bus 订阅者"""
    async def run():
        bus = RecordBus()
        bus.bind(asyncio.get_running_loop())
        channel_to_bus(parts.channel, bus)
        q = bus.subscribe()
        parts.dispatcher.dispatch("startWatcher")
        parts.source.send_broadcast(PlatformEvent.sms_received([HELLO]))
        return await bus.next_record(q, timeout=1)

    frame = asyncio.run(run())
    assert frame["type"] == "sms/received"
    assert frame["channel"] == "com.smartpaisa.sms_watcher"
    assert frame["sms"] == {"sender": "+15551234567", "body": "Hello", "timestamp": 1_700_000_000_000}
