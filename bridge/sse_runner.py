# ────────────────────────────────────────────────────────────────
# 模块用途：FastAPI 桥接服务，把短信监听暴露给应用层
# 说明：
#   - POST /api/methods/{method}：应用层调用 startWatcher / stopWatcher；
#   - GET  /sse/records：每条短信一帧 event: sms，空闲时发心跳注释；
#   - 通道的 onSmsReceived 调用经 RecordBus 从宿主线程转到事件循环；
#   - 后台启动，不阻塞主流程。
# ────────────────────────────────────────────────────────────────

from __future__ import annotations
import asyncio
import json
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Any, Callable

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from bridge.adapters.record_payload import error_payload, record_payload
from bridge.bus import RecordBus
from bridge.channel import MethodChannel
from commons.base_logger import BaseLogger

_logger = BaseLogger(name="SseRunner")

_STATUS_BY_CODE = {
    "PERMISSION_DENIED": 403,
    "NOT_IMPLEMENTED": 404,
}

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Content-Encoding": "identity",
}


def _sse_frame(event: str, data: Any) -> bytes:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False, default=str)}\n\n".encode("utf-8")


def channel_to_bus(channel: MethodChannel, bus: RecordBus, record_method: str = "onSmsReceived") -> Callable[[str, Any], None]:
    """注册一个通道 listener：record_method 的调用包装成 payload 发布到 bus。返回该 listener 便于移除。"""
    def _listener(method: str, arguments: Any) -> None:
        if method != record_method:
            return
        if not bus.publish_threadsafe(record_payload(arguments, channel=channel.name)):
            _logger.log_debug("bus not bound to a running loop, record dropped")

    channel.add_listener(_listener)
    return _listener


# ────────────────────────────────────────────────────────────────
# 构建 FastAPI 实例
# ────────────────────────────────────────────────────────────────
def build_sse_app(channel: MethodChannel, bus: RecordBus, *, keepalive_seconds: float = 15.0) -> FastAPI:
    @asynccontextmanager
    async def _lifespan(_app: FastAPI):
        # 记录跨线程发布要投递到的事件循环
        bus.bind(asyncio.get_running_loop())
        yield

    app = FastAPI(title="SMS Watcher Bridge", version="1.0.0", lifespan=_lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    async def _h():
        """健康检查：用于存活探测"""
        return {"ok": True, "channel": channel.name, "subscribers": bus.subscriber_count}

    @app.post("/api/methods/{method}")
    async def _call(method: str, request: Request):
        raw = await request.body()
        try:
            arguments = json.loads(raw) if raw.strip() else None
        except ValueError:
            return JSONResponse(error_payload("body is not valid json", code="BAD_REQUEST"), status_code=400)

        payload = channel.handle_method_call(method, arguments)
        if payload["type"] == "result":
            return JSONResponse(payload)
        code = payload["error"]["code"]
        return JSONResponse(payload, status_code=_STATUS_BY_CODE.get(code, 500))

    @app.get("/sse/records")
    async def _sse(request: Request):
        bus.bind(asyncio.get_running_loop())
        q = bus.subscribe()

        async def gen():
            try:
                while True:
                    if await request.is_disconnected():
                        break
                    item = await bus.next_record(q, timeout=keepalive_seconds)
                    if item is None:
                        yield b": keep-alive\n\n"
                        continue
                    yield _sse_frame("sms", item)
            finally:
                bus.unsubscribe(q)

        return StreamingResponse(gen(), media_type="text/event-stream", headers=_SSE_HEADERS)

    return app


# ────────────────────────────────────────────────────────────────
# 启动与停止：供 watch_main 调用
# ────────────────────────────────────────────────────────────────
@dataclass
class SseServerHandle:
    server: uvicorn.Server
    task: asyncio.Task


async def start_sse_background(app: FastAPI, host: str = "127.0.0.1", port: int = 8001) -> SseServerHandle:
    """
    后台启动 SSE 服务。
    - 不阻塞主协程；
    - 端口占用等启动失败只记日志；
    - 返回句柄，供主程序 stop。
    """
    config = uvicorn.Config(app=app, host=host, port=port, loop="asyncio", log_level="info")
    server = uvicorn.Server(config)

    async def _serve():
        try:
            await server.serve()
        except SystemExit:
            _logger.log_error(f"port {port} already in use", exc_info=False)

    task = asyncio.create_task(_serve(), name=f"sms-sse:{port}")
    await asyncio.sleep(0.1)
    _logger.log_info(f"SSE server started: http://{host}:{port}/sse/records")
    return SseServerHandle(server, task)


async def stop_sse_background(handle) -> None:
    """关闭 SSE 服务"""
    if not handle:
        return
    handle.server.should_exit = True
    handle.task.cancel()
    with suppress(asyncio.CancelledError):
        await handle.task
