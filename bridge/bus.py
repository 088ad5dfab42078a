# bridge/bus.py
from __future__ import annotations
import asyncio
import contextlib
import threading
from typing import Any, List, Optional


class DropHeadQueue:
    """
    asyncio.Queue 的轻量封装：
    - 若队列已满：丢弃最旧元素（drop head），慢订阅者不会拖住发布方。
    - 只在事件循环线程内调用。
    """

    def __init__(self, cap: int):
        self._q: asyncio.Queue[Any] = asyncio.Queue(maxsize=cap)
        self.dropped = 0

    def put_nowait(self, item: Any) -> None:
        if self._q.full():
            with contextlib.suppress(asyncio.QueueEmpty):
                self._q.get_nowait()
                self.dropped += 1
        self._q.put_nowait(item)

    async def get(self) -> Any:
        return await self._q.get()

    def qsize(self) -> int:
        return self._q.qsize()


class RecordBus:
    """
    短信广播总线：
      - publish_threadsafe() 可以在宿主投递线程里调用，转到事件循环线程入队；
      - 每个订阅者一个 DropHeadQueue，各自消费，互不影响；
      - next_record() 可超时返回 None（用于 SSE 心跳）；
      - peek() 返回最近一条。
    """

    def __init__(self, queue_cap: int = 256) -> None:
        self.queue_cap = queue_cap
        self._latest: Optional[Any] = None
        self._subscribers: List[DropHeadQueue] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def peek(self) -> Optional[Any]:
        return self._latest

    def subscribe(self) -> DropHeadQueue:
        q = DropHeadQueue(self.queue_cap)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: DropHeadQueue) -> None:
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish_nowait(self, item: Any) -> None:
        """事件循环线程内调用。"""
        self._latest = item
        with self._lock:
            subscribers = list(self._subscribers)
        for q in subscribers:
            q.put_nowait(item)

    def publish_threadsafe(self, item: Any) -> bool:
        """任意线程调用；未绑定事件循环或循环已关闭时返回 False（记录被丢弃）。"""
        loop = self._loop
        if loop is None or loop.is_closed():
            self._latest = item
            return False
        try:
            loop.call_soon_threadsafe(self.publish_nowait, item)
        except RuntimeError:
            return False
        return True

    async def next_record(self, q: DropHeadQueue, timeout: float = 15.0) -> Optional[Any]:
        try:
            return await asyncio.wait_for(q.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
