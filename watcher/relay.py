#     事件转发 EventRelay
from __future__ import annotations
import weakref
from typing import Callable, Iterable, Mapping, Optional, Protocol

from commons.base_logger import BaseLogger
from mydataclass.message import MessageRecord
from watcher.errors import ConsumerUnavailable, PduDecodeError
from watcher.models import FORMAT_3GPP, FORMAT_3GPP2, SMS_RECEIVED_ACTION, PlatformEvent, RelayOutcome
from watcher.pdu_codec import SmsPduCodec

DecodeErrorHook = Callable[[PduDecodeError], None]


class Consumer(Protocol):
    """应用层的转发入口：每条解码成功的短信调用一次。"""

    def on_record_received(self, record: MessageRecord) -> None: ...


class EventRelay:
    """
    广播接收者：
      - 只处理 SMS_RECEIVED 广播，其它 action 直接忽略
      - extras / pdus 缺失时静默返回
      - 按宿主给出的顺序逐个解码 pdu，逐条同步转发给 consumer
      - 单个 pdu 解码失败只记一条 PduDecodeError，继续处理后续 pdu
      - consumer 只持弱引用；不存在或已断开时静默丢弃
      - 任何异常都不会抛回宿主的投递路径

    该类不关心注册/注销，由 WatcherController 负责生命周期。
    """

    def __init__(self,
                 consumer: Optional[Consumer] = None,
                 *,
                 action: str = SMS_RECEIVED_ACTION,
                 on_decode_error: Optional[DecodeErrorHook] = None,
                 codec: type[SmsPduCodec] = SmsPduCodec):
        self.action = action
        self.on_decode_error = on_decode_error
        self._codec = codec
        self._consumer_ref: Optional[weakref.ref] = None
        self.logger = BaseLogger(name="EventRelay")
        if consumer is not None:
            self.attach(consumer)

    # === consumer 引用 ===

    def attach(self, consumer: Consumer) -> None:
        self._consumer_ref = weakref.ref(consumer)

    def detach(self) -> None:
        self._consumer_ref = None

    @property
    def consumer(self) -> Optional[Consumer]:
        return self._consumer_ref() if self._consumer_ref is not None else None

    # === 宿主入口 ===

    def on_receive(self, event: PlatformEvent) -> RelayOutcome:
        """宿主回调名；等同 on_platform_event。"""
        return self.on_platform_event(event)

    def on_platform_event(self, event: PlatformEvent) -> RelayOutcome:
        outcome = RelayOutcome()
        if getattr(event, "action", None) != self.action:
            return outcome

        extras = getattr(event, "extras", None)
        if not extras:
            return outcome
        if not isinstance(extras, Mapping):
            self.logger.log_warning(f"extras is not a mapping: {type(extras).__name__}")
            return outcome
        pdus = extras.get("pdus")
        if pdus is None:
            return outcome
        if isinstance(pdus, (bytes, bytearray, str)) or not isinstance(pdus, Iterable):
            self.logger.log_warning(f"pdus is not a sequence of units: {type(pdus).__name__}")
            return outcome

        fmt = extras.get("format") or FORMAT_3GPP
        for index, pdu in enumerate(pdus):
            try:
                record = self._decode(pdu, fmt)
            except PduDecodeError as e:
                self._report(e.at_index(index), outcome)
                continue
            if self._forward(record):
                outcome.forwarded += 1
        return outcome

    # === 内部 ===

    def _decode(self, pdu, fmt: str) -> MessageRecord:
        if fmt == FORMAT_3GPP2:
            raise PduDecodeError("3gpp2 (CDMA) pdus are not supported")
        if fmt != FORMAT_3GPP:
            raise PduDecodeError(f"unknown pdu format: {fmt!r}")
        return self._codec.decode_record(pdu)

    def _report(self, err: PduDecodeError, outcome: RelayOutcome) -> None:
        outcome.errors.append(err)
        self.logger.log_warning(f"pdu decode failed: {err}")
        if self.on_decode_error is None:
            return
        try:
            self.on_decode_error(err)
        except Exception:
            self.logger.log_error("decode error hook failed")

    def _forward(self, record: MessageRecord) -> bool:
        consumer = self.consumer
        if consumer is None:
            self.logger.log_debug("no consumer attached, record dropped")
            return False
        try:
            consumer.on_record_received(record)
        except ConsumerUnavailable:
            self.logger.log_debug("consumer unavailable, record dropped")
            return False
        except Exception:
            self.logger.log_error("consumer failed while handling record")
            return False
        return True
