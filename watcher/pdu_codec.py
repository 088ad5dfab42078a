#     PDU 解析 SmsPduCodec
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from mydataclass.message import MessageRecord
from watcher.errors import PduDecodeError

# GSM 03.38 默认字母表（0x1B 为扩展表转义符，这里占位）
GSM7_BASIC = (
    "@£$¥èéùìòÇ\nØø\rÅå"
    "Δ_ΦΓΛΩΠΨΣΘΞ\x1bÆæßÉ"
    " !\"#¤%&'()*+,-./"
    "0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNO"
    "PQRSTUVWXYZÄÖÑÜ§"
    "¿abcdefghijklmno"
    "pqrstuvwxyzäöñüà"
)

# 扩展表：0x1B 之后的一个 septet
GSM7_EXTENSION = {
    0x0A: "\f",
    0x14: "^",
    0x28: "{",
    0x29: "}",
    0x2F: "\\",
    0x3C: "[",
    0x3D: "~",
    0x3E: "]",
    0x40: "|",
    0x65: "€",
}

# 地址 BCD 扩展数字（TS 23.040 9.1.2.3）
_BCD_DIGITS = "0123456789*#abc"

GSM7 = "gsm7"
OCTET = "8bit"
UCS2 = "ucs2"

_ESC = 0x1B


@dataclass(frozen=True)
class SmsDeliver:
    """一条 SMS-DELIVER 报文解析结果。对外只转发 sender/body/timestamp，其余字段供日志排障。"""
    service_center: Optional[str]
    sender: str
    protocol_id: int
    data_coding: int
    timestamp: int
    body: str
    user_data_header: Optional[bytes] = None

    def to_record(self) -> MessageRecord:
        return MessageRecord.from_dict(
            {"sender": self.sender, "body": self.body, "timestamp": self.timestamp},
            strict=True,
        )


class SmsPduCodec:
    """
    解析 3GPP TS 23.040 的 SMS-DELIVER PDU（带前导 SMSC 字段，与 Android
    SmsMessage.createFromPdu 的输入一致）。

    布局：
        SMSC(len + toa + bcd) | 首字节 | OA(len + toa + 值) | PID | DCS | SCTS(7) | UDL | UD
    任何越界、非法 BCD、不支持的报文类型都抛 PduDecodeError。
    """

    # ------------------ 基础读取 ------------------

    @staticmethod
    def _u8(buf: bytes, i: int):
        """读取 1 字节，返回 (value, new_index)。"""
        if i >= len(buf):
            raise PduDecodeError("truncated pdu", offset=i)
        return buf[i], i + 1

    @staticmethod
    def _take(buf: bytes, i: int, n: int):
        """读取 n 字节，返回 (bytes, new_index)。"""
        if n < 0 or i + n > len(buf):
            raise PduDecodeError(f"truncated pdu: need {n} bytes", offset=i)
        return bytes(buf[i:i + n]), i + n

    @staticmethod
    def _bcd(b: int, offset: int) -> int:
        """半字节交换的 BCD：低半字节是十位，高半字节是个位。"""
        tens, units = b & 0x0F, b >> 4
        if tens > 9 or units > 9:
            raise PduDecodeError(f"invalid bcd byte 0x{b:02X}", offset=offset)
        return tens * 10 + units

    # ------------------ GSM 7-bit ------------------

    @staticmethod
    def unpack_septets(data: bytes, count: int) -> list[int]:
        """
        把 7-bit 紧凑编码还原为 septet 列表。
        第 n 个 septet 从第 n*7 位开始，低位在前，可能跨两个字节。
        """
        septets = []
        for n in range(count):
            bit = n * 7
            idx, shift = divmod(bit, 8)
            if idx >= len(data):
                raise PduDecodeError(f"user data too short for {count} septets")
            val = data[idx] >> shift
            if shift > 1 and idx + 1 < len(data):
                val |= data[idx + 1] << (8 - shift)
            septets.append(val & 0x7F)
        return septets

    @staticmethod
    def gsm7_to_str(septets: list[int]) -> str:
        """septet 列表 -> 文本；0x1B 后接扩展表字符，扩展表未定义的按默认表字符显示。"""
        out = []
        escaped = False
        for s in septets:
            if escaped:
                out.append(GSM7_EXTENSION.get(s, GSM7_BASIC[s]))
                escaped = False
            elif s == _ESC:
                escaped = True
            else:
                out.append(GSM7_BASIC[s])
        if escaped:
            out.append(" ")  # 末尾孤立的转义符
        return "".join(out)

    # ------------------ 字段解析 ------------------

    @staticmethod
    def _bcd_digits(raw: bytes, limit: Optional[int] = None) -> str:
        """地址类 BCD：低半字节在前，0xF 为填充。"""
        digits = []
        for b in raw:
            for nibble in (b & 0x0F, b >> 4):
                if nibble == 0x0F:
                    continue
                digits.append(_BCD_DIGITS[nibble])
        if limit is not None:
            digits = digits[:limit]
        return "".join(digits)

    @staticmethod
    def _read_smsc(buf: bytes, i: int):
        """SMSC 字段：长度（字节数，含 TOA），0 表示使用默认短信中心。"""
        ln, i = SmsPduCodec._u8(buf, i)
        if ln == 0:
            return None, i
        raw, i = SmsPduCodec._take(buf, i, ln)
        toa, digits = raw[0], SmsPduCodec._bcd_digits(raw[1:])
        if (toa >> 4) & 0x07 == 0b001 and digits:
            digits = "+" + digits
        return digits, i

    @staticmethod
    def _read_address(buf: bytes, i: int):
        """
        发件地址（OA）。
        - 长度字段是“有效半字节数”
        - TON=0b101：字母数字地址，GSM 7-bit 紧凑编码
        - TON=0b001：国际号码，补 '+'
        """
        n_digits, i = SmsPduCodec._u8(buf, i)
        start = i
        toa, i = SmsPduCodec._u8(buf, i)
        raw, i = SmsPduCodec._take(buf, i, (n_digits + 1) // 2)
        ton = (toa >> 4) & 0x07
        if ton == 0b101:
            septets = SmsPduCodec.unpack_septets(raw, n_digits * 4 // 7)
            return SmsPduCodec.gsm7_to_str(septets), i
        digits = SmsPduCodec._bcd_digits(raw, limit=n_digits)
        if len(digits) != n_digits:
            raise PduDecodeError("address shorter than declared length", offset=start)
        if ton == 0b001 and digits:
            digits = "+" + digits
        return digits, i

    @staticmethod
    def _read_scts(buf: bytes, i: int):
        """
        短信中心时间戳：YY MM DD hh mm ss TZ，均为交换 BCD。
        TZ 以 15 分钟为单位，0x08 位为负号。返回 UTC 毫秒。
        """
        start = i
        raw, i = SmsPduCodec._take(buf, i, 7)
        yy, mo, dd, hh, mi, ss = (SmsPduCodec._bcd(b, start + k) for k, b in enumerate(raw[:6]))
        tz_byte = raw[6]
        quarters = SmsPduCodec._bcd(tz_byte & ~0x08 & 0xFF, start + 6)
        if tz_byte & 0x08:
            quarters = -quarters
        year = yy + (1900 if yy >= 90 else 2000)
        try:
            dt = datetime(year, mo, dd, hh, mi, ss, tzinfo=timezone(timedelta(minutes=15 * quarters)))
        except ValueError as e:
            raise PduDecodeError(f"invalid timestamp: {e}", offset=start) from e
        return int(dt.timestamp()) * 1000, i

    @staticmethod
    def alphabet_of(dcs: int) -> str:
        """根据 DCS 判断正文编码（TS 23.038 第 4 章）。"""
        group = dcs >> 4
        if dcs & 0x80 == 0:  # 00xx / 01xx：通用数据编码
            if dcs & 0x20:
                raise PduDecodeError(f"compressed user data not supported (dcs=0x{dcs:02X})")
            return {1: OCTET, 2: UCS2}.get((dcs >> 2) & 0x03, GSM7)
        if group == 0xE:
            return UCS2
        if group == 0xF:
            return OCTET if dcs & 0x04 else GSM7
        return GSM7  # 0xC/0xD 消息等待指示，以及保留组

    @staticmethod
    def _read_user_data(buf: bytes, i: int, alphabet: str, has_udh: bool):
        """
        返回 (body, header_bytes)。
        GSM 7-bit 时 UDL 为 septet 数，头部之后按 septet 边界补齐填充位；
        其它编码 UDL 为字节数。
        """
        udl, i = SmsPduCodec._u8(buf, i)
        ud = bytes(buf[i:])
        if alphabet == GSM7:
            need = (udl * 7 + 7) // 8
        else:
            need = udl
        if len(ud) < need:
            raise PduDecodeError(f"user data length {udl} exceeds payload", offset=i)
        ud = ud[:need]

        header = None
        header_len = 0
        if has_udh:
            if not ud:
                raise PduDecodeError("udhi set but user data empty", offset=i)
            header_len = ud[0] + 1
            if header_len > len(ud):
                raise PduDecodeError("user data header exceeds user data", offset=i)
            header = ud[1:header_len]

        if alphabet == GSM7:
            skip = (header_len * 8 + 6) // 7  # 头部占用的 septet 数（含填充位）
            if skip > udl:
                raise PduDecodeError("user data header exceeds user data", offset=i)
            septets = SmsPduCodec.unpack_septets(ud, udl)
            return SmsPduCodec.gsm7_to_str(septets[skip:]), header

        payload = ud[header_len:]
        if alphabet == UCS2:
            if len(payload) % 2:
                payload = payload[:-1]  # 奇数字节：丢掉不完整的最后一个码元
            return payload.decode("utf-16-be", "replace"), header
        return payload.decode("latin-1"), header

    # ------------------ 对外接口 ------------------

    @staticmethod
    def decode_deliver(raw) -> SmsDeliver:
        """
        解析一条 SMS-DELIVER PDU。

        参数：
            raw: bytes / bytearray / memoryview
        返回：
            SmsDeliver
        异常：
            PduDecodeError（输入类型不对、截断、非 DELIVER 报文、非法字段）
        """
        if not isinstance(raw, (bytes, bytearray, memoryview)):
            raise PduDecodeError(f"unit is not bytes: {type(raw).__name__}")
        buf = bytes(raw)
        if not buf:
            raise PduDecodeError("empty pdu")

        smsc, i = SmsPduCodec._read_smsc(buf, 0)
        first, i = SmsPduCodec._u8(buf, i)
        mti = first & 0x03
        if mti != 0x00:
            raise PduDecodeError(f"unsupported message type indicator {mti}", offset=i - 1)
        has_udh = bool(first & 0x40)

        sender, i = SmsPduCodec._read_address(buf, i)
        pid, i = SmsPduCodec._u8(buf, i)
        dcs, i = SmsPduCodec._u8(buf, i)
        alphabet = SmsPduCodec.alphabet_of(dcs)
        timestamp, i = SmsPduCodec._read_scts(buf, i)
        body, header = SmsPduCodec._read_user_data(buf, i, alphabet, has_udh)

        return SmsDeliver(
            service_center=smsc,
            sender=sender,
            protocol_id=pid,
            data_coding=dcs,
            timestamp=timestamp,
            body=body,
            user_data_header=header,
        )

    @staticmethod
    def decode_record(raw) -> MessageRecord:
        """PDU -> MessageRecord；记录构造/校验失败同样归为 PduDecodeError。"""
        deliver = SmsPduCodec.decode_deliver(raw)
        try:
            return deliver.to_record()
        except (TypeError, ValueError) as e:
            raise PduDecodeError(f"invalid record: {e}") from e
