# 测试用 PDU 样本与替身
from __future__ import annotations


def pdu(hex_text: str) -> bytes:
    return bytes.fromhex(hex_text)


# 2023-11-14 22:13:20 UTC
TS_MS = 1_700_000_000_000
SCTS_UTC = "32114122310200"
SCTS_PLUS_8H = "32115160310223"     # 2023-11-15 06:13:20 +08:00
SCTS_MINUS_5H = "3211417131020A"    # 2023-11-14 17:13:20 -05:00

OA_US = "0B91 5155214365F7"         # +15551234567

# +15551234567 / "Hello"
HELLO = pdu(f"00 04 {OA_US} 00 00 {SCTS_UTC} 05 C8329BFD06")

# 同一发件人，正文 "hi"（8-bit）
HI_8BIT = pdu(f"00 04 {OA_US} 00 04 {SCTS_UTC} 02 6869")

# +8613800138000 / "你好"（UCS-2）
NIHAO = pdu(f"00 04 0D91 683108108300F0 00 08 {SCTS_UTC} 04 4F60597D")

# 字母数字发件人 "BANK"
BANK = pdu(f"00 04 07D0 C2A07309 00 00 {SCTS_UTC} 05 C8329BFD06")

# 带 UDH（长短信分段 1/2），正文 "Hi"
CONCAT_PART = pdu(f"00 44 {OA_US} 00 00 {SCTS_UTC} 09 0500032A0201 9069")

# 扩展表字符 "€"
EURO = pdu(f"00 04 {OA_US} 00 00 {SCTS_UTC} 02 9B32")

# 带 SMSC 的经典示例：+31641600986 / "How are you?"
HOW_ARE_YOU = pdu("07911326040000F0040B911346610089F60000208062917314080CC8F71D14969741F977FD07")

# 坏样本
TRUNCATED = pdu("00 04 0B91 5155")
STATUS_REPORT = pdu(f"00 06 {OA_US} 00 00 {SCTS_UTC} 05 C8329BFD06")
BAD_MONTH = pdu(f"00 04 {OA_US} 00 00 32314122310200 05 C8329BFD06")
BAD_BCD = pdu(f"00 04 {OA_US} 00 00 FF114122310200 05 C8329BFD06")
UDL_TOO_LONG = pdu(f"00 04 {OA_US} 00 00 {SCTS_UTC} 20 C8329BFD06")


class Recorder:
    """consumer 替身：按顺序记录收到的记录。"""

    def __init__(self):
        self.records = []

    def on_record_received(self, record):
        self.records.append(record)

    @property
    def bodies(self):
        return [r.body for r in self.records]
