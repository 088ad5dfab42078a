#  配置 / Settings
import os

from commons.normalizers import empty_to_none, to_int_or_none
from tools.config_loader import load_config
from watcher.models import RECEIVE_SMS, SMS_RECEIVED_ACTION

_watcher = load_config("watcher")
_bridge = load_config("bridge")
_logging = load_config("logging")


def _env_int(name, fallback):
    v = to_int_or_none(empty_to_none(os.getenv(name)))
    return fallback if v is None else v


def _env_str(name, fallback):
    v = empty_to_none(os.getenv(name))
    return fallback if v is None else v


ACTION       = _watcher.get("action", SMS_RECEIVED_ACTION)
PERMISSION   = _watcher.get("permission", RECEIVE_SMS)
PRIORITY     = _env_int("SMS_WATCHER_PRIORITY", int(_watcher.get("priority", 1000)))   # 高于系统默认处理
GRANTED      = list(_watcher.get("granted_permissions", [RECEIVE_SMS]))                # 本地运行时的授权表

CHANNEL_NAME = _bridge.get("channel", "com.smartpaisa.sms_watcher")
RECORD_METHOD = _bridge.get("record_method", "onSmsReceived")
SSE_HOST     = _env_str("SMS_WATCHER_SSE_HOST", _bridge.get("host", "127.0.0.1"))
SSE_PORT     = _env_int("SMS_WATCHER_SSE_PORT", int(_bridge.get("port", 8001)))
KEEPALIVE_S  = float(_bridge.get("keepalive_seconds", 15))                            # SSE 心跳间隔
QUEUE_CAP    = _env_int("SMS_WATCHER_QUEUE_CAP", int(_bridge.get("queue_cap", 256)))  # 每个 SSE 订阅者的缓冲上限（满则丢最旧）

LOG_LEVEL    = _env_str("SMS_WATCHER_LOG_LEVEL", _logging.get("level", "INFO"))
LOG_TO_FILE  = _env_str("SMS_WATCHER_LOG_TO_FILE", str(_logging.get("to_file", False))).lower() == "true"
