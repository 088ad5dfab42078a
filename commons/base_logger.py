import inspect
import json
import logging
import os
from logging.handlers import TimedRotatingFileHandler

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_level(value, default: int = logging.INFO) -> int:
    """把配置里的 "INFO" / "debug" / 20 之类的值统一成 logging 级别。"""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return _LEVELS.get(value.strip().upper(), default)
    return default


class BaseLogger:
    """
    基础日志类：
    - 控制台 + 按天轮转文件输出
    - 自动推断调用类名作为 logger 名（统一挂在 sms_watcher 命名空间下）
    - 统一格式化输出（含时间、文件名、函数、线程）
    - log_event 输出单行 JSON，便于 grep / 采集
    """

    ROOT_NAME = "sms_watcher"
    DEFAULT_LEVEL: int = logging.INFO
    DEFAULT_TO_FILE: bool = False

    @classmethod
    def configure(cls, level: int | str = logging.INFO, to_file: bool = False) -> None:
        """
        全局默认值：之后创建的 BaseLogger 用这里的级别/文件开关；
        已创建的 sms_watcher.* logger 同步调整级别。
        """
        cls.DEFAULT_LEVEL = parse_level(level)
        cls.DEFAULT_TO_FILE = bool(to_file)
        prefix = cls.ROOT_NAME + "."
        for name in list(logging.Logger.manager.loggerDict):
            if name.startswith(prefix):
                lg = logging.getLogger(name)
                lg.setLevel(cls.DEFAULT_LEVEL)
                for h in lg.handlers:
                    if not isinstance(h, TimedRotatingFileHandler):
                        h.setLevel(cls.DEFAULT_LEVEL)

    def __init__(
        self,
        name: str | None = None,
        level: int | str | None = None,
        to_file: bool | None = None,
        file_path: str | None = None,
        file_level: int | str = logging.ERROR,
    ):
        """
        :param name: logger 名称（默认取调用者类名）
        :param level: 控制台日志级别，可传 "DEBUG" 等字符串
        :param to_file: 是否启用文件日志
        :param file_path: 日志文件路径（可选，默认 logs/<name>.log）
        :param file_level: 文件日志的最低级别（默认 ERROR）
        """
        if name is None:
            name = self._get_caller_class_name() or self.__class__.__name__
        level = self.DEFAULT_LEVEL if level is None else parse_level(level)
        if to_file is None:
            to_file = self.DEFAULT_TO_FILE

        self.logger = logging.getLogger(f"{self.ROOT_NAME}.{name}")
        self.logger.setLevel(level)
        self.logger.propagate = False  # 防止重复输出

        # 同名 logger 只配置一次 handler
        if not self.logger.handlers:
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | "
                "[%(filename)s:%(lineno)d %(funcName)s] | %(threadName)s | %(message)s"
            )

            ch = logging.StreamHandler()
            ch.setLevel(level)
            ch.setFormatter(formatter)
            self.logger.addHandler(ch)

            if to_file:
                if file_path is None:
                    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
                    log_dir = os.path.join(project_root, "logs")
                    os.makedirs(log_dir, exist_ok=True)
                    file_path = os.path.join(log_dir, f"{name}.log")

                fh = TimedRotatingFileHandler(
                    filename=file_path,
                    when="midnight",  # 每天轮转
                    interval=1,
                    backupCount=7,  # 保留 7 天
                    encoding="utf-8",
                )
                fh.setLevel(parse_level(file_level, logging.ERROR))
                fh.setFormatter(formatter)
                self.logger.addHandler(fh)

    # ------------------ 内部方法 ------------------

    def _get_caller_class_name(self) -> str | None:
        """
        获取调用者类名（跳过 BaseLogger 自身）。
        例如：WatcherController 内部 BaseLogger() -> 'WatcherController'
        """
        for frame_record in inspect.stack()[1:]:
            instance = frame_record.frame.f_locals.get("self")
            if instance is not None and not isinstance(instance, BaseLogger):
                return instance.__class__.__name__
        return None

    # ------------------ 对外日志接口 ------------------

    def log_info(self, message: str, exc_info: bool = False):
        self.logger.info(message, exc_info=exc_info, stacklevel=2)

    def log_warning(self, message: str, exc_info: bool = False):
        self.logger.warning(message, exc_info=exc_info, stacklevel=2)

    def log_error(self, message: str, exc_info: bool = True):
        """记录 ERROR 日志（默认包含异常堆栈）"""
        self.logger.error(message, exc_info=exc_info, stacklevel=2)

    def log_debug(self, message: str, exc_info: bool = False):
        self.logger.debug(message, exc_info=exc_info, stacklevel=2)

    def log_event(self, event: str, level: int = logging.INFO, **fields):
        """
        结构化日志：{"event": ..., 其余字段...} 单行 JSON。
        不可序列化的值直接 str()，日志永不因序列化失败而抛错。
        """
        if not self.logger.isEnabledFor(level):
            return
        payload = {"event": event, **fields}
        self.logger.log(level, json.dumps(payload, ensure_ascii=False, default=str), stacklevel=2)
