import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional


class Logger:
    """封装 aide 的诊断日志配置，允许区分文件与控制台级别

    注意：这里的日志与对话记录文件（chat log）无关，后者由 ExchangeRecorder 负责。
    """

    def __init__(
        self,
        name: str = 'aide',
        level: int = logging.DEBUG,
        console_level: Optional[int] = logging.WARNING,
        log_dir: Optional[str] = None,
    ) -> None:
        default_dir = Path.home() / '.aide' / 'logs'
        self.log_dir = log_dir or os.getenv('AIDE_LOG_DIR') or str(default_dir)
        self.file_level = level
        self.console_level = console_level if console_level is not None else level

        self.logger = logging.getLogger(name)
        self.logger.setLevel(min(self.file_level, self.console_level))
        self.logger.propagate = False

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self) -> None:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        )

        file_error: Optional[OSError] = None
        try:
            os.makedirs(self.log_dir, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                filename=os.path.join(self.log_dir, 'aide.log'),
                when='midnight',
                interval=1,
                backupCount=30,
                encoding='utf-8',
            )
            file_handler.setLevel(self.file_level)
            file_handler.setFormatter(formatter)
            file_handler.suffix = '%Y-%m-%d'
            self.logger.addHandler(file_handler)
        except OSError as e:
            # 只读的 home 目录下仍然保留控制台输出
            file_error = e

        console_handler = logging.StreamHandler()
        console_handler.setLevel(self.console_level)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if file_error is not None:
            self.logger.warning(f"无法创建日志文件 {self.log_dir}，仅输出到控制台: {file_error}")

    def set_console_level(self, level: str) -> None:
        """按配置中的 log_level 调整控制台级别"""
        self.console_level = logging.getLevelName(level.upper())
        for handler in self.logger.handlers:
            if not isinstance(handler, TimedRotatingFileHandler):
                handler.setLevel(self.console_level)
        self.logger.setLevel(min(self.file_level, self.console_level))

    def debug(self, message: str) -> None:
        self.logger.debug(message, stacklevel=2)

    def info(self, message: str) -> None:
        self.logger.info(message, stacklevel=2)

    def warning(self, message: str) -> None:
        self.logger.warning(message, stacklevel=2)

    def error(self, message: str) -> None:
        self.logger.error(message, stacklevel=2)

    def critical(self, message: str) -> None:
        self.logger.critical(message, stacklevel=2)


logger = Logger()
