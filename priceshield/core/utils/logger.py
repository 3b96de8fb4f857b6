"""日志工具 - 统一的 logger 创建入口"""

from __future__ import annotations

import logging
import threading
from logging.handlers import RotatingFileHandler
from typing import Optional

from priceshield.config import LOG_FORMAT, LOG_LEVEL, LOG_PATH

_LOG_FILE = LOG_PATH / "priceshield.log"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3

# 所有 logger 共用一个滚动文件 handler，避免多个句柄各自滚动同一文件
_file_handler: Optional[RotatingFileHandler] = None
_file_handler_lock = threading.Lock()


def get_file_handler() -> Optional[RotatingFileHandler]:
    """获取共享的滚动文件 handler，首次调用时创建；无法创建时返回 None"""
    global _file_handler
    with _file_handler_lock:
        if _file_handler is None:
            try:
                LOG_PATH.mkdir(parents=True, exist_ok=True)
                handler = RotatingFileHandler(
                    _LOG_FILE,
                    maxBytes=_MAX_BYTES,
                    backupCount=_BACKUP_COUNT,
                    encoding="utf-8",
                )
            except OSError:
                # 只读文件系统等场景下退化为仅控制台输出
                logging.getLogger(__name__).warning("无法创建日志文件: %s", _LOG_FILE)
                return None
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            _file_handler = handler
        return _file_handler


def setup_logger(
    name: str,
    level: int = LOG_LEVEL,
    log_to_file: bool = True,
) -> logging.Logger:
    """
    创建（或获取）带控制台与滚动文件输出的 logger

    同名 logger 只会挂载一次 handler，重复调用是安全的。

    Args:
        name: logger 名称
        level: 日志级别
        log_to_file: 是否同时写入日志文件

    Returns:
        logging.Logger 实例
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if log_to_file:
        file_handler = get_file_handler()
        if file_handler is not None:
            logger.addHandler(file_handler)

    logger.propagate = False
    return logger
