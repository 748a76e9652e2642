import functools
import inspect
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from tqdm import tqdm

import monodep
from monodep import settings

default_level = logging.INFO if settings.is_debug else logging.WARNING

# %(caller_file)s / %(caller_func)s はPidFunctionFormatterが埋める(log_iなどのラッパーを飛ばした呼び出し元)
FORMAT_CONSOLE = "%(asctime)s - %(caller_file)s - %(caller_func)s - %(levelname)s - %(message)s"
FORMAT_FILE = "%(asctime)s - PID:%(process)d - %(caller_file)s - %(caller_func)s - %(levelname)s - %(message)s"

# ログファイルのローテーション(1MB × 5世代)
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUP_COUNT = 5

# 呼び出し元を探すときに飛ばすモジュール
SKIP_MODULES = {"__init__", "handlers", "log_util"}


class PidFunctionFormatter(logging.Formatter):
    def format(self, record):
        record.caller_file, record.caller_func = self.find_caller()
        return super().format(record)

    @staticmethod
    def find_caller() -> tuple[str, str]:
        frame = inspect.currentframe()
        while frame:
            file_name = os.path.basename(frame.f_code.co_filename)
            if os.path.splitext(file_name)[0] not in SKIP_MODULES:
                return file_name, frame.f_code.co_name
            frame = frame.f_back
        return "unknown_file", "unknown_function"


def get_logger(name: str, level: int = default_level) -> logging.Logger:
    """monodep用のロガー(stderr + ローテーションするログファイル)

    stdoutはコマンドの結果(affectedの一覧やJSON)専用なので、ログは必ずstderrに出す。
    MONODEP_LOG_FILE が空ならファイルには出さない。
    """
    logger_ = logging.getLogger(name)
    logger_.setLevel(level)
    logger_.propagate = False
    if logger_.handlers:
        return logger_

    stream_handler = logging.StreamHandler(stream=sys.stderr)
    stream_handler.setFormatter(PidFunctionFormatter(FORMAT_CONSOLE))
    logger_.addHandler(stream_handler)

    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setFormatter(PidFunctionFormatter(FORMAT_FILE))
        logger_.addHandler(file_handler)
    return logger_


logger = get_logger(monodep.__name__)

MAX_SHOW_RETURN_LEN = 100


def log_inout(func):
    """デバッグモードのときだけ関数の引数と戻り値をログに出す"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        log("  --> %s args=%s, kwargs=%s", func.__qualname__, args, kwargs)
        result = func(*args, **kwargs)
        result_str = str(result)
        if len(result_str) > MAX_SHOW_RETURN_LEN:
            result_str = result_str[:MAX_SHOW_RETURN_LEN] + " ..."
        log("  <-- %s returned %s", func.__qualname__, result_str)
        return result

    return wrapper


def log(msg: str, *args, **kwargs):
    # IS_DEBUG=True のときだけ出す
    if settings.is_debug:
        logger.info(msg, *args, **kwargs)


def log_e(msg: str, *args, **kwargs):
    logger.error(msg, *args, **kwargs)


def log_w(msg: str, *args, **kwargs):
    logger.warning(msg, *args, **kwargs)


def log_i(msg: str, *args, **kwargs):
    logger.info(msg, *args, **kwargs)


def log_d(msg: str, *args, **kwargs):
    logger.debug(msg, *args, **kwargs)


def log_progress(t: tqdm):
    """tqdmの進捗をデバッグログにも残す"""
    if not t.total:
        return
    log("progress: %d/%d (%.0f%%)", t.n, t.total, 100 * t.n / t.total)
