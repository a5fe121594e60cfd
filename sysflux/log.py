#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import logging
import logging.handlers
import os
import re
import sys
import time
from logging import LogRecord
from typing import Any, MutableMapping, Optional, Tuple

LOGGER_NAME_RE = re.compile(r"sysflux(?:\..+)?")
RUN_ID_KEY = "run_id"

SYSTEM_LOG_FILE = "/var/log/sysflux/sysflux.log"
USER_LOG_FILE = "./sysflux.log"
DEFAULT_LOG_MAX_SIZE = 1024 * 1024 * 5
DEFAULT_LOG_BACKUP_COUNT = 1

_run_id: Optional[str] = None


def is_root() -> bool:
    return os.geteuid() == 0


def default_log_file() -> str:
    # /var/log is only writable by root; unprivileged runs log next to where they were started.
    return SYSTEM_LOG_FILE if is_root() else USER_LOG_FILE


def set_run_id(run_id: Optional[str]) -> None:
    global _run_id
    _run_id = run_id


def get_logger_adapter(logger_name: str) -> logging.LoggerAdapter:
    # Validate the name starts with sysflux (the root logger name), so logging parent logger propagation will work.
    assert LOGGER_NAME_RE.match(logger_name) is not None, "logger name must start with 'sysflux'"
    return SysfluxLoggerAdapter(logging.getLogger(logger_name), {})


class SysfluxLoggerAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        # the run id is attached lazily since loggers are created at import time, before it's known.
        kwargs["extra"] = {**kwargs.get("extra", {}), RUN_ID_KEY: _run_id}
        return msg, kwargs


class _RunIdFormatter(logging.Formatter):
    def format(self, record: LogRecord) -> str:
        formatted = super().format(record)
        run_id = getattr(record, RUN_ID_KEY, None)
        if run_id is not None:
            formatted = f"{formatted} (run_id={run_id})"
        return formatted


class _UTCFormatter(logging.Formatter):
    # Patch formatTime to be GMT (UTC) for all formatters,
    # see https://docs.python.org/3/library/logging.html?highlight=formattime#logging.Formatter.formatTime
    converter = time.gmtime


class SysfluxFormatter(_UTCFormatter):
    pass


class SysfluxFileFormatter(_RunIdFormatter, _UTCFormatter):
    pass


def initial_root_logger_setup(
    stream_level: int,
    log_file_path: Optional[str],
    rotate_max_bytes: int,
    rotate_backup_count: int,
) -> logging.LoggerAdapter:
    logger_adapter = get_logger_adapter("sysflux")
    logger_adapter.setLevel(logging.DEBUG)

    stream_handler = logging.StreamHandler(stream=sys.stdout)
    stream_handler.setLevel(stream_level)
    if stream_level < logging.INFO:
        stream_handler.setFormatter(SysfluxFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
    else:
        stream_handler.setFormatter(SysfluxFormatter("[%(asctime)s] %(message)s", "%H:%M:%S"))
    logger_adapter.logger.addHandler(stream_handler)

    if log_file_path:
        os.makedirs(os.path.dirname(log_file_path) or ".", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=rotate_max_bytes,
            backupCount=rotate_backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(SysfluxFileFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
        logger_adapter.logger.addHandler(file_handler)

    return logger_adapter
