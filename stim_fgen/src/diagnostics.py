"""
Append-only diagnostics log for one instrument session.

Connection status, the instrument identity string and every error drained
from the instrument's queue end up here, so the operator can read back
what went wrong after a long stimulation run.
"""

import os
import pathlib
import uuid

from loguru import logger


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}"


def clear_log(path):
    path = pathlib.Path(path)
    if path.exists():
        path.unlink()


class DiagnosticsLog:
    """Loguru-backed sink dedicated to a single session."""

    def __init__(self, path=None, clear_prev=True, level="INFO"):
        self._tag = uuid.uuid4().hex
        self._sink_id = None
        self.path = None
        if path is not None:
            self.path = os.path.abspath(path)
            if clear_prev:
                clear_log(self.path)
            self._sink_id = logger.add(
                self.path,
                level=level,
                format=LOG_FORMAT,
                colorize=False,
                filter=lambda record: record["extra"].get("fgen_log") == self._tag,
            )
        self._log = logger.bind(fgen_log=self._tag)

    def write(self, text):
        self._log.info(text.rstrip())

    def error(self, text):
        self._log.error(text.rstrip())

    def close(self):
        if self._sink_id is not None:
            logger.remove(self._sink_id)
            self._sink_id = None
