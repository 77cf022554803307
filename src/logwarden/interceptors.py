"""
Interceptors for capturing standard library and third-party logs.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from .levels import Severity
from .logger import Logger


class LogwardenHandler(logging.Handler):
    """
    Redirect standard library logging records into a ``Logger``.

    The stdlib logger name is attached as the ``logger`` property so it shows
    up in both text and JSON output.
    """

    def __init__(self, target: Logger, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.target = target

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Skip our own diagnostics to avoid loops
            if record.name.startswith("logwarden"):
                return

            # Default formatter: message plus traceback when exc_info is set
            msg = self.format(record)

            self.target.log(
                msg,
                Severity.from_stdlib(record.levelno),
                logger=self._simplify_logger_name(record.name),
            )
        except Exception:
            self.handleError(record)

    @staticmethod
    def _simplify_logger_name(name: str) -> str:
        """Keep short names as-is, otherwise the last two dotted parts."""
        if not name:
            return "stdlib"
        parts = name.split(".")
        if len(parts) <= 2:
            return name
        return ".".join(parts[-2:])


def intercept_stdlib(target: Logger, names: Iterable[str] = ("",)) -> List[LogwardenHandler]:
    """Route the named stdlib loggers (the root logger by default) into ``target``.

    Existing handlers on those loggers are removed; returns the installed handlers.
    """
    installed = []
    for name in names:
        lg = logging.getLogger(name or None)
        lg.handlers = []
        handler = LogwardenHandler(target)
        lg.addHandler(handler)
        if name:
            lg.propagate = False
        installed.append(handler)
    return installed
