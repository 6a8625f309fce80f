from __future__ import annotations

import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Notice(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str
    message: str


class Notifier:
    """Transient user-facing notices (the toast surface).

    Every notice is kept in order and logged; an optional sink receives it as
    well, e.g. a UI or a websocket push.
    """

    def __init__(self, sink: Optional[Callable[[Notice], None]] = None) -> None:
        self.notices: List[Notice] = []
        self._sink = sink

    def _push(self, level: str, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self.notices.append(notice)
        logger.log(_LOG_LEVELS[level], "%s: %s", level, message)
        if self._sink is not None:
            self._sink(notice)
        return notice

    def success(self, message: str) -> Notice:
        return self._push("success", message)

    def info(self, message: str) -> Notice:
        return self._push("info", message)

    def warning(self, message: str) -> Notice:
        return self._push("warning", message)

    def error(self, message: str) -> Notice:
        return self._push("error", message)

    def notices_at(self, level: str) -> List[Notice]:
        return [n for n in self.notices if n.level == level]

    def clear(self) -> None:
        self.notices.clear()
