"""User-visible signal channel: transient success/error notices.

Every mutation attempt ends in exactly one notice. The board keeps them in
order so a UI (or a test) can drain what happened since it last looked.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import assert_never

from jiralite.types.enums import NoticeLevel

logger = logging.getLogger(__name__)

_MAX_PENDING = 200


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


class NoticeBoard:
    """Bounded FIFO of notices; the oldest are dropped once full."""

    def __init__(self, maxlen: int = _MAX_PENDING) -> None:
        self._pending: deque[Notice] = deque(maxlen=maxlen)

    def success(self, message: str) -> Notice:
        return self._push(Notice(NoticeLevel.SUCCESS, message))

    def error(self, message: str) -> Notice:
        return self._push(Notice(NoticeLevel.ERROR, message))

    def _push(self, notice: Notice) -> Notice:
        match notice.level:
            case NoticeLevel.SUCCESS:
                logger.info("notice: %s", notice.message)
            case NoticeLevel.ERROR:
                logger.warning("notice: %s", notice.message)
            case _:
                assert_never(notice.level)
        self._pending.append(notice)
        return notice

    @property
    def pending(self) -> list[Notice]:
        return list(self._pending)

    def errors(self) -> list[Notice]:
        return [n for n in self._pending if n.level is NoticeLevel.ERROR]

    def drain(self) -> list[Notice]:
        drained = list(self._pending)
        self._pending.clear()
        return drained
