"""User-visible notifications (toasts)."""

from __future__ import annotations

import dataclasses
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Notice:
    title: str
    description: str = ""
    destructive: bool = False


class Notifier(Protocol):
    """Surface that shows notices to the user."""

    def notify(self, notice: Notice) -> None: ...


class NoticeLog(Notifier):
    """Keeps every notice in order and mirrors it to the log."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        level = logging.WARNING if notice.destructive else logging.INFO
        logger.log(level, "%s: %s", notice.title, notice.description)

    @property
    def errors(self) -> list[Notice]:
        return [notice for notice in self.notices if notice.destructive]

    @property
    def last(self) -> Notice | None:
        return self.notices[-1] if self.notices else None
