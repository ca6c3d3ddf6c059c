"""
NoticeBoard - transient success / error messages that dismiss themselves.
"""

import asyncio
import itertools
from dataclasses import dataclass

from .config import log


@dataclass(frozen=True)
class Notice:
    id: int
    kind: str           # "success" | "error"
    message: str


class NoticeBoard:
    """
    Holds the notices currently on screen. A display callback sees each
    notice when it appears and when it goes away.
    """

    def __init__(self, on_show=None, on_dismiss=None):
        self._on_show = on_show
        self._on_dismiss = on_dismiss
        self._ids = itertools.count(1)
        self._active = {}       # id → (Notice, TimerHandle)

    @property
    def active(self):
        return [notice for notice, _ in self._active.values()]

    def show(self, message, kind, duration):
        notice = Notice(next(self._ids), kind, message)
        timer = None
        try:
            timer = asyncio.get_running_loop().call_later(duration, self.dismiss, notice.id)
        except RuntimeError:
            log.debug("No running loop; notice %d will not auto-dismiss", notice.id)
        self._active[notice.id] = (notice, timer)
        if kind == "error":
            log.warning("Notice: %s", message)
        if self._on_show:
            self._on_show(notice)
        return notice

    def success(self, message, duration):
        return self.show(message, "success", duration)

    def error(self, message, duration):
        return self.show(message, "error", duration)

    def dismiss(self, notice_id):
        entry = self._active.pop(notice_id, None)
        if entry is None:
            return
        notice, timer = entry
        if timer is not None:
            timer.cancel()
        if self._on_dismiss:
            self._on_dismiss(notice)

    def clear(self):
        for notice_id in list(self._active):
            self.dismiss(notice_id)
