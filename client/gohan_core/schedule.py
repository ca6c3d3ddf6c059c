"""
Schedule rows and the progressive month loader.

A month's menu arrives in one call, but every row's check state is its own
request. To get today's row usable first without flooding the backend, the
loader fills rows in two phases:

  Phase A - the first PARALLEL_BATCH_SIZE rows are fetched jointly, and
            emitted in date order once all of them settle.
  Phase B - each remaining row is fetched after a short spacing pause and
            emitted as soon as its state (or its failure) comes back.

A failed check-state read only degrades that row to unchecked.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from .config import log
from .constants import PARALLEL_BATCH_SIZE, ROW_SPACING_MS, MSG_SCHEDULE_FAILED, MSG_NO_ROWS
from .results import ErrorKind

_DATE_RE = re.compile(r"^\s*(\d{4})[/-](\d{1,2})[/-](\d{1,2})")


def parse_row_date(text):
    """'2025/9/1', '2025-09-01' or '2025-09-01T00:00:00Z' → date. None if unparseable."""
    match = _DATE_RE.match(str(text or ""))
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


@dataclass(frozen=True)
class ScheduleRow:
    date: date
    weekday_label: str = ""
    main_dish: str = ""
    side_dish1: str = ""
    side_dish2: str = ""
    soup: str = ""
    editable: bool = False
    raw_date: str = ""      # the server's own spelling, sent back as the date key

    @classmethod
    def from_wire(cls, item):
        """Build a row from a getRecipes entry. Returns None when the date is unusable."""
        if not isinstance(item, dict):
            return None
        day = parse_row_date(item.get("date"))
        if day is None:
            return None
        return cls(
            date=day,
            weekday_label=str(item.get("dayOfWeek") or ""),
            main_dish=str(item.get("main") or ""),
            side_dish1=str(item.get("side1") or ""),
            side_dish2=str(item.get("side2") or ""),
            soup=str(item.get("soup") or ""),
            editable=item.get("isEditable") is True,
            raw_date=str(item.get("date")),
        )


class ScheduleView(Protocol):
    def render_row(self, row: ScheduleRow, checked: bool) -> None: ...
    def focus_row(self, row: ScheduleRow) -> None: ...
    def show_empty(self, message: str) -> None: ...


class ScheduleLoader:
    def __init__(self, service, check_state, today=None,
                 batch_size=PARALLEL_BATCH_SIZE, spacing_sec=ROW_SPACING_MS / 1000):
        self._service = service
        self._check_state = check_state
        self._today = today or date.today
        self._batch_size = batch_size
        self._spacing_sec = spacing_sec
        self._generation = 0

    def cancel(self):
        """Stop any load in progress from emitting further rows."""
        self._generation += 1

    def visible_rows(self, rows):
        """Rows from today onwards, ascending, one per date."""
        today = self._today()
        seen = {}
        for row in rows:
            if row.date >= today and row.date not in seen:
                seen[row.date] = row
        return [seen[d] for d in sorted(seen)]

    async def load(self, year, month, identity, view):
        """
        Fetch a month and emit (row, checked) pairs to view as they become ready.
        Returns the pairs emitted, in emission order.
        """
        self._generation += 1
        generation = self._generation
        self._check_state.reset((identity.id, year, month))
        emitted = []

        result = await self._service.list_schedule(year, month)
        if generation != self._generation:
            return emitted
        if not result.ok:
            log.warning("Schedule %d/%d failed: %s", year, month, result.error_message)
            message = result.error_message if result.kind is ErrorKind.APPLICATION else MSG_SCHEDULE_FAILED
            view.show_empty(message)
            return emitted

        rows = self.visible_rows(result.value)
        log.info(
            "Schedule %d/%d: %d rows, %d from today onwards",
            year, month, len(result.value), len(rows),
        )
        if not rows:
            view.show_empty(MSG_NO_ROWS)
            return emitted

        head, rest = rows[:self._batch_size], rows[self._batch_size:]

        # Phase A - joint fetch, deterministic date-order emission.
        states = await asyncio.gather(*(self._fetch_checked(row, identity) for row in head))
        if generation != self._generation:
            return emitted
        for index, (row, checked) in enumerate(zip(head, states)):
            self._emit(view, row, checked, emitted)
            if index == 0:
                view.focus_row(row)

        # Phase B - one at a time, spaced.
        for row in rest:
            await asyncio.sleep(self._spacing_sec)
            if generation != self._generation:
                return emitted
            checked = await self._fetch_checked(row, identity)
            if generation != self._generation:
                return emitted
            self._emit(view, row, checked, emitted)

        log.info("All check states loaded for %d/%d", year, month)
        return emitted

    async def _fetch_checked(self, row, identity):
        try:
            result = await self._service.read_check_state(row.raw_date, identity.display_name)
        except Exception as e:
            log.error("Check state read for %s raised: %s", row.raw_date, e, exc_info=True)
            return False
        if result.ok:
            self._check_state.set(row.date, result.value)
            return result.value
        log.warning("Check state for %s unavailable (%s) - showing unchecked", row.raw_date, result.error_message)
        return False

    @staticmethod
    def _emit(view, row, checked, emitted):
        emitted.append((row, checked))
        view.render_row(row, checked)
