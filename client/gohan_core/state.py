"""
Client state - single source of truth for what the home view shows.

All mutations happen on the event loop. No locks needed.
"""

from dataclasses import dataclass, field
from datetime import date


class CheckState:
    """
    date → checked for the current identity and loaded month.

    Absent dates read as False until fetched. set() is idempotent, so the
    optimistic path and the reconciliation path may both write the same value.
    """

    def __init__(self):
        self._checked = {}
        self.scope = None            # (user_id, year, month) the values belong to

    def reset(self, scope=None):
        self._checked.clear()
        self.scope = scope

    def get(self, day):
        return self._checked.get(day, False)

    def set(self, day, checked):
        self._checked[day] = bool(checked)

    def known(self, day):
        return day in self._checked

    def __len__(self):
        return len(self._checked)


@dataclass
class HomeState:
    # ── Month selection ───────────────────────────────────────
    year: int = field(default_factory=lambda: date.today().year)
    month: int = field(default_factory=lambda: date.today().month)

    # ── Loading lifecycle ─────────────────────────────────────
    loading: bool = False
    empty: bool = False
    empty_message: str = ""

    # ── Rows on screen (date → ScheduleRow), in emission order ─
    rows: dict = field(default_factory=dict)
    focused: object = None

    def year_options(self, today=None):
        """Years offered by the selector: last year, this year, next year."""
        current = (today or date.today()).year
        return list(range(current - 1, current + 2))

    @staticmethod
    def month_options():
        return list(range(1, 13))

    def select(self, year, month, today=None):
        """Switch month. Returns False when the pair is outside the offered range."""
        if month not in self.month_options() or year not in self.year_options(today):
            return False
        self.year, self.month = year, month
        return True

    def on_load_started(self):
        self.loading = True
        self.empty = False
        self.empty_message = ""
        self.rows.clear()
        self.focused = None

    def on_load_finished(self):
        self.loading = False

    def on_empty(self, message):
        self.empty = True
        self.empty_message = message
