"""
RowController - per-row check toggles with optimistic update and rollback.

A toggle is a small two-phase commit: the control shows the new value and is
disabled right away, the write goes out, and the result either commits the
value into CheckState or puts the control back. The control is re-enabled no
matter how the write ends.
"""

from typing import Protocol

from .config import log
from .constants import (
    ROW_NOTICE_SEC, MSG_CHECK_ADDED, MSG_CHECK_REMOVED, MSG_CHECK_FAILED,
    MSG_CHECK_LOCKED, MSG_SESSION_EXPIRED,
)
from .results import ErrorKind


class RowControl(Protocol):
    def set_checked(self, checked: bool) -> None: ...
    def set_enabled(self, enabled: bool) -> None: ...


class RowController:
    def __init__(self, service, session, check_state, notices):
        self._service = service
        self._session = session
        self._check_state = check_state
        self._notices = notices
        self._in_flight = set()

    def in_flight(self, row):
        return row.date in self._in_flight

    async def toggle(self, row, control, checked) -> bool:
        """Apply a user toggle. Returns True when the server accepted the new value."""
        prior = self._check_state.get(row.date)

        if not row.editable:
            # Past the cutoff: never reaches the server, whatever sent the event.
            log.warning("Refusing check update for locked row %s", row.raw_date)
            control.set_checked(prior)
            control.set_enabled(False)
            self._notices.error(MSG_CHECK_LOCKED, ROW_NOTICE_SEC)
            return False

        if row.date in self._in_flight:
            log.info("Toggle for %s ignored: update already in flight", row.raw_date)
            return False

        identity = self._session.get_identity()
        if identity is None:
            control.set_checked(prior)
            self._notices.error(MSG_SESSION_EXPIRED, ROW_NOTICE_SEC)
            return False

        self._in_flight.add(row.date)
        control.set_checked(checked)
        control.set_enabled(False)
        try:
            result = await self._service.write_check_state(row.raw_date, identity.display_name, checked)
            if result.ok:
                self._check_state.set(row.date, result.value)
                if result.value != checked:
                    control.set_checked(result.value)
                self._notices.success(MSG_CHECK_ADDED if result.value else MSG_CHECK_REMOVED, ROW_NOTICE_SEC)
                return True

            control.set_checked(prior)
            message = result.error_message if result.kind is ErrorKind.APPLICATION else MSG_CHECK_FAILED
            self._notices.error(message, ROW_NOTICE_SEC)
            log.warning("Check update for %s failed: %s", row.raw_date, result.error_message)
            return False
        except Exception as e:
            log.error("Check update for %s raised: %s", row.raw_date, e, exc_info=True)
            control.set_checked(prior)
            self._notices.error(MSG_CHECK_FAILED, ROW_NOTICE_SEC)
            return False
        finally:
            self._in_flight.discard(row.date)
            control.set_enabled(True)
