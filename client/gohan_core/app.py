"""
HomeApp - the client application.

Everything runs on one asyncio loop. The only other threads are the
transport's short-lived script loads and the console's blocking input()
reads; none of them touch client state directly.

Pages: "login" (AuthController) and "home" (ScheduleLoader + RowController).
Page lifecycle events go to the SessionStore, whose lifetime strategy decides
whether they end the session.
"""

import asyncio
import getpass
from datetime import date

from .constants import (
    CLIENT_VERSION, JSONP_TIMEOUT_SEC, JSONP_TIMEOUT_MOBILE_SEC,
    MOBILE_HIDE_GRACE_SEC, ROW_SPACING_MS,
)
from .config import log, safe_print
from .state import CheckState, HomeState
from .storage import LocalStorage
from .transport import JsonpTransport
from .device import is_mobile_device
from .api import RemoteService
from .session import SessionStore, LifecycleEvent, policy_for
from .schedule import ScheduleLoader
from .rows import RowController
from .notices import NoticeBoard
from .auth import AuthController

PAGE_LOGIN = "login"
PAGE_HOME = "home"


class HomeApp:
    """
    Owns the client's collaborators and page state:
      go_home() / logout()   - page switches
      load_month()           - progressive month fill into the view
      toggle()               - optimistic check update for one row
      dispatch()             - page lifecycle events → session lifetime
    """

    def __init__(self, config, view, transport=None, storage=None, today=None):
        self._config = config
        self._view = view
        self._today = today or date.today

        user_agent = config.get("userAgent")
        if transport is None:
            mobile = is_mobile_device(user_agent)
            timeout = (
                config.get("jsonpTimeoutMobileSec", JSONP_TIMEOUT_MOBILE_SEC) if mobile
                else config.get("jsonpTimeoutSec", JSONP_TIMEOUT_SEC)
            )
            transport = JsonpTransport(config["apiUrl"], user_agent, timeout=timeout)
        self.transport = transport

        self.service = RemoteService(transport)
        self.session = SessionStore(
            storage if storage is not None else LocalStorage(),
            policy_for(transport.user_agent, config.get("mobileHideGraceSec", MOBILE_HIDE_GRACE_SEC)),
        )
        self.check_state = CheckState()
        self.state = HomeState(year=self._today().year, month=self._today().month)
        self.notices = NoticeBoard(view.show_notice, view.dismiss_notice)
        self.loader = ScheduleLoader(
            self.service, self.check_state, today=self._today,
            spacing_sec=config.get("rowSpacingMs", ROW_SPACING_MS) / 1000,
        )
        self.rows = RowController(self.service, self.session, self.check_state, self.notices)
        self.auth = AuthController(self.service, self.session, self.notices, view, self.go_home)
        self.page = PAGE_LOGIN
        self._load_seq = 0

        self.session.add_listener(self._on_session_cleared)

    # ─── Pages ───────────────────────────────────────────────

    async def start(self):
        """Open on home when a live session is stored, else on the login form."""
        log.info(
            "v%s started (api=%s, mobile=%s, timeout=%ss, lifetime=%s)",
            CLIENT_VERSION, self._config.get("apiUrl"), self.transport.mobile,
            self.transport.timeout, self.session.policy.name,
        )
        if not await self.auth.check_existing_login():
            self._show_login()

    async def go_home(self):
        """Redirect to the home page, then fill the current month."""
        with self.session.redirect():
            # Leaving the login page must not end the session it just created.
            self.dispatch(LifecycleEvent.PAGE_UNLOAD)
            identity = self.session.get_identity()
            if identity is None:
                self._show_login()
                return
            self.page = PAGE_HOME
            self._view.show_page(PAGE_HOME, identity)
        await self.load_month()

    def logout(self):
        self.session.logout()
        # Listener already switched pages when a session was resident.
        if self.page != PAGE_LOGIN:
            self._show_login()

    def _show_login(self):
        self.loader.cancel()
        self.check_state.reset()
        self.state.rows.clear()
        self.page = PAGE_LOGIN
        self._view.show_page(PAGE_LOGIN, None)

    def _on_session_cleared(self, reason):
        log.info("Session ended (%s) on page %s", reason, self.page)
        if self.page == PAGE_HOME:
            self._show_login()

    def dispatch(self, event):
        self.session.handle_event(event)

    # ─── Month loading ───────────────────────────────────────

    def select_month(self, year, month) -> bool:
        if not self.state.select(year, month, self._today()):
            log.warning("Month %s/%s outside the selectable range", year, month)
            return False
        return True

    async def load_month(self, year=None, month=None):
        if year is not None and month is not None and not self.select_month(year, month):
            return []
        identity = self.session.get_identity()
        if identity is None:
            self._show_login()
            return []

        self.state.on_load_started()
        self.notices.clear()
        self._view.set_loading(True)
        self._load_seq += 1
        seq = self._load_seq
        try:
            return await self.loader.load(self.state.year, self.state.month, identity, self)
        except Exception as e:
            log.error("Month load crashed: %s", e, exc_info=True)
            self.show_empty(str(e))
            return []
        finally:
            # A newer load owns the loading flag now.
            if seq == self._load_seq:
                self.state.on_load_finished()
                self._view.set_loading(False)

    # ScheduleView for the loader: keep HomeState in step, then draw.

    def render_row(self, row, checked):
        self.state.rows[row.date] = row
        self._view.render_row(row, checked)

    def focus_row(self, row):
        self.state.focused = row
        self._view.focus_row(row)

    def show_empty(self, message):
        self.state.on_empty(message)
        self._view.show_empty(message)

    # ─── Toggles ─────────────────────────────────────────────

    async def toggle(self, day, checked=None) -> bool:
        row = self.state.rows.get(day)
        if row is None:
            log.warning("No row on screen for %s", day)
            return False
        if checked is None:
            checked = not self.check_state.get(day)
        return await self.rows.toggle(row, self._view.control_for(row), checked)


# ─── Console front end ───────────────────────────────────────────

class ConsoleRowControl:
    def __init__(self, view, row):
        self._view = view
        self._row = row
        self.checked = False
        self.enabled = row.editable

    def set_checked(self, checked):
        self.checked = checked
        self._view.draw_row(self._row, self)

    def set_enabled(self, enabled):
        self.enabled = enabled and self._row.editable


class ConsoleView:
    """Prints the pages; rows are redrawn whenever their control changes."""

    def __init__(self):
        self._controls = {}

    def show_page(self, page, identity):
        self._controls.clear()
        if page == PAGE_HOME:
            safe_print(f"\n=== Menu - {identity.display_name} ===")
        else:
            safe_print("\n=== Login ===")

    def set_loading(self, loading):
        if loading:
            safe_print("Loading...")

    def focus_field(self, field):
        safe_print(f"  (check the {field.replace('_', ' ')} field)")

    def show_notice(self, notice):
        mark = "OK" if notice.kind == "success" else "!!"
        safe_print(f"[{mark}] {notice.message}")

    def dismiss_notice(self, notice):
        pass

    def show_empty(self, message):
        safe_print(f"  {message}")

    def control_for(self, row):
        if row.date not in self._controls:
            self._controls[row.date] = ConsoleRowControl(self, row)
        return self._controls[row.date]

    def render_row(self, row, checked):
        control = self.control_for(row)
        control.checked = checked
        self.draw_row(row, control)

    def focus_row(self, row):
        safe_print(f"  ^ today: {row.raw_date}")

    def draw_row(self, row, control):
        box = "[x]" if control.checked else "[ ]"
        lock = "" if row.editable else "  (deadline passed)"
        dishes = " / ".join(d for d in (row.main_dish, row.side_dish1, row.side_dish2, row.soup) if d)
        safe_print(f"{box} {row.date.day:>2} {row.weekday_label:<3} {dishes}{lock}")


HELP = "commands: t <day> toggle | m <year> <month> | r reload | logout | q quit"


async def _read(prompt, secret=False):
    reader = getpass.getpass if secret else input
    return await asyncio.to_thread(reader, prompt)


async def run_console(app):
    """Interactive loop for the console front end. Returns when the user quits."""
    await app.start()
    try:
        while True:
            if app.page == PAGE_LOGIN:
                user_id = await _read("ID: ")
                password = await _read("Password: ", secret=True)
                await app.auth.login(user_id, password)
                continue

            line = (await _read("> ")).strip()
            if not line:
                continue
            cmd, *args = line.split()
            if cmd == "q":
                break
            elif cmd == "logout":
                app.logout()
            elif cmd == "r":
                await app.load_month()
            elif cmd == "m" and len(args) == 2 and all(a.isdigit() for a in args):
                await app.load_month(int(args[0]), int(args[1]))
            elif cmd == "t" and len(args) == 1 and args[0].isdigit():
                try:
                    day = date(app.state.year, app.state.month, int(args[0]))
                except ValueError:
                    safe_print("No such day")
                    continue
                await app.toggle(day)
            else:
                safe_print(HELP)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        app.dispatch(LifecycleEvent.APP_TERMINATED)
