"""
SessionStore - the single logged-in identity and its lifetime.

State machine: LoggedOut → LoggedIn → LoggedOut. The identity lives in
LocalStorage under one fixed key; reading it checks the 24h expiry.

How page lifecycle events end a session depends on the device, so that
choice is a strategy object picked once at construction:

  StrictLifetime  (desktop) - hide / unload / terminate clear immediately
  GraceLifetime   (mobile)  - hide starts a grace timer, visible cancels it,
                              unload / terminate clear immediately

While a redirect is in progress every teardown trigger is ignored, so
navigating to the home view does not destroy the session it just created.
"""

import asyncio
import json
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from .config import log
from .constants import SESSION_MAX_AGE_HOURS, MOBILE_HIDE_GRACE_SEC, STORAGE_KEY_LOGIN
from .device import is_mobile_device


def _utcnow():
    return datetime.now(timezone.utc)


def format_timestamp(dt):
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(text):
    dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Identity:
    id: str
    display_name: str
    login_time: datetime

    def to_record(self):
        return {
            "userId": self.id,
            "userName": self.display_name,
            "loginTime": format_timestamp(self.login_time),
        }

    @classmethod
    def from_record(cls, record):
        return cls(
            id=str(record["userId"]),
            display_name=str(record["userName"]),
            login_time=parse_timestamp(record["loginTime"]),
        )


class LifecycleEvent(str, Enum):
    PAGE_HIDDEN = "hidden"
    PAGE_VISIBLE = "visible"
    PAGE_UNLOAD = "unload"          # pagehide / beforeunload / navigation away
    APP_TERMINATED = "terminated"


# ─── Lifetime strategies ─────────────────────────────────────────

class StrictLifetime:
    """Any sign of the page going away ends the session."""

    name = "strict"

    def on_event(self, store, event):
        if event is LifecycleEvent.PAGE_VISIBLE:
            return
        store.teardown(f"page {event.value}")

    def cancel(self):
        pass


class GraceLifetime:
    """A hidden page keeps its session for a short grace period."""

    name = "grace"

    def __init__(self, grace_sec=MOBILE_HIDE_GRACE_SEC):
        self.grace_sec = grace_sec
        self._timer = None

    @property
    def timer_pending(self):
        return self._timer is not None

    def on_event(self, store, event):
        if event is LifecycleEvent.PAGE_HIDDEN:
            if self._timer is None:
                loop = asyncio.get_running_loop()
                self._timer = loop.call_later(self.grace_sec, self._expire, store)
                log.info("Page hidden - session ends in %.0fs unless it comes back", self.grace_sec)
        elif event is LifecycleEvent.PAGE_VISIBLE:
            if self._timer is not None:
                log.info("Page visible again - keeping session")
            self.cancel()
        else:
            self.cancel()
            store.teardown(f"page {event.value}")

    def _expire(self, store):
        self._timer = None
        store.teardown("hidden past grace period")

    def cancel(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


def policy_for(user_agent, grace_sec=MOBILE_HIDE_GRACE_SEC):
    if is_mobile_device(user_agent):
        return GraceLifetime(grace_sec)
    return StrictLifetime()


# ─── Store ───────────────────────────────────────────────────────

class SessionStore:
    def __init__(self, storage, policy=None, clock=None, max_age_hours=SESSION_MAX_AGE_HOURS):
        self._storage = storage
        self.policy = policy or StrictLifetime()
        self._clock = clock or _utcnow
        self._max_age = timedelta(hours=max_age_hours)
        self._redirecting = False
        self._listeners = []

    # ─── Transitions ─────────────────────────────────────────

    def login(self, user_id, display_name):
        """LoggedOut → LoggedIn. Replaces any identity already resident."""
        identity = Identity(id=user_id, display_name=display_name, login_time=self._clock())
        self._storage.set_item(STORAGE_KEY_LOGIN, json.dumps(identity.to_record(), ensure_ascii=False))
        log.info("Logged in as %s", user_id)
        return identity

    def logout(self):
        self.policy.cancel()
        self._clear("logout")

    def teardown(self, reason):
        """Lifetime-driven logout; a no-op while a redirect is in progress."""
        if self._redirecting:
            log.info("Ignoring session teardown (%s) during redirect", reason)
            return
        self._clear(reason)

    def _clear(self, reason):
        had_session = self._storage.get_item(STORAGE_KEY_LOGIN) is not None
        self._storage.remove_item(STORAGE_KEY_LOGIN)
        if had_session:
            log.info("Session cleared: %s", reason)
            for listener in list(self._listeners):
                try:
                    listener(reason)
                except Exception as e:
                    log.error("Session listener failed: %s", e, exc_info=True)

    # ─── Reads ───────────────────────────────────────────────

    def get_identity(self):
        """Current identity, or None. Clears the record when expired or corrupt."""
        raw = self._storage.get_item(STORAGE_KEY_LOGIN)
        if raw is None:
            return None
        try:
            identity = Identity.from_record(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            log.warning("Stored login record unreadable: %s", e)
            self._clear("corrupt record")
            return None

        if self._clock() - identity.login_time > self._max_age:
            self._clear("expired")
            return None
        return identity

    @property
    def logged_in(self):
        return self.get_identity() is not None

    # ─── Lifecycle wiring ────────────────────────────────────

    def add_listener(self, fn):
        """fn(reason) runs whenever a resident session is cleared."""
        self._listeners.append(fn)

    def handle_event(self, event):
        if self._redirecting:
            log.debug("Lifecycle event %s suppressed during redirect", event.value)
            return
        if self._storage.get_item(STORAGE_KEY_LOGIN) is None:
            return
        self.policy.on_event(self, event)

    @property
    def redirecting(self):
        return self._redirecting

    def begin_redirect(self):
        self._redirecting = True
        self.policy.cancel()

    def end_redirect(self):
        self._redirecting = False

    @contextmanager
    def redirect(self):
        self.begin_redirect()
        try:
            yield
        finally:
            self.end_redirect()
