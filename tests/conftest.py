"""
Pytest configuration and shared fixtures.

GOHAN_HOME is pointed at a temp directory before gohan_core is imported so the
log file and storage never land in the user's real data folder.
"""

import base64
import json
import os
import re
import tempfile
import threading
import time
from datetime import date
from urllib.parse import urlsplit, parse_qs, unquote

os.environ.setdefault("GOHAN_HOME", tempfile.mkdtemp(prefix="gohan-test-"))

import pytest  # noqa: E402
import requests  # noqa: E402

from gohan_core.storage import MemoryStorage  # noqa: E402
from gohan_core.transport import JsonpTransport  # noqa: E402
from gohan_core.api import RemoteService  # noqa: E402

API_URL = "https://script.example.test/macros/s/abc/exec"

SEPTEMBER = [
    {"date": "2025/9/1", "dayOfWeek": "Mon", "main": "Hamburg steak", "side1": "Salad",
     "side2": "Jelly", "soup": "Consomme", "isEditable": False},
    {"date": "2025/9/10", "dayOfWeek": "Wed", "main": "Karaage", "side1": "Potato salad",
     "side2": "Hijiki", "soup": "Miso soup", "isEditable": True},
    {"date": "2025/9/11", "dayOfWeek": "Thu", "main": "Grilled salmon", "side1": "Spinach",
     "side2": "Pickles", "soup": "Clear soup", "isEditable": True},
    {"date": "2025/9/12", "dayOfWeek": "Fri", "main": "Curry", "side1": "Cabbage",
     "side2": "Fruit", "soup": "", "isEditable": True},
    {"date": "2025/9/13", "dayOfWeek": "Sat", "main": "Udon", "side1": "Tempura",
     "side2": "", "soup": "", "isEditable": False},
]

TODAY = date(2025, 9, 10)


class FakeResponse:
    def __init__(self, status_code, text):
        self.status_code = status_code
        self.text = text


class FakeBackend:
    """
    In-memory script endpoint speaking the GET/JSONP wire format.

    Thread-safe: the transport calls get() from worker threads.
    """

    def __init__(self):
        self.users = {
            "taro.t": ("pass123", "Taro Tanaka"),
            "hanako.y": ("pass456", "Hanako Yamada"),
        }
        self.recipes = {(2025, 9): list(SEPTEMBER)}
        self.checks = {}
        self.delay = 0.0
        self.delays = {}             # action → seconds
        self.down = set()            # actions that fail to load
        self.rejects = {}            # action → error message (success: false)
        self.body_override = None    # raw body returned for every call
        self.jsonp = True
        self.calls = []
        self._lock = threading.Lock()

    # ─── Inspection ──────────────────────────────────────────

    def actions(self, name=None):
        with self._lock:
            return [q for q in self.calls if name is None or q.get("action") == name]

    # ─── requests.Session surface ────────────────────────────

    def get(self, url, timeout=None):
        query = {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}
        action = query.get("action")
        with self._lock:
            self.calls.append(query)
        time.sleep(self.delays.get(action, self.delay))
        if action in self.down:
            raise requests.ConnectionError(f"{action} unreachable")
        if self.body_override is not None:
            return FakeResponse(200, self.body_override)

        payload = self.handle(query)
        body = json.dumps(payload, ensure_ascii=False)
        callback = query.get("callback")
        if callback and self.jsonp:
            body = f"{callback}({body});"
        return FakeResponse(200, body)

    def close(self):
        pass

    # ─── Operations ──────────────────────────────────────────

    def handle(self, q):
        action = q.get("action")
        if action in self.rejects:
            return {"success": False, "error": self.rejects[action]}
        if action == "login":
            password = q.get("password", "")
            if q.get("encoded") == "base64":
                password = base64.b64decode(password).decode("utf-8")
            elif q.get("encoded") == "uri":
                password = unquote(password)
            user = self.users.get(q.get("id"))
            if user and user[0] == password:
                return {"success": True, "userName": user[1]}
            return {"success": False, "error": "Wrong ID or password"}
        if action == "getUserData":
            user = self.users.get(q.get("id"))
            if user:
                return {"success": True, "userName": user[1]}
            return {"success": False, "error": "User not found"}
        if action == "getRecipes":
            key = (int(q["year"]), int(q["month"]))
            return {"success": True, "recipes": self.recipes.get(key, [])}
        if action == "getCheckState":
            with self._lock:
                checked = self.checks.get((q["date"], q["userName"]), False)
            return {"success": True, "checked": checked}
        if action == "updateCheck":
            checked = q["checked"] == "true"
            with self._lock:
                self.checks[(q["date"], q["userName"])] = checked
            return {"success": True, "checked": checked}
        return {"success": False, "error": f"unknown action {action}"}


CALLBACK_RE = re.compile(r"^gohanJsonp_\d{13}_\d+_[0-9a-f]{6}$")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def transport(backend):
    return JsonpTransport(API_URL, timeout=1.0, http=backend, probe_http=backend)


@pytest.fixture
def service(transport):
    return RemoteService(transport)


@pytest.fixture
def storage():
    return MemoryStorage()
