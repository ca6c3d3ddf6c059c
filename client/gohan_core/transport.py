"""
JSONP transport - one logical remote call per invocation.

The script endpoint can only be reached with simple GETs, so every call is
made the way a page would make it: a uniquely named callback is registered,
the "script" (a GET with ?callback=<name>) is loaded on a short-lived worker
thread, and its body is executed against the callback registry back on the
event loop. A loop timer races the callback. A load error falls back once to
a cookie-less probe whose answer is never read.

Worker threads never touch transport state; they hand results back with
loop.call_soon_threadsafe().
"""

import asyncio
import itertools
import json
import re
import secrets
import threading
import time
from dataclasses import dataclass, field
from urllib.parse import urlencode

import requests

from .config import log
from .constants import (
    JSONP_CALLBACK_PREFIX, JSONP_TIMEOUT_SEC, JSONP_TIMEOUT_MOBILE_SEC,
    RESOURCE_REMOVE_DELAY_SEC,
    MSG_TIMEOUT, MSG_UNREADABLE, MSG_MALFORMED, MSG_HANDLER_ERROR,
)
from .device import is_mobile_device
from .results import RemoteCallResult, ErrorKind
from . import http_client

# name({...}) with the optional /**/ guard some servers prepend.
_SCRIPT_RE = re.compile(
    r"^\s*(?:/\*\*/\s*)?([A-Za-z_$][\w$]*)\s*\((.*)\)\s*;?\s*$",
    re.DOTALL,
)

_LOAD_FAILED = object()
_RESET_AFTER_LOAD_ERRORS = 2


class ScriptError(ValueError):
    """The loaded body is neither a callback invocation nor a JSON object."""


def encode_params(params):
    """String-coerce call parameters, dropping None. Booleans go out as true/false."""
    query = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        query[key] = str(value)
    return query


def parse_script(body):
    """
    Split a loaded body into (callback_name, argument).

    Plain GET mode answers with a bare JSON object; that comes back with
    callback_name None and is delivered to the caller's own handler.
    """
    match = _SCRIPT_RE.match(body or "")
    if match:
        try:
            return match.group(1), json.loads(match.group(2))
        except json.JSONDecodeError as e:
            raise ScriptError(f"callback argument is not JSON: {e}") from e
    try:
        return None, json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise ScriptError(f"body is not a script or JSON: {e}") from e


@dataclass
class _PendingCall:
    name: str
    action: str
    future: asyncio.Future
    timer: asyncio.TimerHandle = None
    started: float = field(default_factory=time.monotonic)


class JsonpTransport:
    """
    Carries one logical call per call() over GET/JSONP.

    Each call installs exactly one named handler and one injected resource,
    and removes both before (or just after) it resolves. call() never raises.
    """

    def __init__(self, base_url, user_agent=None, timeout=None, http=None, probe_http=None):
        self._base_url = base_url
        self.user_agent = user_agent or http_client.DEFAULT_USER_AGENT
        self.mobile = is_mobile_device(self.user_agent)
        if timeout is None:
            timeout = JSONP_TIMEOUT_MOBILE_SEC if self.mobile else JSONP_TIMEOUT_SEC
        self.timeout = timeout

        self._owns_session = http is None
        self._http = http or http_client.create_session(self.user_agent)
        self._probe_http = probe_http or http_client.create_session(self.user_agent, cookies=False)

        self._handlers = {}      # callback name → _PendingCall
        self._resources = {}     # callback name → worker thread
        self._counter = itertools.count(1)
        self._load_errors = 0

    # ─── Introspection ───────────────────────────────────────

    @property
    def pending_handlers(self):
        return len(self._handlers)

    @property
    def injected_resources(self):
        return len(self._resources)

    # ─── URL building ────────────────────────────────────────

    def build_url(self, params):
        query = urlencode(encode_params(params))
        if not query:
            return self._base_url
        sep = "&" if "?" in self._base_url else "?"
        return f"{self._base_url}{sep}{query}"

    def _next_callback_name(self):
        stamp = int(time.time() * 1000)
        return f"{JSONP_CALLBACK_PREFIX}_{stamp}_{next(self._counter)}_{secrets.token_hex(3)}"

    # ─── Public API ──────────────────────────────────────────

    async def call(self, params):
        """Issue one logical call. Resolves to a RemoteCallResult, never raises."""
        action = str(params.get("action", "?"))
        try:
            return await self._call(params, action)
        except Exception as e:
            log.error("Transport %s failed unexpectedly: %s", action, e, exc_info=True)
            return RemoteCallResult.failure(str(e) or MSG_HANDLER_ERROR)

    async def _call(self, params, action):
        loop = asyncio.get_running_loop()
        name = self._next_callback_name()
        url = self.build_url({**params, "callback": name})
        call = _PendingCall(name=name, action=action, future=loop.create_future())

        self._handlers[name] = call
        call.timer = loop.call_later(self.timeout, self._on_timeout, call)
        self._inject(loop, call, url)

        outcome = await call.future
        if outcome is _LOAD_FAILED:
            return await self._fallback(params, action)
        return outcome

    # ─── Script injection (worker thread) ────────────────────

    def _inject(self, loop, call, url):
        def load():
            try:
                resp = self._http.get(url, timeout=self.timeout + 1)
                if resp.status_code >= 400:
                    raise requests.HTTPError(f"HTTP {resp.status_code}", response=resp)
                body = resp.text
            except Exception as e:
                self._post(loop, self._on_load_error, call, e)
                return
            self._post(loop, self._on_load, call, body)

        thread = threading.Thread(target=load, name=call.name, daemon=True)
        self._resources[call.name] = thread
        thread.start()

    @staticmethod
    def _post(loop, fn, *args):
        try:
            loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # Loop already closed; the call it belonged to is long gone.
            log.debug("Dropped late transport result for %s", args[0].name)

    def _remove_resource(self, name):
        self._resources.pop(name, None)

    def _deregister(self, call):
        if call.timer is not None:
            call.timer.cancel()
        self._handlers.pop(call.name, None)

    # ─── Loop-side events ────────────────────────────────────

    def _on_timeout(self, call):
        if call.future.done():
            return
        self._deregister(call)
        self._remove_resource(call.name)
        self._note_load_error()
        log.warning("Request %s timed out after %.1fs", call.action, self.timeout)
        call.future.set_result(RemoteCallResult.failure(MSG_TIMEOUT, ErrorKind.NETWORK))

    def _on_load_error(self, call, error):
        self._remove_resource(call.name)
        if call.future.done():
            return
        self._deregister(call)
        self._note_load_error()
        log.warning("Script load for %s failed: %s - falling back to probe", call.action, error)
        call.future.set_result(_LOAD_FAILED)

    def _on_load(self, call, body):
        if call.future.done():
            # Timed out earlier: the handler is gone, nothing observable happens.
            log.debug("Late response for %s ignored", call.name)
            return
        self._load_errors = 0
        try:
            target, argument = parse_script(body)
        except ScriptError as e:
            log.warning("Malformed response for %s: %s", call.action, e)
            self._finish(call, RemoteCallResult.failure(MSG_MALFORMED, ErrorKind.MALFORMED))
            return

        handler = self._handlers.get(target or call.name)
        if handler is None:
            log.warning("Response for %s invoked unknown callback %s", call.action, target)
            self._finish(call, RemoteCallResult.failure(MSG_MALFORMED, ErrorKind.MALFORMED))
            return
        try:
            self._invoke_handler(handler, argument)
        except Exception as e:
            log.error("Callback for %s raised: %s", handler.action, e, exc_info=True)
            self._finish(handler, RemoteCallResult.failure(MSG_HANDLER_ERROR, ErrorKind.MALFORMED))

    def _invoke_handler(self, call, argument):
        """The one-shot callback a JSONP script invokes."""
        if isinstance(argument, dict):
            result = RemoteCallResult.success(argument)
            log.info(
                "Request %s answered in %.0fms",
                call.action, (time.monotonic() - call.started) * 1000,
            )
        else:
            log.warning("Response for %s is not a keyed record", call.action)
            result = RemoteCallResult.failure(MSG_MALFORMED, ErrorKind.MALFORMED)
        self._finish(call, result)

    def _finish(self, call, result):
        self._deregister(call)
        loop = call.future.get_loop()
        loop.call_later(RESOURCE_REMOVE_DELAY_SEC, self._remove_resource, call.name)
        if not call.future.done():
            call.future.set_result(result)

    def _note_load_error(self):
        self._load_errors += 1
        if self._owns_session and self._load_errors >= _RESET_AFTER_LOAD_ERRORS:
            log.info("Resetting HTTP session after %d failed loads", self._load_errors)
            self._http = http_client.reset_session(self._http)
            self._load_errors = 0

    # ─── Fallback probe ──────────────────────────────────────

    async def _fallback(self, params, action):
        """
        Fire the same request without a callback and without credentials.
        The answer is never readable in this mode; the point is only that the
        server sees the request.
        """
        url = self.build_url(params)
        try:
            await asyncio.to_thread(self._probe_http.get, url, timeout=self.timeout)
            log.info("Fallback probe for %s delivered (response unreadable)", action)
        except Exception as e:
            log.warning("Fallback probe for %s also failed: %s", action, e)
        return RemoteCallResult.failure(MSG_UNREADABLE, ErrorKind.NETWORK)
