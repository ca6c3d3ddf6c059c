"""
Remote service calls - login, menu, check state, user data.

Every operation fills a fixed `action`, forwards to the transport, and checks
the response shape. Nothing here raises: callers get a RemoteCallResult and
branch on ok. The decoded operation value (display name, rows, checked flag)
is on result.value.

Password "encoding" is obfuscation only. It keeps odd characters safe in a
query string; it is not a security control.
"""

import base64
from urllib.parse import quote

from .config import log
from .constants import (
    ACTION_LOGIN, ACTION_GET_RECIPES, ACTION_UPDATE_CHECK,
    ACTION_GET_CHECK_STATE, ACTION_GET_USER_DATA,
    MSG_MALFORMED, MSG_LOGIN_FAILED, MSG_SCHEDULE_FAILED, MSG_CHECK_FAILED,
    MSG_USER_NOT_FOUND,
)
from .results import RemoteCallResult, ErrorKind
from .schedule import ScheduleRow


# ─── Password encoders (tried in order) ──────────────────────────

def encode_base64(password):
    return base64.b64encode(password.encode("utf-8")).decode("ascii")


def encode_uri(password):
    return quote(password.encode("utf-8"), safe="")


PASSWORD_ENCODERS = (
    ("base64", encode_base64),
    ("uri", encode_uri),
)


def _as_bool(value):
    if isinstance(value, bool):
        return value
    if value in ("true", "false"):
        return value == "true"
    return None


class RemoteService:
    def __init__(self, transport, encoders=PASSWORD_ENCODERS):
        self._transport = transport
        self._encoders = encoders
        self.encoding_degraded = False

    # ─── Shared response handling ────────────────────────────

    async def _request(self, params, default_error):
        """Call the transport and apply the common {success, error?} contract."""
        result = await self._transport.call(params)
        if not result.ok:
            return result

        payload = result.payload
        success = payload.get("success")
        if not isinstance(success, bool):
            log.warning("%s response has no success flag", params["action"])
            return RemoteCallResult.failure(MSG_MALFORMED, ErrorKind.MALFORMED, payload)
        if not success:
            error = payload.get("error") or default_error
            log.info("%s rejected by server: %s", params["action"], error)
            return RemoteCallResult.failure(str(error), ErrorKind.APPLICATION, payload)
        return result

    @staticmethod
    def _malformed(action, payload, detail):
        log.warning("%s response malformed: %s", action, detail)
        return RemoteCallResult.failure(MSG_MALFORMED, ErrorKind.MALFORMED, payload)

    # ─── Login ───────────────────────────────────────────────

    def encode_password(self, password):
        """Returns (encoding_name, value). encoding_name is None in degraded mode."""
        for name, encoder in self._encoders:
            try:
                return name, encoder(password)
            except Exception as e:
                log.warning("Password encoding %s unavailable: %s", name, e)
        self.encoding_degraded = True
        log.warning("All password encodings failed - sending raw value (degraded mode)")
        return None, password

    async def authenticate(self, user_id, password):
        encoding, value = self.encode_password(password)
        result = await self._request(
            {"action": ACTION_LOGIN, "id": user_id, "password": value, "encoded": encoding},
            MSG_LOGIN_FAILED,
        )
        if not result.ok:
            return result
        user_name = result.payload.get("userName")
        if not isinstance(user_name, str) or not user_name:
            return self._malformed(ACTION_LOGIN, result.payload, "missing userName")
        return result.with_value(user_name)

    # ─── Menu ────────────────────────────────────────────────

    async def list_schedule(self, year, month):
        result = await self._request(
            {"action": ACTION_GET_RECIPES, "year": year, "month": month},
            MSG_SCHEDULE_FAILED,
        )
        if not result.ok:
            return result
        items = result.payload.get("recipes")
        if items is None:
            items = []
        if not isinstance(items, list):
            return self._malformed(ACTION_GET_RECIPES, result.payload, "recipes is not a list")

        rows = []
        for item in items:
            row = ScheduleRow.from_wire(item)
            if row is None:
                log.warning("Skipping menu entry with unusable date: %r", item)
                continue
            rows.append(row)
        return result.with_value(rows)

    # ─── Check state ─────────────────────────────────────────

    async def read_check_state(self, date, user_name):
        result = await self._request(
            {"action": ACTION_GET_CHECK_STATE, "date": date, "userName": user_name},
            MSG_CHECK_FAILED,
        )
        return self._checked_value(ACTION_GET_CHECK_STATE, result)

    async def write_check_state(self, date, user_name, checked):
        result = await self._request(
            {"action": ACTION_UPDATE_CHECK, "date": date, "userName": user_name, "checked": bool(checked)},
            MSG_CHECK_FAILED,
        )
        return self._checked_value(ACTION_UPDATE_CHECK, result)

    def _checked_value(self, action, result):
        if not result.ok:
            return result
        checked = _as_bool(result.payload.get("checked"))
        if checked is None:
            return self._malformed(action, result.payload, "checked is not a boolean")
        return result.with_value(checked)

    # ─── Profile ─────────────────────────────────────────────

    async def read_profile(self, user_id):
        result = await self._request(
            {"action": ACTION_GET_USER_DATA, "id": user_id},
            MSG_USER_NOT_FOUND,
        )
        if not result.ok:
            return result
        user_name = result.payload.get("userName")
        if not isinstance(user_name, str) or not user_name:
            return self._malformed(ACTION_GET_USER_DATA, result.payload, "missing userName")
        return result.with_value(user_name)
