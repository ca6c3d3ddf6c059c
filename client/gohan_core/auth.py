"""
Login form flow: validation, authentication, redirect to the home view.
"""

from typing import Protocol

from .config import log
from .constants import (
    AUTH_NOTICE_SEC, MSG_USER_ID_REQUIRED, MSG_PASSWORD_REQUIRED,
    MSG_LOGIN_FAILED, MSG_LOGIN_ERROR,
)
from .results import ValidationFailure, ErrorKind


class LoginView(Protocol):
    def set_loading(self, loading: bool) -> None: ...
    def focus_field(self, field: str) -> None: ...


def validate_credentials(user_id, password):
    """Trimmed (user_id, password); raises ValidationFailure on the first empty field."""
    user_id = (user_id or "").strip()
    password = (password or "").strip()
    if not user_id:
        raise ValidationFailure("user_id", MSG_USER_ID_REQUIRED)
    if not password:
        raise ValidationFailure("password", MSG_PASSWORD_REQUIRED)
    return user_id, password


class AuthController:
    """
    Drives the login form. go_home is an async callable that redirects to
    the home view.
    """

    def __init__(self, service, session, notices, view, go_home):
        self._service = service
        self._session = session
        self._notices = notices
        self._view = view
        self._go_home = go_home
        self._busy = False

    async def check_existing_login(self) -> bool:
        """Skip the form when a live session is already stored."""
        identity = self._session.get_identity()
        if identity is None:
            return False
        log.info("Existing login for %s - going home", identity.id)
        await self._go_home()
        return True

    async def login(self, user_id, password) -> bool:
        if self._busy:
            return False
        try:
            user_id, password = validate_credentials(user_id, password)
        except ValidationFailure as e:
            self._notices.error(e.message, AUTH_NOTICE_SEC)
            self._view.focus_field(e.field)
            return False

        log.info("Login attempt for %s", user_id)
        self._busy = True
        self._view.set_loading(True)
        self._notices.clear()
        try:
            result = await self._service.authenticate(user_id, password)
            if not result.ok:
                message = result.error_message if result.kind is ErrorKind.APPLICATION else MSG_LOGIN_ERROR
                log.warning("Login for %s failed: %s", user_id, result.error_message)
                self._notices.error(message or MSG_LOGIN_FAILED, AUTH_NOTICE_SEC)
                self._view.focus_field("user_id")
                return False

            self._session.login(user_id, result.value)
        finally:
            self._busy = False
            self._view.set_loading(False)

        await self._go_home()
        return True
