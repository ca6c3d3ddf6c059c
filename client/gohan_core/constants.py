"""
Constants, thresholds, wire names, and user-facing messages.
"""

CLIENT_VERSION = "1.2.0"

# ─── Transport ───────────────────────────────────────────────────
JSONP_TIMEOUT_SEC = 15           # Desktop browsers / wired clients
JSONP_TIMEOUT_MOBILE_SEC = 20    # Mobile networks get more headroom
JSONP_CALLBACK_PREFIX = "gohanJsonp"
RESOURCE_REMOVE_DELAY_SEC = 0.0  # Next loop iteration, after the handler returns

# Client identification substrings that mark a mobile device.
MOBILE_UA_PATTERN = (
    r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini|Mobile"
)

# ─── Schedule loading ────────────────────────────────────────────
PARALLEL_BATCH_SIZE = 3          # Rows whose check state is fetched jointly
ROW_SPACING_MS = 100             # Pause between sequential check-state fetches

# ─── Session ─────────────────────────────────────────────────────
SESSION_MAX_AGE_HOURS = 24
MOBILE_HIDE_GRACE_SEC = 5        # Hidden tab on mobile survives this long
STORAGE_KEY_LOGIN = "gohan_login_info"

# ─── Notices ─────────────────────────────────────────────────────
AUTH_NOTICE_SEC = 5
ROW_NOTICE_SEC = 3

# ─── Remote actions ──────────────────────────────────────────────
ACTION_LOGIN = "login"
ACTION_GET_RECIPES = "getRecipes"
ACTION_UPDATE_CHECK = "updateCheck"
ACTION_GET_CHECK_STATE = "getCheckState"
ACTION_GET_USER_DATA = "getUserData"

# ─── Result messages ─────────────────────────────────────────────
MSG_TIMEOUT = "timeout"
MSG_UNREADABLE = "response unreadable"
MSG_MALFORMED = "malformed response"
MSG_HANDLER_ERROR = "handler error"

MSG_LOGIN_FAILED = "Login failed"
MSG_USER_ID_REQUIRED = "Please enter your user ID"
MSG_PASSWORD_REQUIRED = "Please enter your password"
MSG_LOGIN_ERROR = "Something went wrong while logging in"
MSG_SCHEDULE_FAILED = "Could not load the menu for this month"
MSG_NO_ROWS = "No menu from today onwards for this month"
MSG_CHECK_ADDED = "Marked as eating"
MSG_CHECK_REMOVED = "Unmarked"
MSG_CHECK_FAILED = "Could not update the check"
MSG_CHECK_LOCKED = "The check deadline for this day has passed"
MSG_SESSION_EXPIRED = "Your session has expired, please log in again"
MSG_USER_NOT_FOUND = "User not found"
