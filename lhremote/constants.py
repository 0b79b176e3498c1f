"""CDP endpoints, LinkedHelper process names, UI expressions and database states."""

# ── CDP ──────────────────────────────────────────────────────────────────────

DEFAULT_CDP_PORT = 9222
DEFAULT_CDP_HOST = "127.0.0.1"
TARGET_LIST_PATH = "/json/list"
CLOSE_TARGET_PATH = "/json/close/"

# ── Processes ────────────────────────────────────────────────────────────────

BINARY_NAMES = ("linked-helper", "linked-helper.exe")

# ── Instance targets ─────────────────────────────────────────────────────────

LINKEDIN_TARGET_MARKER = "linkedin.com"
UI_TARGET_MARKER = "index.html"
LINKEDIN_PROFILE_URL_RE = r"^https://www\.linkedin\.com/in/[^/]+/?$"

# Raised by the launcher when evaluated in a sandboxed (instance) context.
WRONG_PORT_MARKER = "require is not defined"
ALREADY_RUNNING_MARKER = "already running"

# ── Database ─────────────────────────────────────────────────────────────────

PARTITION_PREFIX = "linked-helper-account-"
PARTITION_SUFFIX = "-main"
DB_FILENAME = "lh.db"

# action_target_people.state
PEOPLE_STATE = {
    "queued": 1,
    "processed": 2,
    "successful": 3,
    "failed": 4,
}

# person_in_campaigns_history.result_status after a reset
RESULT_STATUS_PENDING = -999

# ── Campaign runner ──────────────────────────────────────────────────────────

RUNNER_IDLE = "idle"
RUNNER_RUNNING = "campaigns"
RUNNER_STOPPING = "stopping-campaigns"

# ── UI expressions ───────────────────────────────────────────────────────────

MAIN_WINDOW = "window.mainWindowService.mainWindow"
LAUNCHER_MAIN_WINDOW = "require('@electron/remote').getGlobal('mainWindow')"
