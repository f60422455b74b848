"""
Constants for bkmk.

These constants are used by various modules for sensible defaults.
Most of them can be overridden via the config system.
"""

APP_NAME = "bkmk"
APP_TITLE = "bkmk: Command Bookmarks"

# Locations
DEFAULT_CONFIG_DIR = "~/.config/bkmk"
DEFAULT_STORE_FILE = "config.yaml"
DEFAULT_SETTINGS_FILE = "settings.toml"
LOCAL_SETTINGS_FILES = ("bkmk.toml", ".bkmkrc")

# Store backups
BACKUP_SUFFIX = ".bak."
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S.%f"
DEFAULT_MAX_BACKUPS = 20

# History sources, checked in order after $HISTFILE
HISTORY_FILES = (".zsh_history", ".bash_history", ".history")
SKIP_COMMANDS = frozenset(["ls", "cd", "pwd", "clear", "exit", "history"])
MIN_COMMAND_LENGTH = 2
DEFAULT_HISTORY_LIMIT = 500
LAST_COMMAND_SCAN = 20

# Frequency analysis
DEFAULT_SUGGEST_DAYS = 60
DEFAULT_SUGGEST_MIN_ARGS = 2
DEFAULT_SUGGEST_LIMIT = 20
MIN_SUGGEST_LENGTH = 13
MAX_COMMAND_LINE_LENGTH = 300
SELF_PREFIX = "bkmk"

# Display limits
SEARCH_RESULTS_SHOWN = 10
HISTORY_RESERVED_LINES = 8
ALL_COMMANDS_RESERVED_LINES = 6
MIN_PAGE_SIZE = 5
HISTORY_TIME_FORMAT = "%d %b %H:%M"

# Fallbacks for child processes
DEFAULT_SHELL = "/bin/sh"
DEFAULT_EDITOR = "vi"
