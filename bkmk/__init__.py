"""
bkmk - Command Bookmarks

Keep the shell commands you use often in named groups and get back to
them quickly from a full-screen terminal interface.

Design Principles:
- One human-editable YAML file for all bookmarks, backed up on every save
- Shell history is a first-class source of new bookmarks
- The interactive interface is a pure state machine, the terminal is a thin host

Example Usage:
    >>> from bkmk import BookmarkStore
    >>> store = BookmarkStore.load()
    >>> with store.mutation():
    ...     store.add_group("docker")
    ...     store.add_command("docker", "ps", "docker ps -a", "List all containers")
"""

__version__ = "0.3.0"
__author__ = "bkmk Contributors"

# Store
from bkmk.store import BookmarkStore, default_store_path

# Configuration
from bkmk.config import BkmkConfig, get_config, init_config

# Models
from bkmk.models import ActionType, Command, FlatCommand, FrequentCommand, Group, HistoryEntry

# Errors
from bkmk.errors import (
    BkmkError,
    DuplicateError,
    HistoryNotFoundError,
    NotFoundError,
    ProcessError,
    StorageError,
    ValidationError,
)

# History
from bkmk.history import (
    analyze_frequency,
    count_args,
    get_history_path,
    is_multiline_fragment,
    last_command,
    parse_history_line,
    read_history,
)

__all__ = [
    # Store
    "BookmarkStore",
    "default_store_path",
    # Config
    "BkmkConfig",
    "get_config",
    "init_config",
    # Models
    "ActionType",
    "Command",
    "FlatCommand",
    "FrequentCommand",
    "Group",
    "HistoryEntry",
    # Errors
    "BkmkError",
    "DuplicateError",
    "HistoryNotFoundError",
    "NotFoundError",
    "ProcessError",
    "StorageError",
    "ValidationError",
    # History
    "analyze_frequency",
    "count_args",
    "get_history_path",
    "is_multiline_fragment",
    "last_command",
    "parse_history_line",
    "read_history",
]
