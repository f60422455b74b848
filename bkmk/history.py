"""
Shell history parsing and frequency analysis.

Understands plain bash-style history files as well as zsh extended
history, where each line looks like ``: <epoch>:<duration>;<command>``.
"""
import logging
import os
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from bkmk.constants import (
    HISTORY_FILES,
    LAST_COMMAND_SCAN,
    MAX_COMMAND_LINE_LENGTH,
    MIN_COMMAND_LENGTH,
    MIN_SUGGEST_LENGTH,
    SELF_PREFIX,
    SKIP_COMMANDS,
)
from bkmk.errors import HistoryNotFoundError, NotFoundError, StorageError
from bkmk.models import FrequentCommand, HistoryEntry

logger = logging.getLogger(__name__)

EXTENDED_PREFIX = ": "
FRAGMENT_START_CHARS = frozenset("./~$")

PathLike = Union[str, Path]

_EPOCH_RE = re.compile(r"[+-]?[0-9]+")


def _byte_length(text: str) -> int:
    """Length limits on history lines count UTF-8 bytes."""
    return len(text.encode("utf-8"))


def _parse_epoch(text: str) -> Optional[datetime]:
    """Parse a base-10 epoch second count, None when it is not one."""
    if not _EPOCH_RE.fullmatch(text):
        return None
    try:
        return datetime.fromtimestamp(int(text), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def parse_history_line(line: str) -> Optional[Tuple[str, Optional[datetime]]]:
    """
    Parse one raw history line.

    Args:
        line: Line as read from the history file

    Returns:
        ``(command, timestamp)`` or None when the line is rejected.
        The timestamp is None for plain lines and unparseable prefixes.
    """
    timestamp = None
    if line.startswith(EXTENDED_PREFIX) and ";" in line:
        meta, _, line = line.partition(";")
        epoch = meta[len(EXTENDED_PREFIX):].split(":", 1)[0]
        timestamp = _parse_epoch(epoch)

    command = line.strip()
    if _byte_length(command) < MIN_COMMAND_LENGTH:
        return None
    if command in SKIP_COMMANDS:
        return None
    return command, timestamp


def get_history_path(home: Optional[PathLike] = None) -> Path:
    """
    Locate the user's shell history file.

    $HISTFILE wins when it points to an existing file, then the usual
    zsh, bash and generic locations under the home directory.

    Args:
        home: Home directory to search (defaults to the current user's)

    Raises:
        HistoryNotFoundError: If no candidate exists
    """
    histfile = os.environ.get("HISTFILE")
    if histfile:
        path = Path(histfile).expanduser()
        if path.is_file():
            return path

    home_dir = Path(home) if home is not None else Path.home()
    for name in HISTORY_FILES:
        path = home_dir / name
        if path.is_file():
            return path

    raise HistoryNotFoundError("no shell history file found")


def _iter_lines(path: Path) -> Iterator[str]:
    """Yield lines of a history file without their line endings."""
    try:
        # zsh metafies non-ASCII bytes, so decoding must never fail
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                yield line.rstrip("\r\n")
    except FileNotFoundError as e:
        raise HistoryNotFoundError(f"history file not found: {path}") from e
    except OSError as e:
        raise StorageError(f"failed to read history {path}: {e}") from e


def read_history(limit: int = 0, path: Optional[PathLike] = None) -> List[HistoryEntry]:
    """
    Read deduplicated history, most recent first.

    Args:
        limit: Maximum number of entries (0 or negative for all)
        path: History file (resolved with get_history_path when omitted)

    Returns:
        Entries with recency indexes 0, 1, 2... Only the most recent
        occurrence of a repeated command is kept.
    """
    history_path = Path(path) if path is not None else get_history_path()
    lines = [line for line in _iter_lines(history_path) if line]

    entries: List[HistoryEntry] = []
    seen = set()
    for line in reversed(lines):
        parsed = parse_history_line(line)
        if parsed is None:
            continue
        command, timestamp = parsed
        if command in seen:
            continue
        seen.add(command)
        entries.append(HistoryEntry(command=command, timestamp=timestamp, index=len(entries)))
        if 0 < limit <= len(entries):
            break

    logger.debug(f"Read {len(entries)} history entries from {history_path}")
    return entries


def last_command(limit: int = LAST_COMMAND_SCAN, path: Optional[PathLike] = None) -> str:
    """
    Most recent history command that is not a bkmk invocation.

    Raises:
        NotFoundError: If the scanned entries hold no such command
    """
    for entry in read_history(limit, path):
        if not entry.command.startswith(SELF_PREFIX):
            return entry.command
    raise NotFoundError("no recent command found in history")


def count_args(command: str) -> int:
    """
    Count shell arguments, treating quoted text as part of one argument.

    Single and double quotes are recognised, backslash escapes are not.

    Examples:
        >>> count_args('git commit -m "hello world"')
        4
    """
    count = 0
    in_arg = False
    quote = None
    for char in command:
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
            in_arg = True
        elif char in (" ", "\t"):
            if in_arg:
                count += 1
                in_arg = False
        else:
            in_arg = True
    if in_arg:
        count += 1
    return count


def is_multiline_fragment(command: str) -> bool:
    """
    Guess whether a history line is a piece of a multi-line command.

    Over-long lines, continuation lines and lines that do not start like
    a command name or path are all treated as fragments.
    """
    if not command or _byte_length(command) > MAX_COMMAND_LINE_LENGTH:
        return True
    if command.endswith("\\"):
        return True
    first = command[0]
    is_letter = first.isascii() and first.isalpha()
    return not (is_letter or first in FRAGMENT_START_CHARS)


def analyze_frequency(
    days_back: int,
    min_args: int,
    limit: int = 0,
    path: Optional[PathLike] = None,
    now: Optional[datetime] = None,
) -> List[FrequentCommand]:
    """
    Rank history commands by how often they were run.

    Once a timestamped line has been seen the file is treated as extended
    history: later lines without a timestamp are skipped and so are lines
    older than ``days_back`` days. Files without timestamps are counted
    in full.

    Args:
        days_back: Age window in days
        min_args: Minimum argument count for a command to qualify
        limit: Maximum number of results (0 or negative for all)
        path: History file (resolved with get_history_path when omitted)
        now: Reference time for the age window (naive times are local)

    Returns:
        Commands ordered by count (descending) then text (ascending)
    """
    history_path = Path(path) if path is not None else get_history_path()
    reference = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    cutoff = reference - timedelta(days=days_back)

    counts: Counter = Counter()
    has_timestamps = False
    for line in _iter_lines(history_path):
        parsed = parse_history_line(line)
        if parsed is None:
            continue
        command, timestamp = parsed

        if timestamp is not None:
            has_timestamps = True
        if has_timestamps:
            if timestamp is None or timestamp < cutoff:
                continue

        if _byte_length(command) < MIN_SUGGEST_LENGTH:
            continue
        if command.startswith(SELF_PREFIX):
            continue
        if is_multiline_fragment(command):
            continue
        if count_args(command) < min_args:
            continue
        counts[command] += 1

    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    if limit > 0:
        ranked = ranked[:limit]
    return [FrequentCommand(command=c, count=n) for c, n in ranked]
