"""
Process helpers: running commands, copying to the clipboard and
opening files in an editor.
"""
import logging
import os
import shlex
import shutil
import subprocess
import sys
from typing import List, Optional, Sequence

from bkmk.constants import DEFAULT_EDITOR, DEFAULT_SHELL
from bkmk.errors import ProcessError

logger = logging.getLogger(__name__)

# Tried in order on Linux; wl-copy only under Wayland
LINUX_CLIPBOARD_COMMANDS = (
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
)


def user_shell() -> str:
    """The user's login shell, falling back to /bin/sh."""
    return os.environ.get("SHELL") or DEFAULT_SHELL


def run_command(command: str) -> int:
    """
    Run a command through the user's shell attached to this terminal.

    Returns:
        The command's exit status

    Raises:
        ProcessError: If the shell cannot be started
    """
    shell = user_shell()
    logger.info(f"Running via {shell}: {command}")
    try:
        return subprocess.call([shell, "-c", command])
    except OSError as e:
        raise ProcessError(f"failed to start {shell}: {e}") from e


def clipboard_command(platform: Optional[str] = None) -> List[str]:
    """
    Pick the clipboard utility for this platform.

    Raises:
        ProcessError: If none is installed or the platform is unsupported
    """
    platform = platform or sys.platform
    if platform == "darwin":
        return ["pbcopy"]
    if platform.startswith("linux"):
        for candidate in LINUX_CLIPBOARD_COMMANDS:
            if candidate[0] == "wl-copy" and not os.environ.get("WAYLAND_DISPLAY"):
                continue
            if shutil.which(candidate[0]):
                return list(candidate)
        raise ProcessError("no clipboard utility found (install xclip or xsel)")
    raise ProcessError(f"clipboard not supported on {platform}")


def copy_to_clipboard(text: str, platform: Optional[str] = None):
    """
    Put text on the system clipboard.

    Raises:
        ProcessError: If no utility is available or it fails
    """
    argv = clipboard_command(platform)
    try:
        subprocess.run(argv, input=text, text=True, check=True,
                       stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
    except OSError as e:
        raise ProcessError(f"failed to run {argv[0]}: {e}") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
        raise ProcessError(f"{argv[0]} failed: {detail}") from e
    logger.debug(f"Copied {len(text)} characters with {argv[0]}")


def editor_command(path: str, configured_editor: Optional[str] = None) -> List[str]:
    """
    Build the argv that opens a file in the user's editor.

    The editor is the configured one, then $EDITOR, then vi. It runs
    through the shell so editors with arguments (``code -w``) work.
    """
    editor = configured_editor or os.environ.get("EDITOR") or DEFAULT_EDITOR
    return [user_shell(), "-c", f"{editor} {shlex.quote(str(path))}"]


def open_in_editor(path: str, configured_editor: Optional[str] = None) -> int:
    """
    Open a file in the editor and wait for it to exit.

    Raises:
        ProcessError: If the editor cannot be started or exits non-zero
    """
    argv: Sequence[str] = editor_command(path, configured_editor)
    try:
        status = subprocess.call(argv)
    except OSError as e:
        raise ProcessError(f"failed to start editor: {e}") from e
    if status != 0:
        raise ProcessError(f"editor exited with status {status}")
    return status
