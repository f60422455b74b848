"""
Tests for bkmk/runner.py

Commands run through a real /bin/sh; clipboard utilities are mocked.
"""
import subprocess
import pytest
from unittest.mock import patch

from bkmk.errors import ProcessError
from bkmk.runner import (
    clipboard_command,
    copy_to_clipboard,
    editor_command,
    open_in_editor,
    run_command,
    user_shell,
)


@pytest.fixture
def sh(monkeypatch):
    """Run commands with /bin/sh."""
    monkeypatch.setenv("SHELL", "/bin/sh")


class TestRunCommand:
    """Test run_command()."""

    def test_success(self, sh):
        """A successful command returns 0."""
        assert run_command("true") == 0

    def test_failure_status(self, sh):
        """The exit status is passed through."""
        assert run_command("exit 3") == 3

    def test_uses_shell(self, sh, tmp_path):
        """Shell syntax such as redirection works."""
        target = tmp_path / "out.txt"
        run_command(f"echo hello > '{target}'")

        assert target.read_text() == "hello\n"

    def test_shell_fallback(self, monkeypatch):
        """Without $SHELL, /bin/sh is used."""
        monkeypatch.delenv("SHELL", raising=False)
        assert user_shell() == "/bin/sh"

    def test_missing_shell(self, monkeypatch):
        """A shell that cannot start raises ProcessError."""
        monkeypatch.setenv("SHELL", "/nonexistent/shell")
        with pytest.raises(ProcessError):
            run_command("true")


class TestClipboard:
    """Test clipboard selection and copying."""

    def test_darwin_uses_pbcopy(self):
        """macOS always uses pbcopy."""
        assert clipboard_command("darwin") == ["pbcopy"]

    def test_linux_prefers_xclip(self, monkeypatch):
        """On X11 xclip is tried first."""
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        with patch("bkmk.runner.shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            assert clipboard_command("linux") == ["xclip", "-selection", "clipboard"]

    def test_linux_falls_back_to_xsel(self, monkeypatch):
        """xsel is used when xclip is missing."""
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        with patch("bkmk.runner.shutil.which",
                   side_effect=lambda name: "/usr/bin/xsel" if name == "xsel" else None):
            assert clipboard_command("linux") == ["xsel", "--clipboard", "--input"]

    def test_wayland_uses_wl_copy(self, monkeypatch):
        """Under Wayland wl-copy is preferred."""
        monkeypatch.setenv("WAYLAND_DISPLAY", "wayland-0")
        with patch("bkmk.runner.shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            assert clipboard_command("linux") == ["wl-copy"]

    def test_no_utility(self, monkeypatch):
        """No installed utility raises ProcessError with a hint."""
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        with patch("bkmk.runner.shutil.which", return_value=None):
            with pytest.raises(ProcessError, match="install xclip or xsel"):
                clipboard_command("linux")

    def test_unsupported_platform(self):
        """Other platforms are not supported."""
        with pytest.raises(ProcessError):
            clipboard_command("win32")

    def test_copy_pipes_text(self):
        """The text is written to the utility's stdin."""
        with patch("bkmk.runner.subprocess.run") as mock_run:
            copy_to_clipboard("docker ps -a", platform="darwin")

        args, kwargs = mock_run.call_args
        assert args[0] == ["pbcopy"]
        assert kwargs["input"] == "docker ps -a"
        assert kwargs["check"] is True

    def test_copy_failure(self):
        """A failing utility raises ProcessError."""
        error = subprocess.CalledProcessError(1, ["pbcopy"], stderr="boom")
        with patch("bkmk.runner.subprocess.run", side_effect=error):
            with pytest.raises(ProcessError, match="boom"):
                copy_to_clipboard("text", platform="darwin")

    def test_copy_utility_vanished(self):
        """A utility that cannot be executed raises ProcessError."""
        with patch("bkmk.runner.subprocess.run", side_effect=FileNotFoundError("pbcopy")):
            with pytest.raises(ProcessError):
                copy_to_clipboard("text", platform="darwin")


class TestEditor:
    """Test editor_command() and open_in_editor()."""

    @pytest.mark.parametrize("configured,env_editor,expected", [
        ("code", "nano", "code"),
        ("", "nano", "nano"),
        ("", None, "vi"),
    ])
    def test_editor_choice(self, sh, monkeypatch, configured, env_editor, expected):
        """Configured editor, then $EDITOR, then vi."""
        if env_editor:
            monkeypatch.setenv("EDITOR", env_editor)

        argv = editor_command("/tmp/test", configured)

        assert argv[:2] == ["/bin/sh", "-c"]
        assert argv[2].startswith(expected + " ")
        assert "/tmp/test" in argv[2]

    def test_path_with_spaces_is_quoted(self, sh):
        """Paths are shell-quoted."""
        argv = editor_command("/path/with spaces/file.txt", "code")
        assert "'/path/with spaces/file.txt'" in argv[2]

    def test_open_runs_editor(self, sh, tmp_path):
        """The editor runs on the file and its status is checked."""
        target = tmp_path / "config.yaml"
        target.write_text("")

        assert open_in_editor(str(target), "touch") == 0

    def test_open_failure(self, sh, tmp_path):
        """A failing editor raises ProcessError."""
        with pytest.raises(ProcessError):
            open_in_editor(str(tmp_path / "x"), "false")
