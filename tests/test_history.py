"""
Tests for bkmk/history.py

Covers line parsing (plain and zsh extended format), history file
resolution, deduplicated reading and frequency analysis.
"""
import pytest
from datetime import datetime, timedelta, timezone

from bkmk.errors import HistoryNotFoundError, NotFoundError
from bkmk.history import (
    analyze_frequency,
    count_args,
    get_history_path,
    is_multiline_fragment,
    last_command,
    parse_history_line,
    read_history,
)

# All timestamps in the fixtures below fall within a year of this
NOW = datetime(2025, 12, 20, tzinfo=timezone.utc)


class TestParseHistoryLine:
    """Test parse_history_line()."""

    @pytest.mark.parametrize("line,expected", [
        ("docker ps -a", "docker ps -a"),
        ("git status", "git status"),
        ("  docker ps  ", "docker ps"),
    ])
    def test_plain_lines(self, line, expected):
        """Plain lines are trimmed and carry no timestamp."""
        assert parse_history_line(line) == (expected, None)

    def test_extended_format(self):
        """Zsh extended lines yield the command and its timestamp."""
        command, timestamp = parse_history_line(": 1699000000:0;docker build -t test .")
        assert command == "docker build -t test ."
        assert timestamp == datetime.fromtimestamp(1699000000, tz=timezone.utc)

    def test_extended_format_keeps_later_semicolons(self):
        """Only the first semicolon separates metadata from the command."""
        command, _ = parse_history_line(": 1699000000:0;make; make install")
        assert command == "make; make install"

    def test_unparseable_timestamp(self):
        """A bad epoch leaves the command without a timestamp."""
        assert parse_history_line(": abc:0;git status") == ("git status", None)

    @pytest.mark.parametrize("line", [
        ": 1_699_000_000:0;git status",
        ": 1699000000 :0;git status",
        ":  1699000000:0;git status",
    ])
    def test_non_decimal_timestamp(self, line):
        """Epochs with underscores or padding are not timestamps."""
        assert parse_history_line(line) == ("git status", None)

    def test_length_counts_bytes(self):
        """A single two-byte character is long enough to keep."""
        assert parse_history_line("é") == ("é", None)

    @pytest.mark.parametrize("line", ["ls", "cd", "pwd", "clear", "exit", "history", "", "a", "   "])
    def test_rejected_lines(self, line):
        """Short and trivial commands are rejected."""
        assert parse_history_line(line) is None

    def test_skip_list_applies_to_extended_lines(self):
        """Trivial commands are rejected in extended format too."""
        assert parse_history_line(": 1699000000:0;ls") is None

    def test_skip_list_is_exact(self):
        """Commands merely starting with a trivial one are kept."""
        assert parse_history_line("ls -la") == ("ls -la", None)

    def test_idempotent(self):
        """Parsing an emitted command again gives the same command."""
        command, _ = parse_history_line(": 1699000000:0;  git log --oneline ")
        assert parse_history_line(command) == (command, None)


class TestGetHistoryPath:
    """Test get_history_path()."""

    def test_histfile_has_priority(self, tmp_path, monkeypatch):
        """$HISTFILE wins over the default locations."""
        custom = tmp_path / ".custom_history"
        custom.write_text("custom command\n")
        (tmp_path / ".zsh_history").write_text("zsh command\n")
        monkeypatch.setenv("HISTFILE", str(custom))

        assert get_history_path(home=tmp_path) == custom

    def test_missing_histfile_falls_back(self, tmp_path, monkeypatch):
        """A $HISTFILE that does not exist is ignored."""
        (tmp_path / ".bash_history").write_text("bash command\n")
        monkeypatch.setenv("HISTFILE", str(tmp_path / "nope"))

        assert get_history_path(home=tmp_path) == tmp_path / ".bash_history"

    def test_fallback_order(self, tmp_path):
        """Zsh history is preferred over bash history."""
        (tmp_path / ".bash_history").write_text("bash command\n")
        (tmp_path / ".zsh_history").write_text("zsh command\n")

        assert get_history_path(home=tmp_path) == tmp_path / ".zsh_history"

    def test_dot_history_fallback(self, tmp_path):
        """~/.history is the last resort."""
        (tmp_path / ".history").write_text(": 1699000000:0;test command\n")

        assert get_history_path(home=tmp_path) == tmp_path / ".history"

    def test_not_found(self, tmp_path):
        """No candidate raises HistoryNotFoundError."""
        with pytest.raises(HistoryNotFoundError):
            get_history_path(home=tmp_path)

    def test_defaults_to_home(self, isolated_env):
        """Without an explicit home the user's home directory is searched."""
        (isolated_env / ".zsh_history").write_text("git status\n")
        assert get_history_path() == isolated_env / ".zsh_history"


class TestReadHistory:
    """Test read_history()."""

    def test_dedup_and_order(self, write_history):
        """Entries are unique, most recent first, trivial commands dropped."""
        path = write_history(
            "docker build -t myimage .\n"
            ": 1699000000:0;kubectl get pods\n"
            "git status\n"
            "docker ps -a\n"
            "ls\n"
            "cd\n"
        )

        entries = read_history(10, path)

        assert [e.command for e in entries] == [
            "docker ps -a", "git status", "kubectl get pods", "docker build -t myimage .",
        ]
        assert [e.index for e in entries] == [0, 1, 2, 3]
        assert entries[2].timestamp is not None
        assert entries[0].timestamp is None

    def test_most_recent_duplicate_wins(self, write_history):
        """A repeated command appears once, at its most recent position."""
        path = write_history("git status\nmake test\ngit status\n")

        entries = read_history(0, path)

        assert [e.command for e in entries] == ["git status", "make test"]

    def test_limit(self, write_history):
        """The limit caps the number of unique entries."""
        path = write_history("".join(f"command{i % 10}\n" for i in range(100)))

        assert len(read_history(5, path)) == 5

    def test_no_limit(self, write_history):
        """A limit of zero reads everything."""
        path = write_history("".join(f"command{i % 10}\n" for i in range(100)))

        assert len(read_history(0, path)) == 10

    def test_very_long_lines(self, write_history):
        """Lines over a megabyte are read without error."""
        long_command = "echo " + "x" * (1024 * 1024 + 10)
        path = write_history(f"git status\n{long_command}\n")

        entries = read_history(0, path)

        assert entries[0].command == long_command
        assert entries[1].command == "git status"

    def test_invalid_bytes(self, tmp_path):
        """Undecodable bytes do not abort reading."""
        path = tmp_path / ".zsh_history"
        path.write_bytes(b"git status\necho caf\x83\xe9\n")

        entries = read_history(0, path)

        assert len(entries) == 2

    def test_missing_file(self, tmp_path):
        """A missing file raises a not-found error."""
        with pytest.raises(NotFoundError):
            read_history(10, tmp_path / "missing")

    def test_uses_resolved_path(self, isolated_env):
        """Without a path the history file is located automatically."""
        (isolated_env / ".bash_history").write_text("make build\n")

        assert [e.command for e in read_history()] == ["make build"]


class TestLastCommand:
    """Test last_command()."""

    def test_skips_bkmk(self, write_history):
        """Invocations of bkmk itself are skipped."""
        path = write_history("terraform plan\nbkmk last\n")
        assert last_command(path=path) == "terraform plan"

    def test_nothing_found(self, write_history):
        """Only bkmk commands means nothing to bookmark."""
        path = write_history("bkmk list\nbkmk last\n")
        with pytest.raises(NotFoundError):
            last_command(path=path)


class TestCountArgs:
    """Test count_args()."""

    @pytest.mark.parametrize("command,expected", [
        ("ls", 1),
        ("docker ps", 2),
        ("docker ps -a", 3),
        ('git commit -m "hello world"', 4),
        ("echo 'single quoted'", 2),
        ("kubectl get pods -n default", 5),
        ("", 0),
        ("   ", 0),
        ("cmd   with   spaces", 3),
        ('echo "nested \'quotes\' here"', 2),
        ("a\tb", 2),
        ('echo ""', 2),
    ])
    def test_count(self, command, expected):
        """Quoted text counts as part of a single argument."""
        assert count_args(command) == expected


class TestIsMultilineFragment:
    """Test is_multiline_fragment()."""

    @pytest.mark.parametrize("command", [
        "git push \\",
        "docker run \\",
        "x" * 301,
        '"num_ctx": 512}}\'',
        '("=" * 50)',
        ') >> "$GITHUB_STEP_SUMMARY"',
        '-H "X-GitHub-Api-Version"',
        "",
    ])
    def test_fragments(self, command):
        """Continuations, over-long lines and odd starts are fragments."""
        assert is_multiline_fragment(command) is True

    @pytest.mark.parametrize("command", [
        "x" * 300,
        "docker ps -a",
        "git commit -m 'message'",
        "./script.sh",
        "/usr/bin/env bash",
        "~/bin/tool",
        "$HOME/bin/tool arg",
    ])
    def test_commands(self, command):
        """Ordinary commands are not fragments."""
        assert is_multiline_fragment(command) is False

    def test_length_limit_counts_bytes(self):
        """The length limit applies to UTF-8 bytes, not characters."""
        assert is_multiline_fragment("echo " + "é" * 148) is True
        assert is_multiline_fragment("echo " + "é" * 147 + "x") is False


class TestAnalyzeFrequency:
    """Test analyze_frequency()."""

    def test_ranking(self, write_history):
        """Most frequent first, ties broken alphabetically."""
        path = write_history(
            ": 1765200000:0;docker ps --all\n"
            ": 1765200001:0;git status -s\n"
            ": 1765200002:0;docker ps --all\n"
            ": 1765200003:0;kubectl get pods -n default\n"
            ": 1765200004:0;docker ps --all\n"
            ": 1765200005:0;kubectl get pods -n default\n"
            ": 1765200006:0;ls\n"
            ': 1765200007:0;git commit -m "test message"\n'
        )

        commands = analyze_frequency(365, 2, 10, path=path, now=NOW)

        assert [(c.command, c.count) for c in commands] == [
            ("docker ps --all", 3),
            ("kubectl get pods -n default", 2),
            ('git commit -m "test message"', 1),
            ("git status -s", 1),
        ]

    def test_min_args(self, write_history):
        """Commands with too few arguments are excluded."""
        path = write_history(
            "docker container list --all\n"
            "git status --short\n"
            "kubectl get pods -n default\n"
        )

        commands = analyze_frequency(365, 4, 10, path=path, now=NOW)

        assert {c.command for c in commands} == {
            "docker container list --all", "kubectl get pods -n default",
        }

    def test_limit(self, write_history):
        """The limit truncates the ranking."""
        path = write_history("".join(f"command{i} argument1\n" for i in range(1, 6)))

        assert len(analyze_frequency(365, 2, 3, path=path, now=NOW)) == 3

    def test_skips_bkmk(self, write_history):
        """bkmk invocations are never suggested."""
        path = write_history(
            "bkmk add docker ps\n"
            "bkmk suggest --all\n"
            "docker ps --all --format json\n"
        )

        commands = analyze_frequency(365, 2, 10, path=path, now=NOW)

        assert [c.command for c in commands] == ["docker ps --all --format json"]

    def test_short_commands_excluded(self, write_history):
        """Commands under 13 characters are excluded."""
        path = write_history("git log -p -1\ngit add -A .\n")

        commands = analyze_frequency(365, 2, 10, path=path, now=NOW)

        assert [c.command for c in commands] == ["git log -p -1"]

    def test_suggest_length_counts_bytes(self, write_history):
        """Multi-byte characters count towards the minimum length."""
        path = write_history("git log é -1\n")

        commands = analyze_frequency(365, 2, 10, path=path, now=NOW)

        assert [c.command for c in commands] == ["git log é -1"]

    def test_naive_now(self, write_history):
        """A reference time without a timezone is taken as local time."""
        recent = int((NOW - timedelta(days=1)).timestamp())
        path = write_history(f": {recent}:0;terraform plan -out plan\n")

        commands = analyze_frequency(60, 2, 10, path=path, now=NOW.replace(tzinfo=None))

        assert [c.command for c in commands] == ["terraform plan -out plan"]

    def test_age_window(self, write_history):
        """Timestamped lines older than the window are skipped."""
        recent = int((NOW - timedelta(days=1)).timestamp())
        old = int((NOW - timedelta(days=90)).timestamp())
        path = write_history(
            f": {old}:0;terraform apply -auto-approve\n"
            f": {recent}:0;terraform plan -out plan\n"
        )

        commands = analyze_frequency(60, 2, 10, path=path, now=NOW)

        assert [c.command for c in commands] == ["terraform plan -out plan"]

    def test_untimestamped_lines_after_timestamps(self, write_history):
        """Once timestamps appear, lines without one are continuation fragments."""
        recent = int((NOW - timedelta(days=1)).timestamp())
        path = write_history(
            "docker compose up -d\n"
            f": {recent}:0;docker compose logs -f\n"
            "docker compose down -v\n"
        )

        commands = analyze_frequency(60, 2, 10, path=path, now=NOW)

        assert {c.command for c in commands} == {"docker compose up -d", "docker compose logs -f"}

    def test_plain_history_not_date_filtered(self, write_history):
        """Files without timestamps are counted in full."""
        path = write_history("npm run build --prod\n" * 3)

        commands = analyze_frequency(1, 2, 10, path=path, now=NOW)

        assert [(c.command, c.count) for c in commands] == [("npm run build --prod", 3)]

    def test_fragments_excluded(self, write_history):
        """Multi-line fragments are not counted."""
        path = write_history('docker run --rm \\\n  -v "$PWD:/src" image\n')

        assert analyze_frequency(365, 2, 10, path=path, now=NOW) == []
