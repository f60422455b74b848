import os

import pytest

from bkmk import config as config_module
from bkmk.models import ActionType, HistoryEntry
from bkmk.store import BookmarkStore


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the real home directory, settings and history."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("BKMK_") or key in ("HISTFILE", "EDITOR"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "_config", None)
    return home


@pytest.fixture
def store_path(tmp_path):
    """Path of a bookmark file that does not exist yet."""
    return tmp_path / "bkmk" / "config.yaml"


@pytest.fixture
def populated_store(store_path):
    """A saved store with two groups and three commands."""
    store = BookmarkStore(path=store_path)
    store.add_group("docker")
    store.add_command("docker", "ps", "docker ps -a", "List all containers")
    store.add_command("docker", "logs", "docker logs -f", action=ActionType.COPY)
    store.add_group("git")
    store.add_command("git", "status", "git status --short")
    store.save()
    return store


@pytest.fixture
def write_history(tmp_path):
    """Write a history file and return its path."""
    def _write(content, name=".test_history"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def history_entries():
    """History entries as a loader would return them."""
    return [
        HistoryEntry(command="kubectl get pods -n default", index=0),
        HistoryEntry(command="docker build -t app .", index=1),
        HistoryEntry(command="git push origin main", index=2),
    ]
