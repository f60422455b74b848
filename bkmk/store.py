"""
Bookmark store for bkmk.

Holds the group/command tree in memory and persists it as a YAML
document. Every save first copies the previous file to a timestamped
backup next to it; only the newest backups are kept.
"""
import copy
import logging
import os
import shutil
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple, Union

import yaml

from bkmk.constants import (
    BACKUP_SUFFIX,
    BACKUP_TIMESTAMP_FORMAT,
    DEFAULT_CONFIG_DIR,
    DEFAULT_MAX_BACKUPS,
    DEFAULT_STORE_FILE,
)
from bkmk.errors import DuplicateError, NotFoundError, StorageError, ValidationError
from bkmk.models import ActionType, Command, FlatCommand, Group

logger = logging.getLogger(__name__)

CommandRef = Union[int, str]


def default_store_path() -> Path:
    """Default location of the bookmark file."""
    return Path(os.path.expanduser(DEFAULT_CONFIG_DIR)) / DEFAULT_STORE_FILE


def _parse_document(text: str, source: Path) -> Dict[str, Any]:
    """Parse store YAML, raising StorageError on anything but a mapping."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise StorageError(f"failed to parse {source}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StorageError(f"failed to parse {source}: expected a mapping")
    return data


def _build_tree(data: Dict[str, Any], source: Path) -> Tuple[List[Group], int]:
    """
    Convert a parsed document into groups and a next_id.

    Commands without IDs are numbered here, so the result is ready to be
    installed as-is.

    Raises:
        StorageError: If the document does not have the store's shape
    """
    raw_groups = data.get("groups") or []
    if not isinstance(raw_groups, list):
        raise StorageError(f"failed to parse {source}: groups must be a list")
    for raw in raw_groups:
        if not isinstance(raw, dict):
            raise StorageError(f"failed to parse {source}: every group must be a mapping")
        raw_commands = raw.get("commands") or []
        if not isinstance(raw_commands, list):
            raise StorageError(f"failed to parse {source}: commands must be a list")
        if not all(isinstance(c, dict) for c in raw_commands):
            raise StorageError(f"failed to parse {source}: every command must be a mapping")

    try:
        groups = [Group.from_dict(g) for g in raw_groups]
        next_id = int(data.get("next_id") or 0)
    except (ValueError, TypeError, AttributeError) as e:
        raise StorageError(f"failed to parse {source}: {e}") from e
    return groups, _migrate_ids(groups, next_id)


def _migrate_ids(groups: List[Group], next_id: int) -> int:
    """Give every command an ID and return a next_id ahead of all of them."""
    highest = max((c.id for g in groups for c in g.commands), default=0)
    if next_id <= highest:
        next_id = highest + 1
    if next_id < 1:
        next_id = 1

    for group in groups:
        for command in group.commands:
            if command.id <= 0:
                command.id = next_id
                next_id += 1
                logger.info(f"Assigned ID {command.id} to {group.name}/{command.name}")
    return next_id


class BookmarkStore:
    """
    Groups of named shell commands backed by a YAML file.

    Command IDs are unique across the whole store and never reused:
    ``next_id`` is always greater than every ID handed out.
    """

    def __init__(self, path: Optional[Path] = None, groups: Optional[List[Group]] = None,
                 next_id: int = 1, max_backups: int = DEFAULT_MAX_BACKUPS):
        self.path = Path(path) if path is not None else default_store_path()
        self.groups: List[Group] = groups if groups is not None else []
        self.next_id = next_id
        self.max_backups = max_backups

    # Persistence

    @classmethod
    def load(cls, path: Optional[Path] = None,
             max_backups: int = DEFAULT_MAX_BACKUPS) -> "BookmarkStore":
        """
        Load a store from disk.

        A missing file yields an empty store. Files written before commands
        had IDs are migrated in memory; the next save persists the IDs.

        Raises:
            StorageError: If the file cannot be read or parsed
        """
        store = cls(path=path, max_backups=max_backups)
        store.reload()
        return store

    def reload(self):
        """
        Replace the in-memory tree with the file's contents.

        On failure the current tree and next_id are left untouched.
        """
        if not self.path.exists():
            self.groups = []
            self.next_id = 1
            return

        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"failed to read {self.path}: {e}") from e

        self.groups, self.next_id = _build_tree(_parse_document(text, self.path), self.path)
        logger.debug(f"Loaded {len(self.groups)} groups from {self.path}")

    def to_dict(self) -> Dict[str, Any]:
        return {"groups": [g.to_dict() for g in self.groups], "next_id": self.next_id}

    def save(self):
        """
        Write the store, backing up the previous file first.

        Raises:
            StorageError: If the directory, backup or file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                self._backup()
            text = yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True,
                                  default_flow_style=False)
            self.path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"failed to save {self.path}: {e}") from e
        logger.debug(f"Saved store to {self.path}")

    def _backup_prefix(self) -> str:
        return f"{self.path.name}{BACKUP_SUFFIX}"

    def _backup(self) -> Path:
        """Copy the current file to a new timestamped backup and prune old ones."""
        stamp = datetime.now()
        backup = self.path.with_name(self._backup_prefix() + stamp.strftime(BACKUP_TIMESTAMP_FORMAT))
        # Keep names unique and sortable when saves land in the same microsecond
        while backup.exists():
            stamp += timedelta(microseconds=1)
            backup = self.path.with_name(self._backup_prefix() + stamp.strftime(BACKUP_TIMESTAMP_FORMAT))
        shutil.copy2(self.path, backup)
        self._prune_backups()
        return backup

    def _prune_backups(self):
        backups = self.list_backups()
        for old in backups[self.max_backups:]:
            try:
                old.unlink()
            except OSError as e:
                logger.warning(f"Could not remove old backup {old}: {e}")

    def list_backups(self) -> List[Path]:
        """Backups of this store, newest first."""
        if not self.path.parent.exists():
            return []
        prefix = self._backup_prefix()
        backups = [p for p in self.path.parent.iterdir()
                   if p.name.startswith(prefix) and p.is_file()]
        return sorted(backups, key=lambda p: p.name, reverse=True)

    def restore_backup(self, backup: Union[str, Path]):
        """
        Replace the store with one of its backups.

        The current file is backed up first, so a restore can be undone.

        Args:
            backup: Backup path, or just its file name

        Raises:
            NotFoundError: If the backup does not exist
            ValidationError: If the file is not a backup of this store
            StorageError: If it cannot be read, parsed or copied
        """
        backup_path = Path(backup)
        if backup_path.parent == Path("."):
            backup_path = self.path.parent / backup_path
        if not backup_path.name.startswith(self._backup_prefix()):
            raise ValidationError(f"{backup_path.name} is not a backup of {self.path.name}")
        if not backup_path.is_file():
            raise NotFoundError(f"backup not found: {backup_path}")

        try:
            _build_tree(_parse_document(backup_path.read_text(encoding="utf-8"), backup_path),
                        backup_path)
            if self.path.exists():
                self._backup()
            shutil.copy2(backup_path, self.path)
        except OSError as e:
            raise StorageError(f"failed to restore {backup_path}: {e}") from e

        self.reload()
        logger.info(f"Restored {self.path} from {backup_path.name}")

    @contextmanager
    def mutation(self) -> Generator["BookmarkStore", None, None]:
        """
        Context manager for changes that must be persisted.

        The store is saved when the block exits. If the block or the save
        fails, the in-memory tree is rolled back and the error re-raised.
        """
        snapshot = (copy.deepcopy(self.groups), self.next_id)
        try:
            yield self
            self.save()
        except Exception:
            self.groups, self.next_id = snapshot
            raise

    # Groups

    def group_names(self) -> List[str]:
        return [g.name for g in self.groups]

    def get_group(self, name: str) -> Group:
        """Find a group by name, raising NotFoundError."""
        for group in self.groups:
            if group.name == name:
                return group
        raise NotFoundError(f'group "{name}" not found')

    def has_group(self, name: str) -> bool:
        return any(g.name == name for g in self.groups)

    def add_group(self, name: str) -> Group:
        """Append a new empty group."""
        name = name.strip()
        if not name:
            raise ValidationError("Group name cannot be empty")
        if self.has_group(name):
            raise DuplicateError(f'group "{name}" already exists')
        group = Group(name=name)
        self.groups.append(group)
        return group

    def rename_group(self, old_name: str, new_name: str) -> Group:
        """Rename a group in place, keeping its position and commands."""
        new_name = new_name.strip()
        if not new_name:
            raise ValidationError("Group name cannot be empty")
        group = self.get_group(old_name)
        if new_name != old_name and self.has_group(new_name):
            raise DuplicateError(f'group "{new_name}" already exists')
        group.name = new_name
        return group

    def remove_group(self, name: str) -> Group:
        """Remove a group together with all of its commands."""
        group = self.get_group(name)
        self.groups.remove(group)
        return group

    # Commands

    def _find_command(self, group: Group, ref: CommandRef) -> Optional[Command]:
        """Match by name first, then by ID when the reference looks like one."""
        if isinstance(ref, int):
            command_id = ref
        else:
            for command in group.commands:
                if command.name == ref:
                    return command
            if not str(ref).strip().isdigit():
                return None
            command_id = int(ref)
        for command in group.commands:
            if command.id == command_id:
                return command
        return None

    def get_command(self, group_name: str, ref: CommandRef) -> Command:
        """Find a command in a group by name or ID."""
        group = self.get_group(group_name)
        command = self._find_command(group, ref)
        if command is None:
            raise NotFoundError(f'command "{ref}" not found in group "{group_name}"')
        return command

    def get_command_by_id(self, command_id: int) -> Tuple[Group, Command]:
        """Find a command anywhere in the store by its ID."""
        for group in self.groups:
            for command in group.commands:
                if command.id == command_id:
                    return group, command
        raise NotFoundError(f"command with ID {command_id} not found")

    @staticmethod
    def _validate_command(name: str, command: str):
        if not name:
            raise ValidationError("Command name cannot be empty")
        if not command:
            raise ValidationError("Command cannot be empty")

    def add_command(self, group_name: str, name: str, command: str, description: str = "",
                    action: ActionType = ActionType.NONE) -> Command:
        """
        Append a command to a group, assigning it the next ID.

        Raises:
            ValidationError: If the name or command is empty
            NotFoundError: If the group does not exist
            DuplicateError: If the group already has a command with this name
        """
        name, command = name.strip(), command.strip()
        self._validate_command(name, command)
        group = self.get_group(group_name)
        if any(c.name == name for c in group.commands):
            raise DuplicateError(f'command "{name}" already exists in group "{group_name}"')

        entry = Command(id=self.next_id, name=name, command=command,
                        description=description.strip(), default_action=action)
        self.next_id += 1
        group.commands.append(entry)
        return entry

    def update_command(self, group_name: str, ref: CommandRef, name: str, command: str,
                       description: str = "", action: Optional[ActionType] = None) -> Command:
        """
        Change a command in place; its ID never changes.

        Args:
            action: New default action (None keeps the current one)
        """
        name, command = name.strip(), command.strip()
        self._validate_command(name, command)
        target = self.get_command(group_name, ref)
        group = self.get_group(group_name)
        if any(c.name == name and c is not target for c in group.commands):
            raise DuplicateError(f'command "{name}" already exists in group "{group_name}"')

        target.name = name
        target.command = command
        target.description = description.strip()
        if action is not None:
            target.default_action = action
        return target

    def remove_command(self, group_name: str, ref: CommandRef) -> Command:
        """Remove a command from a group by name or ID."""
        target = self.get_command(group_name, ref)
        self.get_group(group_name).commands.remove(target)
        return target

    def remove_command_by_id(self, command_id: int) -> Tuple[Group, Command]:
        """Remove a command wherever it lives."""
        group, command = self.get_command_by_id(command_id)
        group.commands.remove(command)
        return group, command

    # Projections

    def flat_commands(self) -> List[FlatCommand]:
        """Every command in store order, annotated with its group."""
        return [FlatCommand.from_command(g.name, c) for g in self.groups for c in g.commands]

    def command_count(self) -> int:
        return sum(len(g.commands) for g in self.groups)
