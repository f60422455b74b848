"""
Interactive session state machine.

The session is a pure model of the full-screen interface: it receives
normalized key names (``"enter"``, ``"esc"``, ``"j"``, ``"ctrl+c"``...),
updates its current mode and occasionally returns an effect for the host
to perform (quit, open an editor). Nothing here touches the terminal, so
the whole navigation and editing flow is testable with a fake store,
history loader and clipboard.

Each mode is a small dataclass holding only the state it needs. Modes
that can be cancelled remember the mode they were entered from, so
``esc`` returns to exactly where the user was.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from bkmk import fuzzy
from bkmk.constants import (
    ALL_COMMANDS_RESERVED_LINES,
    DEFAULT_HISTORY_LIMIT,
    HISTORY_RESERVED_LINES,
    MIN_PAGE_SIZE,
)
from bkmk.errors import BkmkError, StorageError, ValidationError
from bkmk.history import read_history
from bkmk.models import ActionType, FlatCommand, Group, HistoryEntry
from bkmk.runner import copy_to_clipboard
from bkmk.store import BookmarkStore
from bkmk.tui.widgets import Form, TextInput

logger = logging.getLogger(__name__)

ACTION_CHOICES = ("Run", "Copy", "Cancel")
DELETE_KEYS = ("d", "backspace", "delete")
PAGE_UP_KEYS = ("pgup", "ctrl+up")
PAGE_DOWN_KEYS = ("pgdown", "ctrl+down")

COMMAND_FIELDS = ("Name", "Command", "Description", "Default action (none/copy/run)")
HISTORY_DETAIL_FIELDS = ("Command name", "Description")
GROUP_FIELDS = ("Group name",)


# Effects returned to the host

@dataclass(frozen=True)
class Quit:
    """Leave the interface."""


@dataclass(frozen=True)
class OpenEditor:
    """Suspend the interface and edit a file."""
    path: str


QUIT = Quit()
Effect = Union[Quit, OpenEditor]


# Modes

@dataclass
class GroupsMode:
    cursor: int = 0


@dataclass
class CommandsMode:
    group: str
    cursor: int = 0


@dataclass
class SearchMode:
    query: TextInput
    results: List[FlatCommand] = field(default_factory=list)
    cursor: int = 0


@dataclass
class AllCommandsMode:
    previous: "Mode"
    cursor: int = 0


@dataclass
class AddGroupMode:
    form: Form
    previous: "Mode"
    # Set when the new group is for a command picked from history
    pending_command: Optional[str] = None


@dataclass
class EditGroupMode:
    form: Form
    group: str
    previous: "Mode"


@dataclass
class AddCommandMode:
    form: Form
    group: str
    previous: "Mode"


@dataclass
class EditCommandMode:
    form: Form
    group: str
    command_id: int
    previous: "Mode"


@dataclass
class DeleteConfirmMode:
    group: str
    label: str
    previous: "Mode"
    command_id: Optional[int] = None  # None deletes the whole group
    error: str = ""


@dataclass
class HistoryMode:
    query: TextInput
    previous: "Mode"
    entries: List[HistoryEntry] = field(default_factory=list)
    results: List[HistoryEntry] = field(default_factory=list)
    cursor: int = 0
    error: str = ""


@dataclass
class HistorySelectGroupMode:
    command: str
    previous: Optional[HistoryMode] = None
    cursor: int = 0


@dataclass
class HistoryAddDetailsMode:
    form: Form
    command: str
    group: str
    previous: HistorySelectGroupMode


@dataclass
class ActionSelectMode:
    command: FlatCommand
    previous: "Mode"
    cursor: int = 0
    error: str = ""


Mode = Union[
    GroupsMode, CommandsMode, SearchMode, AllCommandsMode,
    AddGroupMode, EditGroupMode, AddCommandMode, EditCommandMode,
    DeleteConfirmMode, HistoryMode, HistorySelectGroupMode,
    HistoryAddDetailsMode, ActionSelectMode,
]


@dataclass
class Outcome:
    """What the user picked when the session ended."""
    selected: Optional[FlatCommand] = None
    action: str = ""  # "run", "copy" or "" for no selection


def clamp(cursor: int, length: int) -> int:
    """Keep a cursor inside a list of the given length (0 when empty)."""
    return max(0, min(cursor, length - 1))


def command_form(values: Optional[List[str]] = None) -> Form:
    return Form.build(*COMMAND_FIELDS, values=values)


def form_error(error: BkmkError) -> str:
    if isinstance(error, StorageError):
        return f"Failed to save: {error}"
    return str(error)


def parse_action(value: str) -> ActionType:
    try:
        return ActionType.parse(value)
    except ValueError:
        raise ValidationError("Default action must be one of: none, copy, run") from None


class Session:
    """
    State machine behind the full-screen interface.

    Args:
        store: Loaded bookmark store
        history_loader: Callable taking a limit and returning history entries
        clipboard: Callable putting text on the clipboard
        history_limit: How many history entries the history view loads
    """

    def __init__(self, store: BookmarkStore,
                 history_loader: Optional[Callable[[int], List[HistoryEntry]]] = None,
                 clipboard: Optional[Callable[[str], None]] = None,
                 history_limit: int = DEFAULT_HISTORY_LIMIT,
                 width: int = 80, height: int = 24):
        self.store = store
        self.history_loader = history_loader or read_history
        self.clipboard = clipboard or copy_to_clipboard
        self.history_limit = history_limit
        self.width = width
        self.height = height

        self.mode: Mode = GroupsMode()
        self.flat_commands: List[FlatCommand] = store.flat_commands()
        self.status = ""
        self.done = False
        self.outcome = Outcome()

        # Key handler per mode
        self._handlers: Dict[type, Callable[[str], Optional[Effect]]] = {
            GroupsMode: self._handle_groups,
            CommandsMode: self._handle_commands,
            SearchMode: self._handle_search,
            AllCommandsMode: self._handle_all_commands,
            AddGroupMode: self._handle_form,
            EditGroupMode: self._handle_form,
            AddCommandMode: self._handle_form,
            EditCommandMode: self._handle_form,
            HistoryAddDetailsMode: self._handle_form,
            DeleteConfirmMode: self._handle_delete_confirm,
            HistoryMode: self._handle_history,
            HistorySelectGroupMode: self._handle_history_select_group,
            ActionSelectMode: self._handle_action_select,
        }
        self._submitters: Dict[type, Callable] = {
            AddGroupMode: self._submit_add_group,
            EditGroupMode: self._submit_edit_group,
            AddCommandMode: self._submit_add_command,
            EditCommandMode: self._submit_edit_command,
            HistoryAddDetailsMode: self._submit_history_details,
        }

    @classmethod
    def with_history(cls, store: BookmarkStore, **kwargs) -> "Session":
        """Start in the history browser."""
        session = cls(store, **kwargs)
        session._enter_history(GroupsMode())
        return session

    @classmethod
    def with_last_command(cls, store: BookmarkStore, command: str, **kwargs) -> "Session":
        """Start by choosing a group for an already picked command."""
        session = cls(store, **kwargs)
        session.mode = HistorySelectGroupMode(command=command)
        return session

    # Public API used by the host

    def handle_key(self, key: str) -> Optional[Effect]:
        """Process one key and return an effect for the host, if any."""
        if self.done:
            return QUIT
        if key == "ctrl+c":
            return self._quit()
        self.status = ""
        return self._handlers[type(self.mode)](key)

    def handle_paste(self, text: str):
        """Insert pasted text into whichever field has focus."""
        text_input = self.focused_input()
        if text_input is None:
            return
        text_input.insert(text)
        if isinstance(self.mode, SearchMode):
            self._filter_search(self.mode)
        elif isinstance(self.mode, HistoryMode):
            self._filter_history(self.mode)

    def focused_input(self) -> Optional[TextInput]:
        mode = self.mode
        if isinstance(mode, (SearchMode, HistoryMode)):
            return mode.query
        form = getattr(mode, "form", None)
        return form.current if form is not None else None

    def resize(self, width: int, height: int):
        self.width = width
        self.height = height

    def reload(self):
        """Re-read the store from disk, e.g. after it was edited externally."""
        try:
            self.store.reload()
        except BkmkError as e:
            self.status = f"Reload failed: {e}"
            return
        self._refresh()
        self._restore(self.mode)

    def report(self, message: str):
        """Show a one-off status message."""
        self.status = message

    @property
    def history_page_size(self) -> int:
        return max(self.height - HISTORY_RESERVED_LINES, MIN_PAGE_SIZE)

    @property
    def list_page_size(self) -> int:
        return max(self.height - ALL_COMMANDS_RESERVED_LINES, MIN_PAGE_SIZE)

    def current_group(self) -> Optional[Group]:
        group_name = getattr(self.mode, "group", None)
        if group_name is None or not self.store.has_group(group_name):
            return None
        return self.store.get_group(group_name)

    # Shared helpers

    def _quit(self) -> Effect:
        self.done = True
        return QUIT

    def _finish(self, command: FlatCommand, action: ActionType) -> Effect:
        self.outcome = Outcome(selected=command, action=action.value)
        self.done = True
        return QUIT

    def _refresh(self):
        self.flat_commands = self.store.flat_commands()

    def _move(self, mode, key: str, length: int, letters: bool = True, page: int = 0) -> bool:
        """Move a mode's cursor for navigation keys; False if the key is not one."""
        if key in ("up", "ctrl+p") or (letters and key == "k"):
            mode.cursor = max(mode.cursor - 1, 0)
        elif key in ("down", "ctrl+n") or (letters and key == "j"):
            mode.cursor = clamp(mode.cursor + 1, length)
        elif page and key in PAGE_UP_KEYS:
            mode.cursor = max(mode.cursor - page, 0)
        elif page and key in PAGE_DOWN_KEYS:
            mode.cursor = clamp(mode.cursor + page, length)
        else:
            return False
        return True

    def _length(self, mode) -> Optional[int]:
        """Number of selectable rows in a list mode, None for other modes."""
        if isinstance(mode, GroupsMode):
            return len(self.store.groups)
        if isinstance(mode, CommandsMode):
            return len(self.store.get_group(mode.group).commands)
        if isinstance(mode, (SearchMode, HistoryMode)):
            return len(mode.results)
        if isinstance(mode, AllCommandsMode):
            return len(self.flat_commands)
        if isinstance(mode, HistorySelectGroupMode):
            return len(self.store.groups) + 1
        if isinstance(mode, ActionSelectMode):
            return len(ACTION_CHOICES)
        return None

    def _restore(self, mode: Mode):
        """Make a remembered mode current again, clamping to shrunken lists."""
        if isinstance(mode, CommandsMode) and not self.store.has_group(mode.group):
            mode = GroupsMode(cursor=0)
        if isinstance(mode, SearchMode):
            self._filter_search(mode)
        length = self._length(mode)
        if length is not None:
            mode.cursor = clamp(mode.cursor, length)
        self.mode = mode

    def _browse_key(self, key: str, allow_all: bool = True) -> Optional[Effect]:
        """Keys shared by the groups, commands and all-commands views."""
        if key == "q":
            return self._quit()
        if key == "/":
            self._enter_search()
        elif key == "s" and allow_all:
            self.mode = AllCommandsMode(previous=self.mode)
        elif key == "h":
            self._enter_history(self.mode)
        elif key == "o":
            return OpenEditor(str(self.store.path))
        return None

    def _select(self, command: FlatCommand) -> Optional[Effect]:
        """Act on a chosen command: its default action, or ask."""
        if command.default_action is ActionType.RUN:
            return self._finish(command, ActionType.RUN)
        if command.default_action is ActionType.COPY:
            try:
                self.clipboard(command.command)
            except BkmkError as e:
                self.mode = ActionSelectMode(command=command, previous=self.mode, error=str(e))
                return None
            return self._finish(command, ActionType.COPY)
        self.mode = ActionSelectMode(command=command, previous=self.mode)
        return None

    # Groups

    def _handle_groups(self, key: str) -> Optional[Effect]:
        mode = self.mode
        groups = self.store.groups
        if self._move(mode, key, len(groups)):
            return None

        if key in ("enter", "tab"):
            if groups:
                self.mode = CommandsMode(group=groups[mode.cursor].name)
        elif key == "a":
            self.mode = AddGroupMode(form=Form.build(*GROUP_FIELDS), previous=mode)
        elif key == "e":
            if groups:
                name = groups[mode.cursor].name
                self.mode = EditGroupMode(form=Form.build(*GROUP_FIELDS, values=[name]),
                                          group=name, previous=mode)
        elif key in DELETE_KEYS:
            if groups:
                name = groups[mode.cursor].name
                self.mode = DeleteConfirmMode(group=name, label=name, previous=mode)
        else:
            return self._browse_key(key)
        return None

    # Commands

    def _handle_commands(self, key: str) -> Optional[Effect]:
        mode = self.mode
        group = self.current_group()
        if group is None:
            self.mode = GroupsMode()
            return None
        commands = group.commands
        if self._move(mode, key, len(commands)):
            return None

        if key in ("enter", "tab"):
            if commands:
                return self._select(FlatCommand.from_command(group.name, commands[mode.cursor]))
        elif key == "esc":
            self.mode = GroupsMode(cursor=self.store.group_names().index(group.name))
        elif key == "a":
            self.mode = AddCommandMode(form=command_form(), group=group.name, previous=mode)
        elif key == "e":
            if commands:
                self._enter_edit_command(group.name, commands[mode.cursor].id, mode)
        elif key in DELETE_KEYS:
            if commands:
                command = commands[mode.cursor]
                self.mode = DeleteConfirmMode(group=group.name, label=command.name,
                                              command_id=command.id, previous=mode)
        else:
            return self._browse_key(key)
        return None

    def _enter_edit_command(self, group_name: str, command_id: int, previous: Mode):
        command = self.store.get_command(group_name, command_id)
        values = [command.name, command.command, command.description,
                  command.default_action.value]
        self.mode = EditCommandMode(form=command_form(values), group=group_name,
                                    command_id=command_id, previous=previous)

    # Search

    def _enter_search(self):
        query = TextInput(placeholder="Search commands...", focused=True)
        self.mode = SearchMode(query=query)
        self._filter_search(self.mode)

    def _filter_search(self, mode: SearchMode):
        pattern = mode.query.value
        if not pattern:
            mode.results = list(self.flat_commands)
        else:
            haystack = [c.search_text for c in self.flat_commands]
            mode.results = [self.flat_commands[m.index] for m in fuzzy.find(pattern, haystack)]
        mode.cursor = clamp(mode.cursor, len(mode.results))

    def _handle_search(self, key: str) -> Optional[Effect]:
        mode = self.mode
        if key == "esc":
            mode.query.reset()
            self.mode = GroupsMode(cursor=0)
        elif key == "enter":
            if mode.results:
                return self._select(mode.results[mode.cursor])
        elif self._move(mode, key, len(mode.results), letters=False):
            return None
        elif mode.query.handle_key(key):
            self._filter_search(mode)
        return None

    # All commands

    def _handle_all_commands(self, key: str) -> Optional[Effect]:
        mode = self.mode
        items = self.flat_commands
        if self._move(mode, key, len(items), page=self.list_page_size):
            return None

        if key in ("enter", "tab"):
            if items:
                return self._select(items[mode.cursor])
        elif key == "esc":
            self._restore(mode.previous)
        elif key == "e":
            if items:
                item = items[mode.cursor]
                self._enter_edit_command(item.group, item.id, mode)
        elif key in DELETE_KEYS:
            if items:
                item = items[mode.cursor]
                self.mode = DeleteConfirmMode(group=item.group, label=item.name,
                                              command_id=item.id, previous=mode)
        else:
            return self._browse_key(key, allow_all=False)
        return None

    # Forms

    def _handle_form(self, key: str) -> Optional[Effect]:
        mode = self.mode
        form = mode.form
        if key == "esc":
            self._restore(mode.previous)
        elif key in ("tab", "down"):
            form.next_field()
        elif key in ("shift+tab", "up"):
            form.previous_field()
        elif key == "enter":
            if form.on_last_field:
                self._submitters[type(mode)](mode)
            else:
                form.next_field()
        else:
            form.current.handle_key(key)
        return None

    def _submit_add_group(self, mode: AddGroupMode):
        (name,) = mode.form.values()
        try:
            with self.store.mutation():
                group = self.store.add_group(name)
        except BkmkError as e:
            mode.form.error = form_error(e)
            return
        self._refresh()
        index = len(self.store.groups) - 1

        if mode.pending_command is not None and isinstance(mode.previous, HistorySelectGroupMode):
            chooser = mode.previous
            chooser.cursor = index
            self.mode = HistoryAddDetailsMode(form=Form.build(*HISTORY_DETAIL_FIELDS),
                                              command=mode.pending_command,
                                              group=group.name, previous=chooser)
        else:
            self.mode = GroupsMode(cursor=index)

    def _submit_edit_group(self, mode: EditGroupMode):
        (name,) = mode.form.values()
        try:
            with self.store.mutation():
                group = self.store.rename_group(mode.group, name)
        except BkmkError as e:
            mode.form.error = form_error(e)
            return
        self._refresh()
        self.mode = GroupsMode(cursor=self.store.group_names().index(group.name))

    def _submit_add_command(self, mode: AddCommandMode):
        name, command, description, action = mode.form.values()
        try:
            with self.store.mutation():
                self.store.add_command(mode.group, name, command, description,
                                       parse_action(action))
        except BkmkError as e:
            mode.form.error = form_error(e)
            return
        self._refresh()
        count = len(self.store.get_group(mode.group).commands)
        self.mode = CommandsMode(group=mode.group, cursor=count - 1)

    def _submit_edit_command(self, mode: EditCommandMode):
        name, command, description, action = mode.form.values()
        try:
            with self.store.mutation():
                self.store.update_command(mode.group, mode.command_id, name, command,
                                          description, parse_action(action))
        except BkmkError as e:
            mode.form.error = form_error(e)
            return
        self._refresh()
        self._restore(mode.previous)

    def _submit_history_details(self, mode: HistoryAddDetailsMode):
        name, description = mode.form.values()
        try:
            with self.store.mutation():
                self.store.add_command(mode.group, name, mode.command, description)
        except BkmkError as e:
            mode.form.error = form_error(e)
            return
        self._refresh()
        count = len(self.store.get_group(mode.group).commands)
        self.mode = CommandsMode(group=mode.group, cursor=count - 1)

    # Delete confirmation

    def _handle_delete_confirm(self, key: str) -> Optional[Effect]:
        mode = self.mode
        if key in ("y", "Y", "enter"):
            try:
                with self.store.mutation():
                    if mode.command_id is None:
                        self.store.remove_group(mode.group)
                    else:
                        self.store.remove_command(mode.group, mode.command_id)
            except BkmkError as e:
                mode.error = form_error(e)
                return None
            self._refresh()
            self._restore(mode.previous)
        elif key in ("n", "N", "esc"):
            self._restore(mode.previous)
        return None

    # History

    def _enter_history(self, previous: Mode):
        query = TextInput(placeholder="Filter history...", focused=True)
        mode = HistoryMode(query=query, previous=previous)
        try:
            mode.entries = list(self.history_loader(self.history_limit))
        except BkmkError as e:
            logger.info(f"Could not load history: {e}")
            mode.error = str(e)
        mode.results = list(mode.entries)
        self.mode = mode

    def _filter_history(self, mode: HistoryMode):
        pattern = mode.query.value
        if not pattern:
            mode.results = list(mode.entries)
        else:
            matches = fuzzy.find(pattern, [e.command for e in mode.entries])
            mode.results = [mode.entries[m.index] for m in matches]
        mode.cursor = clamp(mode.cursor, len(mode.results))

    def _handle_history(self, key: str) -> Optional[Effect]:
        mode = self.mode
        if key == "esc":
            mode.query.reset()
            self._restore(mode.previous)
        elif key == "enter":
            if mode.results:
                self.mode = HistorySelectGroupMode(command=mode.results[mode.cursor].command,
                                                   previous=mode)
        elif self._move(mode, key, len(mode.results), letters=False,
                        page=self.history_page_size):
            return None
        elif mode.query.handle_key(key):
            self._filter_history(mode)
        return None

    def _handle_history_select_group(self, key: str) -> Optional[Effect]:
        mode = self.mode
        groups = self.store.groups
        if self._move(mode, key, len(groups) + 1):
            return None

        if key in ("enter", "tab"):
            if mode.cursor < len(groups):
                self.mode = HistoryAddDetailsMode(form=Form.build(*HISTORY_DETAIL_FIELDS),
                                                  command=mode.command,
                                                  group=groups[mode.cursor].name,
                                                  previous=mode)
            else:
                self.mode = AddGroupMode(form=Form.build(*GROUP_FIELDS), previous=mode,
                                         pending_command=mode.command)
        elif key == "esc":
            if mode.previous is not None:
                self.mode = mode.previous
            else:
                self._enter_history(GroupsMode())
        elif key == "q":
            return self._quit()
        return None

    # Action menu

    def _handle_action_select(self, key: str) -> Optional[Effect]:
        mode = self.mode
        if self._move(mode, key, len(ACTION_CHOICES)):
            mode.error = ""
            return None

        choice = None
        if key == "enter":
            choice = ACTION_CHOICES[mode.cursor]
        elif key == "r":
            choice = "Run"
        elif key == "c":
            choice = "Copy"
        elif key == "esc":
            choice = "Cancel"
        elif key == "q":
            return self._quit()

        if choice == "Run":
            return self._finish(mode.command, ActionType.RUN)
        if choice == "Copy":
            try:
                self.clipboard(mode.command.command)
            except BkmkError as e:
                mode.error = str(e)
                return None
            return self._finish(mode.command, ActionType.COPY)
        if choice == "Cancel":
            self._restore(mode.previous)
        return None
