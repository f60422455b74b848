"""
Rendering of session modes to prompt_toolkit formatted text.

Every mode has one render function. They only read session state and
append ``(style, text)`` fragments; the style classes are defined by the
application in ``bkmk.tui.app``.
"""
from typing import Callable, Dict, List, Tuple

from prompt_toolkit.formatted_text import FormattedText

from bkmk.constants import APP_TITLE, HISTORY_TIME_FORMAT, SEARCH_RESULTS_SHOWN
from bkmk.models import ActionType, FlatCommand
from bkmk.tui.session import (
    ACTION_CHOICES,
    ActionSelectMode,
    AddCommandMode,
    AddGroupMode,
    AllCommandsMode,
    CommandsMode,
    DeleteConfirmMode,
    EditCommandMode,
    EditGroupMode,
    GroupsMode,
    HistoryAddDetailsMode,
    HistoryMode,
    HistorySelectGroupMode,
    SearchMode,
    Session,
)
from bkmk.tui.widgets import Form, TextInput

Fragments = List[Tuple[str, str]]

MARKER = "> "
INDENT = "    "
ELLIPSIS = "..."


def truncate(text: str, width: int) -> str:
    """Shorten text to fit a width, marking the cut with an ellipsis."""
    if width <= len(ELLIPSIS) or len(text) <= width:
        return text
    return text[:width - len(ELLIPSIS)] + ELLIPSIS


def visible_range(cursor: int, total: int, capacity: int) -> Tuple[int, int]:
    """Start and end of the slice of a list to show so the cursor stays visible."""
    capacity = max(capacity, 1)
    start = cursor - capacity + 1 if cursor >= capacity else 0
    return start, min(start + capacity, total)


def scroll_hint(start: int, end: int, total: int) -> str:
    parts = []
    if start > 0:
        parts.append(f"↑ {start} more above")
    if end < total:
        parts.append(f"↓ {total - end} more below")
    return " | ".join(parts)


def _line(out: Fragments, *parts: Tuple[str, str]):
    out.extend(parts)
    out.append(("", "\n"))


def _help(out: Fragments, *items: str):
    _line(out)
    _line(out, ("class:help", " | ".join(items)))


def _marker(selected: bool) -> Tuple[str, str]:
    return ("class:selected", MARKER) if selected else ("", " " * len(MARKER))


def _item_style(selected: bool) -> str:
    return "class:selected" if selected else "class:item"


def _input(text_input: TextInput) -> Fragments:
    """Fragments for a text field, with a block cursor when focused."""
    value = text_input.value
    if not text_input.focused:
        if not value:
            return [("class:placeholder", text_input.placeholder)]
        return [("class:input", value)]
    if not value:
        return [("class:cursor", " "), ("class:placeholder", text_input.placeholder)]
    at = value[text_input.cursor:text_input.cursor + 1] or " "
    return [
        ("class:input", value[:text_input.cursor]),
        ("class:cursor", at),
        ("class:input", value[text_input.cursor + 1:]),
    ]


def _error(out: Fragments, message: str):
    if message:
        _line(out)
        _line(out, ("class:error", f"Error: {message}"))


def _flat_row(out: Fragments, command: FlatCommand, selected: bool, width: int):
    head = f"[{command.group}] "
    room = width - len(MARKER) - len(head) - len(command.name) - 3
    _line(
        out,
        _marker(selected),
        ("class:group-tag", head),
        (_item_style(selected), command.name),
        ("class:dim", " - "),
        ("class:command", truncate(command.command, room)),
    )


def _action_tag(action: ActionType) -> Tuple[str, str]:
    if action is ActionType.NONE:
        return ("", "")
    return ("class:dim", f" ({action.value})")


# Mode renderers

def render_groups(out: Fragments, session: Session, mode: GroupsMode):
    _line(out, ("class:heading", "Groups"))
    _line(out)
    if not session.store.groups:
        _line(out, ("class:dim", "No groups yet. Press 'a' to add one."))
    for i, group in enumerate(session.store.groups):
        selected = i == mode.cursor
        count = len(group.commands)
        noun = "cmd" if count == 1 else "cmds"
        _line(out, _marker(selected), (_item_style(selected), group.name),
              ("class:dim", f" ({count} {noun})"))
    _help(out, "↑/↓ navigate", "enter open", "/ search", "s all", "h history",
          "a add", "e rename", "d delete", "o edit config", "q quit")


def render_commands(out: Fragments, session: Session, mode: CommandsMode):
    group = session.current_group()
    _line(out, ("class:heading", f"Group: {mode.group}"))
    _line(out)
    commands = group.commands if group else []
    if not commands:
        _line(out, ("class:dim", "No commands yet. Press 'a' to add one."))
    width = session.width - len(INDENT)
    for i, command in enumerate(commands):
        selected = i == mode.cursor
        _line(out, _marker(selected), ("class:id", f"[{command.id}] "),
              (_item_style(selected), command.name), _action_tag(command.default_action))
        _line(out, ("", INDENT), ("class:command", truncate(command.command, width)))
        if command.description:
            _line(out, ("", INDENT), ("class:description", truncate(command.description, width)))
    _help(out, "↑/↓ navigate", "enter select", "a add", "e edit", "d delete",
          "/ search", "h history", "esc back", "q quit")


def render_search(out: Fragments, session: Session, mode: SearchMode):
    _line(out, ("class:label", "Search: "), *_input(mode.query))
    _line(out)
    total = len(mode.results)
    if not total:
        _line(out, ("class:dim", "No matching commands"))
    start, end = visible_range(mode.cursor, total, SEARCH_RESULTS_SHOWN)
    for i in range(start, end):
        _flat_row(out, mode.results[i], i == mode.cursor, session.width)
    if total > end - start:
        _line(out, ("class:dim", "... and more results"))
    _help(out, "type to filter", "ctrl+n/ctrl+p navigate", "enter select", "esc back")


def render_all_commands(out: Fragments, session: Session, mode: AllCommandsMode):
    items = session.flat_commands
    _line(out, ("class:heading", f"All bookmarks ({len(items)})"))
    _line(out)
    if not items:
        _line(out, ("class:dim", "No bookmarks yet."))
    start, end = visible_range(mode.cursor, len(items), session.list_page_size)
    for i in range(start, end):
        _flat_row(out, items[i], i == mode.cursor, session.width)
    hint = scroll_hint(start, end, len(items))
    if hint:
        _line(out, ("class:dim", hint))
    _help(out, "↑/↓ navigate", "pgup/pgdown page", "enter select", "e edit",
          "d delete", "/ search", "esc back", "q quit")


def _form(out: Fragments, form: Form):
    for text_input in form.fields:
        style = "class:label.focused" if text_input.focused else "class:label"
        _line(out, (style, f"{text_input.label}:"))
        _line(out, ("", "  "), *_input(text_input))
    _error(out, form.error)
    _help(out, "tab/shift+tab move", "enter next/save", "esc cancel")


def render_add_group(out: Fragments, session: Session, mode: AddGroupMode):
    _line(out, ("class:heading", "New group"))
    if mode.pending_command is not None:
        _line(out, ("class:dim", "For: "), ("class:command", truncate(mode.pending_command, session.width - 5)))
    _line(out)
    _form(out, mode.form)


def render_edit_group(out: Fragments, session: Session, mode: EditGroupMode):
    _line(out, ("class:heading", f"Rename group: {mode.group}"))
    _line(out)
    _form(out, mode.form)


def render_add_command(out: Fragments, session: Session, mode: AddCommandMode):
    _line(out, ("class:heading", f"New command in {mode.group}"))
    _line(out)
    _form(out, mode.form)


def render_edit_command(out: Fragments, session: Session, mode: EditCommandMode):
    _line(out, ("class:heading", f"Edit command [{mode.command_id}] in {mode.group}"))
    _line(out)
    _form(out, mode.form)


def render_history_details(out: Fragments, session: Session, mode: HistoryAddDetailsMode):
    _line(out, ("class:heading", f"Save to {mode.group}"))
    _line(out, ("class:dim", "Command: "), ("class:command", truncate(mode.command, session.width - 9)))
    _line(out)
    _form(out, mode.form)


def render_delete_confirm(out: Fragments, session: Session, mode: DeleteConfirmMode):
    if mode.command_id is None:
        question = f'Delete group "{mode.label}" and all its commands?'
    else:
        question = f'Delete command "{mode.label}" from group "{mode.group}"?'
    _line(out, ("class:warning", question))
    _line(out)
    _line(out, ("class:help", "y/enter confirm | n/esc cancel"))
    _error(out, mode.error)


def render_history(out: Fragments, session: Session, mode: HistoryMode):
    _line(out, ("class:heading", "Shell history"))
    _line(out, ("class:label", "Filter: "), *_input(mode.query))
    _line(out)
    if mode.error:
        _line(out, ("class:error", f"Error: {mode.error}"))
    elif not mode.results:
        _line(out, ("class:dim", "No matching history"))

    total = len(mode.results)
    start, end = visible_range(mode.cursor, total, session.history_page_size)
    for i in range(start, end):
        entry = mode.results[i]
        selected = i == mode.cursor
        stamp = ""
        if entry.timestamp is not None:
            stamp = entry.timestamp.astimezone().strftime(HISTORY_TIME_FORMAT) + "  "
        room = session.width - len(MARKER) - len(stamp)
        _line(out, _marker(selected), ("class:time", stamp),
              (_item_style(selected), truncate(entry.command, room)))
    hint = scroll_hint(start, end, total)
    if hint:
        _line(out, ("class:dim", hint))
    _help(out, "type to filter", "↑/↓ navigate", "pgup/pgdown page", "enter save", "esc back")


def render_history_select_group(out: Fragments, session: Session, mode: HistorySelectGroupMode):
    _line(out, ("class:heading", "Save command"))
    _line(out, ("class:command", truncate(mode.command, session.width)))
    _line(out)
    _line(out, ("class:label", "Choose a group:"))
    groups = session.store.groups
    for i, group in enumerate(groups):
        selected = i == mode.cursor
        _line(out, _marker(selected), (_item_style(selected), group.name))
    selected = mode.cursor == len(groups)
    _line(out, _marker(selected), ("class:new-group", "+ Create new group"))
    _help(out, "↑/↓ navigate", "enter choose", "esc back", "q quit")


def render_action_select(out: Fragments, session: Session, mode: ActionSelectMode):
    command = mode.command
    _line(out, ("class:heading", "Selected: "), ("class:group-tag", f"[{command.group}] "),
          ("class:item", command.name))
    _line(out, ("", INDENT), ("class:command", truncate(command.command, session.width - len(INDENT))))
    if command.description:
        _line(out, ("", INDENT), ("class:description", command.description))
    _line(out)
    for i, choice in enumerate(ACTION_CHOICES):
        selected = i == mode.cursor
        _line(out, _marker(selected), (_item_style(selected), choice))
    _error(out, mode.error)
    _help(out, "↑/↓ navigate", "enter choose", "r run", "c copy", "esc cancel")


RENDERERS: Dict[type, Callable[[Fragments, Session, object], None]] = {
    GroupsMode: render_groups,
    CommandsMode: render_commands,
    SearchMode: render_search,
    AllCommandsMode: render_all_commands,
    AddGroupMode: render_add_group,
    EditGroupMode: render_edit_group,
    AddCommandMode: render_add_command,
    EditCommandMode: render_edit_command,
    HistoryAddDetailsMode: render_history_details,
    DeleteConfirmMode: render_delete_confirm,
    HistoryMode: render_history,
    HistorySelectGroupMode: render_history_select_group,
    ActionSelectMode: render_action_select,
}


def render(session: Session) -> FormattedText:
    """Render the whole screen for the session's current mode."""
    out: Fragments = []
    _line(out, ("class:title", APP_TITLE), ("class:dim", f"  Config: {session.store.path}"))
    _line(out)
    RENDERERS[type(session.mode)](out, session, session.mode)
    if session.status:
        _line(out)
        _line(out, ("class:status", session.status))
    return FormattedText(out)


def render_text(session: Session) -> str:
    """Plain text of the current screen."""
    return "".join(text for _, text in render(session))
