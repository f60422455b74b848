"""
Full-screen terminal host for the interactive session.

Translates prompt_toolkit key presses into the session's key names,
renders the session on every redraw and carries out the effects the
session asks for.
"""
import logging
from typing import Optional

from prompt_toolkit.application import Application, get_app, run_in_terminal
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.styles import Style

from bkmk.errors import BkmkError
from bkmk.runner import open_in_editor
from bkmk.tui import views
from bkmk.tui.session import OpenEditor, Outcome, Quit, Session

logger = logging.getLogger(__name__)

STYLE = Style.from_dict({
    "title": "bold #ff79c6",
    "heading": "bold #8be9fd",
    "item": "",
    "selected": "bold #50fa7b",
    "dim": "#6272a4",
    "id": "#f1fa8c",
    "group-tag": "#bd93f9",
    "command": "#f8f8f2",
    "description": "italic #6272a4",
    "time": "#6272a4",
    "label": "#6272a4",
    "label.focused": "bold #ff79c6",
    "input": "",
    "placeholder": "#44475a",
    "cursor": "reverse",
    "new-group": "#50fa7b",
    "help": "#6272a4",
    "warning": "bold #ffb86c",
    "error": "bold #ff5555",
    "status": "#ffb86c",
})

SPECIAL_KEYS = {
    Keys.Escape: "esc",
    Keys.ControlM: "enter",
    Keys.ControlJ: "enter",
    Keys.ControlI: "tab",
    Keys.BackTab: "shift+tab",
    Keys.ControlH: "backspace",
    Keys.Delete: "delete",
    Keys.Up: "up",
    Keys.Down: "down",
    Keys.Left: "left",
    Keys.Right: "right",
    Keys.Home: "home",
    Keys.End: "end",
    Keys.PageUp: "pgup",
    Keys.PageDown: "pgdown",
    Keys.ControlUp: "ctrl+up",
    Keys.ControlDown: "ctrl+down",
}


def translate_key(key) -> str:
    """
    Map a prompt_toolkit key to a session key name.

    Printable characters map to themselves, ``c-x`` style keys to
    ``ctrl+x``. Internal events (mouse, cursor reports) map to "".
    """
    if key in SPECIAL_KEYS:
        return SPECIAL_KEYS[key]
    name = key.value if isinstance(key, Keys) else str(key)
    if name == "<sigint>":
        return "ctrl+c"
    if name.startswith("c-"):
        return "ctrl+" + name[2:]
    if name.startswith("<"):
        return ""
    return name


class BkmkApp:
    """
    prompt_toolkit application wrapping a Session.

    Args:
        session: Session to drive
        editor: Configured editor used for the open-in-editor key
    """

    def __init__(self, session: Session, editor: Optional[str] = None):
        self.session = session
        self.editor = editor
        self.app = Application(
            layout=Layout(Window(FormattedTextControl(self._get_text), wrap_lines=False)),
            key_bindings=self._build_key_bindings(),
            style=STYLE,
            full_screen=True,
        )
        # Escape must not wait for a possible escape sequence
        self.app.ttimeoutlen = 0.05

    def _get_text(self):
        size = get_app().output.get_size()
        self.session.resize(size.columns, size.rows)
        return views.render(self.session)

    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add(Keys.Any)
        def _(event):
            key = translate_key(event.key_sequence[0].key)
            if not key:
                return
            self._apply(self.session.handle_key(key), event.app)

        @kb.add(Keys.BracketedPaste)
        def _(event):
            self.session.handle_paste(event.data)

        return kb

    def _apply(self, effect, app: Application):
        if isinstance(effect, Quit):
            if not app.is_done:
                app.exit()
        elif isinstance(effect, OpenEditor):
            app.create_background_task(self._edit(effect.path))

    async def _edit(self, path: str):
        try:
            await run_in_terminal(lambda: open_in_editor(path, self.editor))
        except BkmkError as e:
            logger.info(f"Editor failed: {e}")
            self.session.report(str(e))
            return
        self.session.reload()
        self.app.invalidate()

    def run(self) -> Outcome:
        """Run until the session ends and return what the user picked."""
        self.app.run()
        return self.session.outcome


def run_session(session: Session, editor: Optional[str] = None) -> Outcome:
    """Run a session full screen and return its outcome."""
    return BkmkApp(session, editor=editor).run()
