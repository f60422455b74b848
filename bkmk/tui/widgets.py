"""
Editable text models for the interactive session.

These hold state only; rendering lives in views and key translation in
the application host, so both can be tested without a terminal. Text
fields keep their contents in a prompt_toolkit Buffer, which does the
editing itself and needs no running application.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from prompt_toolkit.buffer import Buffer
from prompt_toolkit.document import Document


class TextInput:
    """A single-line text field with a cursor."""

    def __init__(self, label: str = "", placeholder: str = "", focused: bool = False):
        self.label = label
        self.placeholder = placeholder
        self.focused = focused
        self.buffer = Buffer(multiline=False)

    def __repr__(self):
        return f"TextInput(label={self.label!r}, value={self.value!r}, cursor={self.cursor})"

    @property
    def value(self) -> str:
        return self.buffer.text

    @property
    def cursor(self) -> int:
        return self.buffer.cursor_position

    @cursor.setter
    def cursor(self, position: int):
        self.buffer.cursor_position = position

    def set_value(self, value: str):
        self.buffer.document = Document(value, len(value))

    def reset(self):
        self.buffer.reset()

    def insert(self, text: str):
        """Insert text at the cursor, dropping line breaks."""
        self.buffer.insert_text(text.replace("\r", "").replace("\n", " "))

    def handle_key(self, key: str) -> bool:
        """
        Apply an editing key.

        Returns:
            True if the key was consumed
        """
        buffer = self.buffer
        document = buffer.document
        if len(key) == 1:
            if not key.isprintable():
                return False
            self.insert(key)
        elif key == "space":
            self.insert(" ")
        elif key == "backspace":
            buffer.delete_before_cursor()
        elif key == "delete":
            buffer.delete()
        elif key == "left":
            buffer.cursor_left()
        elif key == "right":
            buffer.cursor_right()
        elif key in ("home", "ctrl+a"):
            buffer.cursor_position += document.get_start_of_line_position()
        elif key in ("end", "ctrl+e"):
            buffer.cursor_position += document.get_end_of_line_position()
        elif key == "ctrl+u":
            buffer.delete_before_cursor(-document.get_start_of_line_position())
        elif key == "ctrl+k":
            buffer.delete(document.get_end_of_line_position())
        elif key == "ctrl+w":
            # Same boundary as prompt_toolkit's unix-word-rubout
            start = document.find_start_of_previous_word(WORD=True)
            if start is None:
                start = -buffer.cursor_position
            buffer.delete_before_cursor(-start)
        else:
            return False
        return True


@dataclass
class Form:
    """Ordered text fields with one focused field and an error line."""
    fields: List[TextInput] = field(default_factory=list)
    focus: int = 0
    error: str = ""

    def __post_init__(self):
        self._apply_focus()

    @classmethod
    def build(cls, *labels: str, values: Optional[List[str]] = None) -> "Form":
        """Create a form with one field per label, optionally prefilled."""
        fields = []
        for i, label in enumerate(labels):
            text_input = TextInput(label=label, placeholder=label)
            if values and i < len(values):
                text_input.set_value(values[i])
            fields.append(text_input)
        return cls(fields=fields)

    def _apply_focus(self):
        for i, text_input in enumerate(self.fields):
            text_input.focused = i == self.focus

    @property
    def current(self) -> TextInput:
        return self.fields[self.focus]

    @property
    def on_last_field(self) -> bool:
        return self.focus == len(self.fields) - 1

    def next_field(self):
        self.focus = (self.focus + 1) % len(self.fields)
        self._apply_focus()

    def previous_field(self):
        self.focus = (self.focus - 1) % len(self.fields)
        self._apply_focus()

    def values(self) -> List[str]:
        return [f.value.strip() for f in self.fields]
