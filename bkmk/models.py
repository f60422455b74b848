"""
Data models for bkmk.

Plain dataclasses for the bookmark tree (groups owning commands) and for
the read-only projections built from it and from shell history.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ActionType(Enum):
    """What happens when a bookmarked command is selected."""
    NONE = "none"    # Ask every time
    COPY = "copy"    # Copy to clipboard without asking
    RUN = "run"      # Run without asking

    @classmethod
    def parse(cls, value: Optional[str]) -> "ActionType":
        """
        Parse a user supplied action name.

        Empty values mean NONE; the first letter is enough ("c", "r").

        Raises:
            ValueError: If the value names no action
        """
        text = (value or "").strip().lower()
        if not text:
            return cls.NONE
        for action in cls:
            if action.value == text or (len(text) == 1 and action.value[0] == text):
                return action
        raise ValueError(f"unknown action {value!r}")


@dataclass
class Command:
    """A named shell command owned by exactly one group."""
    id: int
    name: str
    command: str
    description: str = ""
    default_action: ActionType = ActionType.NONE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the YAML store, omitting empty optional fields."""
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "command": self.command}
        if self.description:
            data["description"] = self.description
        if self.default_action is not ActionType.NONE:
            data["default_action"] = self.default_action.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Command":
        action = data.get("default_action") or ""
        try:
            default_action = ActionType.parse(str(action))
        except ValueError:
            default_action = ActionType.NONE
        return cls(
            id=int(data.get("id") or 0),
            name=str(data.get("name") or ""),
            command=str(data.get("command") or ""),
            description=str(data.get("description") or ""),
            default_action=default_action,
        )


@dataclass
class Group:
    """A named, ordered collection of commands."""
    name: str
    commands: List[Command] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "commands": [c.to_dict() for c in self.commands]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Group":
        commands = [Command.from_dict(c) for c in (data.get("commands") or [])]
        return cls(name=str(data.get("name") or ""), commands=commands)


@dataclass(frozen=True)
class FlatCommand:
    """A command annotated with the name of its group."""
    group: str
    id: int
    name: str
    command: str
    description: str = ""
    default_action: ActionType = ActionType.NONE

    @classmethod
    def from_command(cls, group: str, command: Command) -> "FlatCommand":
        return cls(
            group=group,
            id=command.id,
            name=command.name,
            command=command.command,
            description=command.description,
            default_action=command.default_action,
        )

    @property
    def search_text(self) -> str:
        """Text the fuzzy search matches against."""
        return f"{self.group} {self.name} {self.command} {self.description}"


@dataclass(frozen=True)
class HistoryEntry:
    """One deduplicated shell history command, 0 being the most recent."""
    command: str
    timestamp: Optional[datetime] = None
    index: int = 0


@dataclass(frozen=True)
class FrequentCommand:
    """A history command and how often it was run."""
    command: str
    count: int
