"""
Tests for bkmk/models.py
"""
import pytest

from bkmk.models import ActionType, Command, FlatCommand, Group


class TestActionType:
    """Test ActionType.parse()."""

    @pytest.mark.parametrize("value,expected", [
        ("", ActionType.NONE),
        (None, ActionType.NONE),
        ("none", ActionType.NONE),
        ("copy", ActionType.COPY),
        ("RUN", ActionType.RUN),
        (" c ", ActionType.COPY),
        ("r", ActionType.RUN),
    ])
    def test_parse(self, value, expected):
        """Full names, first letters and empty values are accepted."""
        assert ActionType.parse(value) is expected

    @pytest.mark.parametrize("value", ["launch", "co", "x"])
    def test_parse_unknown(self, value):
        """Anything else raises ValueError."""
        with pytest.raises(ValueError):
            ActionType.parse(value)


class TestCommand:
    """Test Command serialisation."""

    def test_to_dict_omits_defaults(self):
        """Empty descriptions and the none action are not written."""
        command = Command(id=1, name="ps", command="docker ps")
        assert command.to_dict() == {"id": 1, "name": "ps", "command": "docker ps"}

    def test_to_dict_full(self):
        """Set fields are written."""
        command = Command(id=2, name="logs", command="docker logs -f",
                          description="Follow logs", default_action=ActionType.COPY)
        assert command.to_dict() == {
            "id": 2, "name": "logs", "command": "docker logs -f",
            "description": "Follow logs", "default_action": "copy",
        }

    def test_from_dict_without_id(self):
        """Old entries without IDs load with ID 0 for migration."""
        command = Command.from_dict({"name": "ps", "command": "docker ps"})
        assert command.id == 0
        assert command.default_action is ActionType.NONE

    def test_from_dict_unknown_action(self):
        """Unknown stored actions fall back to none."""
        command = Command.from_dict({"id": 1, "name": "x", "command": "x",
                                     "default_action": "explode"})
        assert command.default_action is ActionType.NONE


class TestGroup:
    """Test Group serialisation."""

    def test_from_dict_missing_commands(self):
        """A group without a commands key is empty."""
        assert Group.from_dict({"name": "empty"}) == Group(name="empty")

    def test_to_dict(self):
        group = Group(name="git", commands=[Command(id=3, name="st", command="git status")])
        assert group.to_dict() == {
            "name": "git",
            "commands": [{"id": 3, "name": "st", "command": "git status"}],
        }


class TestFlatCommand:
    """Test FlatCommand."""

    def test_from_command(self):
        """Every field is copied and the group is attached."""
        command = Command(id=1, name="ps", command="docker ps -a",
                          description="List all containers", default_action=ActionType.RUN)
        flat = FlatCommand.from_command("docker", command)

        assert flat.group == "docker"
        assert flat.id == 1
        assert flat.default_action is ActionType.RUN

    def test_search_text(self):
        """Search covers group, name, command and description."""
        flat = FlatCommand(group="docker", id=1, name="ps", command="docker ps -a",
                           description="List all containers")
        assert flat.search_text == "docker ps docker ps -a List all containers"
