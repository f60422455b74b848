"""
Interactive full-screen interface for bkmk.

The session module holds the state machine, views renders it and app
hosts it in a prompt_toolkit application.
"""

from bkmk.tui.session import Outcome, Session

__all__ = ["Outcome", "Session"]
