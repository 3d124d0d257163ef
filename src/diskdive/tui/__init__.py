"""Textual dashboard for diskdive."""

from diskdive.tui.app import DiskDiveApp, run_tui

__all__ = ["DiskDiveApp", "run_tui"]
