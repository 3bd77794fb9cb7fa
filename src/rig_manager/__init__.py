"""Manage R versions with rig: status line, R console and renv.lock in sync."""

__version__ = "0.3.0"
