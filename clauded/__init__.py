"""Companion client for clauded remote terminal sessions."""

__version__ = "0.1.0"
