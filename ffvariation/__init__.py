"""Typed feature-flag variation evaluation over a user-supplied flag cache."""

__version__ = "0.1.0"