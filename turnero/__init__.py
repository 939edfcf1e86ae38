"""Turnero: conversational medical appointment booking."""

__version__ = "1.0.0"
