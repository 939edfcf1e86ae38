"""Appointment email notifications."""

from .dispatcher import NotificationDispatcher

__all__ = ["NotificationDispatcher"]
