"""Appointment lifecycle: creation, confirmation and cancellation."""

from .lifecycle import (
    AppointmentDetails,
    AppointmentLifecycle,
    LifecycleOutcome,
    LifecycleResult,
    SyncReport,
)
from .repository import AppointmentRepository

__all__ = [
    "AppointmentDetails",
    "AppointmentLifecycle",
    "AppointmentRepository",
    "LifecycleOutcome",
    "LifecycleResult",
    "SyncReport",
]
