"""Exceptions raised for contract violations.

Data problems in the location log or the media catalog are logged and skipped
by the services; only misuse of the API and invalid configuration raise.
"""

from __future__ import annotations


class TimelineError(Exception):
    """Base class for errors raised by this package."""


class CoordinatorClosedError(TimelineError):
    """Raised when a closed `LoadCoordinator` receives a new request."""


class SettingsError(TimelineError):
    """Raised when a configuration value is missing or out of range."""
