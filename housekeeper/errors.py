from __future__ import annotations

from typing import Optional


class HousekeeperError(Exception):
    """Base class for everything the housekeeper raises on purpose."""


class ConfigError(HousekeeperError):
    pass


class NomadError(HousekeeperError):
    """A Nomad API call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CleanupError(HousekeeperError):
    """A cleanup cycle could not run at all (e.g. jobs could not be listed)."""
