"""Errors raised by the status refresh pipeline.

None of these are retried internally; the scheduler logs them and the next
tick tries again.
"""
from typing import List, Optional


class GameServersError(Exception):
    """Base class for refresh and catalog failures."""


class CredentialsMissing(GameServersError):
    """API token or token e-mail is not configured."""

    def __init__(self, message: str = "GameQuery credentials are missing."):
        super().__init__(message)


class FetchFailed(GameServersError):
    """Every endpoint failed, or the games endpoint returned garbage."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class EmptyCatalog(GameServersError):
    """The games endpoint returned no usable games."""

    def __init__(self, message: str = "GameQuery games endpoint returned an empty game list."):
        super().__init__(message)


class UnparsableResponse(GameServersError):
    """The status response held no recognizable server fragments."""
