"""Exceptions raised by the flusio services."""

from typing import Dict


class ValidationError(Exception):
    """Raised when user input does not validate.

    ``errors`` maps the concerned property to a human-readable message.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{key}: {value}" for key, value in errors.items()))


class NotFoundError(Exception):
    """Raised when a resource doesn't exist or the user can't access it."""
