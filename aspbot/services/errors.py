from __future__ import annotations

from datetime import datetime


class ASPError(Exception):
    """Base for errors that are reported back to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ASPError):
    pass


class ClosedWindowError(ASPError):
    def __init__(self, message: str, *, next_open: datetime | None = None) -> None:
        super().__init__(message)
        self.next_open = next_open


class CapExceededError(ASPError):
    def __init__(self, message: str, *, accrued: int, cap: int) -> None:
        super().__init__(message)
        self.accrued = accrued
        self.cap = cap


class NoOpenSessionError(ASPError):
    pass


class NotFoundError(ASPError):
    pass


class PersistenceError(ASPError):
    pass
