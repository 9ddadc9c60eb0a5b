"""Exception hierarchy and user-facing error classification."""

import asyncio

import httpx


class MemogramError(Exception):
    """Base class for all Memogram errors."""
    pass

class PersistenceError(MemogramError):
    """Credential file could not be written. The in-memory update still stands."""
    pass

class InvalidResourceNameError(MemogramError, ValueError):
    """A Memos resource name (e.g. ``memos/<uid>``) could not be parsed."""
    pass

class MemosError(MemogramError):
    """Memos API call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

class MemosAuthError(MemosError):
    """401/403 — access token missing, expired or revoked."""
    pass

class MemosNotFoundError(MemosError):
    """404 — memo or resource does not exist."""
    pass


def classify_error(e: Exception) -> str:
    """Classify any exception into a short message suitable for a chat reply."""
    if isinstance(e, MemosAuthError):
        return "Invalid access token. Link a new one with /start <access_token>."
    if isinstance(e, MemosNotFoundError):
        return "Memo not found."
    if isinstance(e, MemosError):
        if e.status_code and 500 <= e.status_code < 600:
            return "Memos server is having issues. Please try again later."
        if e.status_code:
            return f"Memos returned HTTP {e.status_code}."
        return "Memos request failed."
    if isinstance(e, PersistenceError):
        return "Could not save your credentials to disk. The bot owner has been notified in the logs."
    if isinstance(e, InvalidResourceNameError):
        return f"Invalid resource name: {e}"

    if isinstance(e, httpx.ConnectError):
        return "Cannot connect to the Memos server. Please try again later."
    if isinstance(e, (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout, httpx.ConnectTimeout)):
        return "Request timed out. Please try again."
    if isinstance(e, asyncio.TimeoutError):
        return "Request timed out. Please try again."

    type_name = type(e).__name__
    return f"Something went wrong ({type_name}). Check logs for details."
