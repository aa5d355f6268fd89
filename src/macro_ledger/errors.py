"""Error taxonomy for store access."""


class MacroLedgerError(Exception):
    """Base class for all errors raised by this package."""


class AuthenticationError(MacroLedgerError):
    """Token exchange or refresh failed."""


class TransportError(MacroLedgerError):
    """Non-success response (or connection failure) from the document store."""

    def __init__(self, status_code: int | None, body: str, action: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.action = action
        prefix = f"{action} failed" if action else "Request failed"
        status = status_code if status_code is not None else "n/a"
        super().__init__(f"{prefix}: {status} - {body}")


class NotFoundError(TransportError):
    """Single-document read returned 404."""

    def __init__(self, path: str, body: str = "") -> None:
        self.path = path
        super().__init__(404, body, action=f"GET {path}")


class DecodeError(MacroLedgerError):
    """Malformed typed value or missing required field."""


class TokenValidationError(MacroLedgerError):
    """Bearer token is not a well-formed JWT carrying a subject."""
