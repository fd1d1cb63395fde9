class InvalidEntryError(ValueError):
    """Rejected user input (list entry or email payload). The message is safe to show."""


class AdapterError(Exception):
    """Raised inside an oracle adapter; always converted to a disabled result."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code
