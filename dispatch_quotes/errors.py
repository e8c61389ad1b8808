class QuoteError(Exception):
    """Base class for errors raised by the quote service layer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuoteError):
    """Input was rejected before anything was written."""


class NotFoundError(QuoteError):
    """The referenced quote or user does not exist."""


class InvalidStateTransition(QuoteError):
    """The quote's lifecycle state does not allow the requested change."""
