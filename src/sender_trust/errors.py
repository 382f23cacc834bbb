"""Exception types for Gmail Sender Trust."""


class SenderTrustError(Exception):
    """Base class for all engine errors."""


class InvalidSenderError(SenderTrustError, ValueError):
    """The sender address is malformed."""


class ModelUnavailableError(SenderTrustError):
    """No usable local language model (missing capability or session creation failed)."""


class ModelSessionError(SenderTrustError):
    """A language-model session failed or was already destroyed."""
