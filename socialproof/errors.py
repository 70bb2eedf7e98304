from typing import Any, Optional


class SocialProofError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(SocialProofError):
    """A required credential or setting is missing."""


class SignatureError(SocialProofError):
    """A webhook body does not match its signature."""


class ProviderError(SocialProofError):
    """The payment provider rejected a call or could not be reached."""


class RecordStoreError(SocialProofError):
    """The record-store backend failed a write.

    ``response`` carries whatever the backend sent back (parsed JSON or raw
    text) so diagnostic endpoints can show it to an operator.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None,
                 response: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class InvalidPayloadError(SocialProofError):
    """A webhook body could not be parsed as an event."""
