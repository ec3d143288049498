"""Error taxonomy shared by every reviewchain component.

Only ConfigurationError is allowed to escape ReviewPipeline.start_review().
Everything else is caught at its local boundary and turned into an event or
a log line.
"""

from __future__ import annotations


class ReviewChainError(Exception):
    """Base class for all reviewchain errors."""


class ConfigurationError(ReviewChainError, ValueError):
    """Missing credential, unknown provider tag or otherwise unusable configuration."""


class ProviderError(ReviewChainError):
    """A single provider call failed. Step-scoped and never fatal to a run."""


class ProviderTransportError(ProviderError):
    """The backend answered with a non-success status, or could not be reached."""

    def __init__(self, status: int | None, body: str, provider: str = ""):
        self.status = status
        self.body = body
        self.provider = provider
        label = f"{provider} API error" if provider else "API error"
        if status is None:
            super().__init__(f"{label}: {body}")
        else:
            super().__init__(f"{label}: {status} {body}".rstrip())


class ProviderResponseError(ProviderError):
    """The backend answered successfully but the reply carried no usable content."""


class PersistenceError(ReviewChainError):
    """A key-value backend read or write failed."""


class NotificationDeliveryError(ReviewChainError):
    """An observer refused or failed to accept an event."""


class DiffFetchError(ReviewChainError):
    """The pull request diff could not be downloaded."""


class MessageValidationError(ReviewChainError, ValueError):
    """An inbound message had an unknown type or a malformed payload."""
