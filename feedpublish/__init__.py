"""Publish package artifacts to remembered feed endpoints."""

__version__ = "0.1.0"

from feedpublish.exceptions import (
    ConfigurationError,
    CredentialStoreError,
    FeedPublishError,
    PublishError,
    PublishTimeoutError,
    SessionBusyError,
)

__all__ = [
    "__version__",
    "FeedPublishError",
    "ConfigurationError",
    "CredentialStoreError",
    "PublishError",
    "PublishTimeoutError",
    "SessionBusyError",
]
