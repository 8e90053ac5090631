"""Custom exception hierarchy for feedpublish.

Exit codes follow Unix conventions:
- 1: General error
- 2: Configuration error
- 3: Credential store error
- 5: Publish error
- 10: Timeout error
- 11: Session busy
"""


class FeedPublishError(Exception):
    """Base exception for all feedpublish errors.

    Each subclass defines an exit_code for CLI error reporting.
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        details: str | None = None,
        fix_hint: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Brief error message
            details: Detailed explanation of what went wrong
            fix_hint: Suggested command or action to fix the issue
        """
        super().__init__(message)
        self.message = message
        self.details = details
        self.fix_hint = fix_hint

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"\nDetails: {self.details}")
        if self.fix_hint:
            parts.append(f"\nFix: {self.fix_hint}")
        return "".join(parts)


class ConfigurationError(FeedPublishError):
    """Configuration errors.

    Raised when:
    - Settings file has invalid syntax (YAML/TOML)
    - Settings values fail validation
    - No feed source is selected when one is required
    """

    exit_code = 2


class CredentialStoreError(FeedPublishError):
    """Credential store failures.

    Raised when:
    - The credentials file cannot be parsed
    - The credentials file cannot be written
    """

    exit_code = 3


class PublishError(FeedPublishError):
    """Publishing failures reported by an upload channel."""

    exit_code = 5


class PublishTimeoutError(FeedPublishError):
    """The transport timed out while uploading.

    Named PublishTimeoutError to avoid shadowing Python's built-in TimeoutError.
    """

    exit_code = 10


class SessionBusyError(FeedPublishError):
    """A publish attempt is already in flight for this session."""

    exit_code = 11
