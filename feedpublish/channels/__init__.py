"""Upload channels for feed publishing."""

# Import channels to trigger registration
from feedpublish.channels import http  # noqa: F401
from feedpublish.channels.base import (
    ChannelRegistry,
    PushCompleted,
    PushEvent,
    PushFailed,
    PushProgress,
    UploadChannel,
    is_terminal,
    is_timeout,
)

__all__ = [
    "ChannelRegistry",
    "PushCompleted",
    "PushEvent",
    "PushFailed",
    "PushProgress",
    "UploadChannel",
    "is_terminal",
    "is_timeout",
]
