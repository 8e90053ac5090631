"""Abstract base class for upload channels.

An upload channel performs the network push of one package to one feed
source using one protocol variant:
- V1: the older two-step "push" gallery API
- V2: the single-request "publish" API

Channels report their outcome as a stream of events rather than by raising:
zero or more PushProgress, then exactly one PushCompleted or PushFailed.
Transport timeouts are the one fault a channel lets escape unreported.
"""

import socket
import urllib.error
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO, ClassVar, Union

from feedpublish import __version__
from feedpublish.exceptions import ConfigurationError, PublishTimeoutError

if TYPE_CHECKING:
    from feedpublish.package import PackageArtifact

DEFAULT_USER_AGENT = f"feedpublish/{__version__}"
DEFAULT_TIMEOUT_SECONDS = 100
DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class PushProgress:
    """Upload progress, 0 to 100."""

    percent: int


@dataclass(frozen=True)
class PushCompleted:
    """The feed accepted the package."""


@dataclass(frozen=True)
class PushFailed:
    """The channel gave up; message is shown to the user as-is."""

    message: str


PushEvent = Union[PushProgress, PushCompleted, PushFailed]


def is_terminal(event: PushEvent) -> bool:
    return isinstance(event, (PushCompleted, PushFailed))


def is_timeout(error: BaseException) -> bool:
    """Check whether an exception is a transport timeout.

    Covers socket timeouts, PublishTimeoutError, and urllib's URLError
    wrapping a timeout.
    """
    if isinstance(error, (TimeoutError, socket.timeout, PublishTimeoutError)):
        return True
    if isinstance(error, urllib.error.URLError) and not isinstance(
        error, urllib.error.HTTPError
    ):
        reason = error.reason
        if isinstance(reason, (TimeoutError, socket.timeout)):
            return True
        return "timed out" in str(reason).lower()
    return False


class UploadChannel(ABC):
    """Abstract base class for all upload channels.

    Construction must be cheap and must not touch the network; sessions
    rebuild channels whenever the source or protocol changes.
    """

    # Class-level attributes to be defined by subclasses
    name: ClassVar[str]
    display_name: ClassVar[str]
    is_v1: ClassVar[bool]

    def __init__(
        self,
        source: str,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if not source or not source.strip():
            raise ConfigurationError(
                "No feed source selected",
                fix_hint="Pass --source or run 'feedpublish sources use URL'",
            )
        self.source = source.strip()
        self.user_agent = user_agent
        self.timeout = timeout
        self.chunk_size = chunk_size

    @abstractmethod
    def push(
        self,
        api_key: str,
        stream: BinaryIO,
        package: "PackageArtifact",
    ) -> Iterator[PushEvent]:
        """Upload the package read from stream.

        Args:
            api_key: Key authorizing the upload
            stream: Package bytes, positioned at offset 0
            package: Identity of the package being uploaded

        Yields:
            PushProgress events, then exactly one PushCompleted or PushFailed
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.source!r})"


class ChannelRegistry:
    """Registry for upload channel implementations.

    Maps channel names to classes and picks the implementation for a
    protocol variant.
    """

    _channels: dict[str, type[UploadChannel]] = {}

    @classmethod
    def register(cls, channel_class: type[UploadChannel]) -> type[UploadChannel]:
        """Register a channel class.

        Can be used as a decorator:
            @ChannelRegistry.register
            class V2HttpChannel(UploadChannel):
                ...

        Raises:
            TypeError: If channel_class is missing required attributes
            ValueError: If a channel with the same name is already registered
        """
        required_attrs = ["name", "display_name", "is_v1"]
        missing = [attr for attr in required_attrs if not hasattr(channel_class, attr)]
        if missing:
            raise TypeError(
                f"Channel class {channel_class.__name__} missing required "
                f"class attributes: {', '.join(missing)}."
            )

        name = channel_class.name
        if not isinstance(name, str) or not name:
            raise TypeError(
                f"Channel {channel_class.__name__}.name must be a non-empty string, "
                f"got {type(name).__name__}: {name!r}"
            )

        if name in cls._channels:
            existing = cls._channels[name]
            if existing is not channel_class:
                raise ValueError(
                    f"Channel name '{name}' already registered by {existing.__name__}. "
                    f"Cannot register {channel_class.__name__}."
                )
            return channel_class

        cls._channels[name] = channel_class
        return channel_class

    @classmethod
    def get(cls, name: str) -> type[UploadChannel] | None:
        return cls._channels.get(name)

    @classmethod
    def for_protocol(cls, is_v1: bool) -> type[UploadChannel]:
        """Return the first registered channel class for a protocol variant.

        Raises:
            ConfigurationError: If no channel implements the variant
        """
        for channel_class in cls._channels.values():
            if channel_class.is_v1 == is_v1:
                return channel_class
        raise ConfigurationError(
            f"No upload channel registered for protocol {'V1' if is_v1 else 'V2'}"
        )

    @classmethod
    def create(cls, source: str, is_v1: bool, **kwargs: object) -> UploadChannel:
        """Build a channel for source using the given protocol variant."""
        return cls.for_protocol(is_v1)(source, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def list_registered(cls) -> list[str]:
        return list(cls._channels.keys())
