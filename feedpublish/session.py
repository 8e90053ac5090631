"""Publish session: one end-to-end upload of a package to a feed source.

The session is owned by the thread running the asyncio event loop. All of
its state changes happen there. The blocking upload runs on a worker thread
that only drives the channel's event stream and hands back the terminal
event (or the exception the channel let escape); the session then applies
the outcome and does its bookkeeping on the loop thread.

Lifecycle:
    IDLE -> PUBLISHING -> SUCCEEDED | FAILED -> PUBLISHING -> ...
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import BinaryIO

from feedpublish.channels import (
    ChannelRegistry,
    PushCompleted,
    PushFailed,
    UploadChannel,
    is_terminal,
    is_timeout,
)
from feedpublish.config.loader import SettingsManager
from feedpublish.credentials import CredentialStore
from feedpublish.exceptions import (
    ConfigurationError,
    CredentialStoreError,
    PublishError,
    SessionBusyError,
)
from feedpublish.package import PackageArtifact
from feedpublish.sources import RecentSourceManager, same_source

logger = logging.getLogger(__name__)

PUBLISHING_STATUS = "Publishing package..."
PUSHED_STATUS = "Package pushed successfully."
PUBLISHED_STATUS = "Package published successfully."
NO_RESULT_STATUS = "Upload channel finished without reporting a result."
TIMEOUT_STATUS = "The operation has timed out."
CANCELLED_STATUS = "Publish cancelled."

ChannelFactory = Callable[[str, bool], UploadChannel]
ProgressCallback = Callable[[int], None]
Terminal = PushCompleted | PushFailed


class SessionState(Enum):
    """State of a publish session."""

    IDLE = "idle"
    PUBLISHING = "publishing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def drive_channel(
    channel: UploadChannel,
    api_key: str,
    stream: BinaryIO,
    package: PackageArtifact,
    on_progress: ProgressCallback | None = None,
) -> Terminal | None:
    """Run a channel's push to its terminal event. Called on the worker thread.

    Progress is forwarded to on_progress; nothing after the terminal event
    is read.

    Returns:
        The terminal event, or None if the channel stopped without one
    """
    events = channel.push(api_key, stream, package)
    try:
        for event in events:
            if is_terminal(event):
                return event
            if on_progress is not None:
                on_progress(event.percent)
        return None
    finally:
        close = getattr(events, "close", None)
        if close is not None:
            close()


class PublishSession:
    """Publishes one package to a remembered feed source.

    Args:
        package: Artifact to publish; its stream is rewound before each attempt
        sources: Remembered sources; its active entry is the publish target
        credentials: Store of one API key per source
        settings: Holds the default protocol variant read here and written on close
        channel_factory: Builds an upload channel for (source, is_v1)
        use_v1_protocol: Initial protocol; None means the persisted default
    """

    def __init__(
        self,
        package: PackageArtifact,
        sources: RecentSourceManager,
        credentials: CredentialStore,
        settings: SettingsManager,
        channel_factory: ChannelFactory | None = None,
        use_v1_protocol: bool | None = None,
    ) -> None:
        self._package = package
        self._sources = sources
        self._credentials = credentials
        self._settings = settings
        self._channel_factory = channel_factory or self._create_channel

        self.api_key = ""
        self.status = ""
        self._state = SessionState.IDLE
        self._selected_source: str | None = None
        self._use_v1_protocol = True
        self._suppress_credential_lookup = False
        self._channel: UploadChannel | None = None
        self._attempt: asyncio.Task[None] | None = None
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="feedpublish-push"
        )
        self._closed = False

        self.selected_source = sources.active_source
        self.use_v1_protocol = (
            settings.use_v1_protocol if use_v1_protocol is None else use_v1_protocol
        )

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def can_publish(self) -> bool:
        return self._state is not SessionState.PUBLISHING

    @property
    def has_error(self) -> bool:
        return self._state is SessionState.FAILED

    @property
    def show_progress(self) -> bool:
        return self._state is SessionState.PUBLISHING

    @property
    def package(self) -> PackageArtifact:
        return self._package

    @property
    def publish_sources(self) -> tuple[str, ...]:
        return self._sources.sources

    @property
    def publish_url(self) -> str | None:
        return self._sources.active_source

    @property
    def selected_source(self) -> str | None:
        return self._selected_source

    @selected_source.setter
    def selected_source(self, value: str | None) -> None:
        """Select a source and make it the registry's active entry.

        Unless suppressed, the stored key for the source replaces api_key.
        A source with no stored key leaves api_key as it is.
        """
        if value == self._selected_source:
            return
        self._selected_source = value
        if value is None:
            return

        self._sources.active_source = value
        if self._suppress_credential_lookup:
            return
        stored_key = self._credentials.read(value)
        if stored_key:
            self.api_key = stored_key

    @property
    def use_v1_protocol(self) -> bool:
        return self._use_v1_protocol

    @use_v1_protocol.setter
    def use_v1_protocol(self, value: bool) -> None:
        if value is None:
            raise TypeError("use_v1_protocol must be True or False")
        self._use_v1_protocol = bool(value)

    # -- channel -------------------------------------------------------------

    def _create_channel(self, source: str, is_v1: bool) -> UploadChannel:
        http = self._settings.settings.http
        return ChannelRegistry.create(
            source,
            is_v1,
            user_agent=http.user_agent,
            timeout=http.timeout_seconds,
            chunk_size=http.chunk_size,
        )

    def resolve_channel(self) -> UploadChannel:
        """Return the cached channel, rebuilding it if source or protocol changed.

        Raises:
            ConfigurationError: If no source is selected
        """
        source = self.publish_url
        if not source:
            raise ConfigurationError(
                "No feed source selected",
                fix_hint="Pass --source or run 'feedpublish sources use URL'",
            )

        channel = self._channel
        if (
            channel is None
            or not same_source(channel.source, source)
            or channel.is_v1 != self._use_v1_protocol
        ):
            channel = self._channel_factory(source, self._use_v1_protocol)
            logger.debug("Created %s for %s", type(channel).__name__, source)
            self._channel = channel
        return channel

    # -- publishing ----------------------------------------------------------

    @property
    def is_publishing(self) -> bool:
        return self._attempt is not None

    def publish(self, on_progress: ProgressCallback | None = None) -> "asyncio.Task[None]":
        """Start a publish attempt. Must be called on the event loop thread.

        Upload failures never raise; they end up in state, status and
        has_error once the returned task is done.

        Args:
            on_progress: Called with upload percentages on the worker thread

        Returns:
            Task that completes after the outcome and bookkeeping are applied

        Raises:
            SessionBusyError: If an attempt is already in flight
            ConfigurationError: If no source is selected
            PublishError: If the session is closed or the package can't be read
        """
        if self._closed:
            raise PublishError("Publish session is closed")
        if self._attempt is not None:
            raise SessionBusyError(
                "A publish attempt is already in flight",
                fix_hint="Wait for the current attempt to finish",
            )

        loop = asyncio.get_running_loop()
        channel = self.resolve_channel()
        source = channel.source
        api_key = self.api_key

        try:
            stream = self._package.rewind()
        except OSError as e:
            raise PublishError(
                f"Cannot read package {self._package.id} {self._package.version}",
                details=str(e),
            ) from e

        self._state = SessionState.PUBLISHING
        self.status = PUBLISHING_STATUS
        logger.info(
            "Publishing %s %s to %s (%s)",
            self._package.id,
            self._package.version,
            source,
            "V1" if channel.is_v1 else "V2",
        )

        self._attempt = loop.create_task(
            self._run_attempt(loop, channel, source, api_key, stream, on_progress)
        )
        return self._attempt

    async def run(self, on_progress: ProgressCallback | None = None) -> SessionState:
        """Publish and wait for the outcome."""
        await self.publish(on_progress)
        return self._state

    async def wait(self) -> None:
        """Wait for the in-flight attempt, if any."""
        attempt = self._attempt
        if attempt is not None:
            await attempt

    async def _run_attempt(
        self,
        loop: asyncio.AbstractEventLoop,
        channel: UploadChannel,
        source: str,
        api_key: str,
        stream: BinaryIO,
        on_progress: ProgressCallback | None,
    ) -> None:
        try:
            try:
                terminal = await loop.run_in_executor(
                    self._executor,
                    drive_channel,
                    channel,
                    api_key,
                    stream,
                    self._package,
                    on_progress,
                )
            except asyncio.CancelledError:
                logger.warning("Publish to %s was cancelled", source)
                self._apply_outcome(PushFailed(CANCELLED_STATUS), source, api_key, channel.is_v1)
                raise
            except Exception as e:
                terminal = self._unreported_fault(e, source)

            self._apply_outcome(terminal, source, api_key, channel.is_v1)
        finally:
            try:
                self._remember_source(source)
            finally:
                self._attempt = None

    def _unreported_fault(self, error: Exception, source: str) -> PushFailed:
        """Turn an exception that escaped the channel into a failure."""
        if is_timeout(error):
            logger.warning("Upload to %s timed out: %s", source, error)
            return PushFailed(str(error) or TIMEOUT_STATUS)
        logger.error("Upload to %s raised %s", source, type(error).__name__, exc_info=error)
        return PushFailed(str(error) or type(error).__name__)

    def _apply_outcome(
        self,
        terminal: Terminal | None,
        source: str,
        api_key: str,
        is_v1: bool,
    ) -> None:
        if terminal is None:
            terminal = PushFailed(NO_RESULT_STATUS)

        if isinstance(terminal, PushFailed):
            self.status = terminal.message
            self._state = SessionState.FAILED
            logger.info("Publish to %s failed: %s", source, terminal.message)
            return

        self.status = PUSHED_STATUS if is_v1 else PUBLISHED_STATUS
        self._state = SessionState.SUCCEEDED
        logger.info("Published %s %s to %s", self._package.id, self._package.version, source)
        try:
            self._credentials.write(source, api_key)
        except CredentialStoreError as e:
            logger.warning("Published, but the API key for %s was not saved: %s", source, e)
        except Exception:
            logger.warning(
                "Published, but the credential store failed for %s", source, exc_info=True
            )

    def _remember_source(self, source: str) -> None:
        """Promote the source and reselect it without reloading its key."""
        self._sources.add(source)
        self._suppress_credential_lookup = True
        try:
            self.selected_source = source
        finally:
            self._suppress_credential_lookup = False

    # -- teardown ------------------------------------------------------------

    def close(self) -> None:
        """Persist the protocol as the default for future sessions. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._settings.use_v1_protocol = self._use_v1_protocol
        self._executor.shutdown(wait=False)

    def __enter__(self) -> "PublishSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
