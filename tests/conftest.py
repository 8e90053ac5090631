"""Pytest fixtures for feedpublish tests.

Provides common fixtures for:
- Temporary settings and credential files
- Package artifacts on disk
- Scripted upload channels and recording collaborators
"""

import os
import threading
from collections.abc import Generator, Iterable, Iterator
from pathlib import Path
from typing import BinaryIO, ClassVar

import pytest

from feedpublish.channels import PushCompleted, PushEvent, PushProgress, UploadChannel
from feedpublish.config import FeedPublishSettings, SettingsManager
from feedpublish.credentials import MemoryCredentialStore
from feedpublish.package import PackageArtifact
from feedpublish.session import PublishSession
from feedpublish.sources import RecentSourceManager

FEED_URL = "https://example/api/v2"
OTHER_FEED_URL = "https://other.example/nuget"


class ScriptedChannel(UploadChannel):
    """Upload channel that replays a fixed list of events.

    Optionally blocks on a gate before the first event and raises an
    exception after the last one.
    """

    name: ClassVar[str] = "scripted"
    display_name: ClassVar[str] = "Scripted test channel"
    is_v1: ClassVar[bool] = True

    def __init__(
        self,
        source: str,
        is_v1: bool,
        events: Iterable[PushEvent] = (),
        error: BaseException | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        super().__init__(source)
        self.is_v1 = is_v1  # type: ignore[misc]
        self.events = list(events)
        self.error = error
        self.gate = gate
        self.calls: list[tuple[str, int, str]] = []

    def push(
        self,
        api_key: str,
        stream: BinaryIO,
        package: PackageArtifact,
    ) -> Iterator[PushEvent]:
        self.calls.append((api_key, stream.tell(), package.id))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        yield from self.events
        if self.error is not None:
            raise self.error


class ScriptedChannelFactory:
    """Channel factory handing out ScriptedChannels and remembering them."""

    def __init__(self) -> None:
        self.events: list[PushEvent] = [PushProgress(50), PushCompleted()]
        self.error: BaseException | None = None
        self.gate: threading.Event | None = None
        self.created: list[ScriptedChannel] = []

    def __call__(self, source: str, is_v1: bool) -> ScriptedChannel:
        channel = ScriptedChannel(source, is_v1, self.events, self.error, self.gate)
        self.created.append(channel)
        return channel


class RecordingCredentialStore(MemoryCredentialStore):
    """In-memory store that records every read and write."""

    def __init__(self, keys: dict[str, str] | None = None) -> None:
        super().__init__(keys)
        self.reads: list[str] = []
        self.writes: list[tuple[str, str]] = []

    def read(self, source: str) -> str:
        self.reads.append(source)
        return super().read(source)

    def write(self, source: str, api_key: str) -> None:
        self.writes.append((source, api_key))
        super().write(source, api_key)


class RecordingSettingsManager(SettingsManager):
    """Settings manager that counts saves instead of writing files."""

    def __init__(self, settings: FeedPublishSettings | None = None) -> None:
        super().__init__(settings)
        self.saves = 0

    def save(self) -> None:
        self.saves += 1


@pytest.fixture
def temp_dir(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary directory for tests.

    Yields:
        Path to temporary directory
    """
    yield tmp_path


@pytest.fixture
def package_file(temp_dir: Path) -> Path:
    """Write a small package file with a NuGet-style name.

    Returns:
        Path to the package file
    """
    path = temp_dir / "Sample.Package.1.2.3.nupkg"
    path.write_bytes(b"PK\x03\x04" + b"\x00" * 2048)
    return path


@pytest.fixture
def artifact(package_file: Path) -> Generator[PackageArtifact, None, None]:
    """Package artifact backed by package_file."""
    package = PackageArtifact.from_path(package_file)
    yield package
    package.close()


@pytest.fixture
def channel_factory() -> ScriptedChannelFactory:
    return ScriptedChannelFactory()


@pytest.fixture
def credentials() -> RecordingCredentialStore:
    return RecordingCredentialStore()


@pytest.fixture
def sources() -> RecentSourceManager:
    return RecentSourceManager([FEED_URL, OTHER_FEED_URL], active_source=FEED_URL)


@pytest.fixture
def settings_manager() -> RecordingSettingsManager:
    return RecordingSettingsManager()


@pytest.fixture
def session(
    artifact: PackageArtifact,
    sources: RecentSourceManager,
    credentials: RecordingCredentialStore,
    settings_manager: RecordingSettingsManager,
    channel_factory: ScriptedChannelFactory,
) -> Generator[PublishSession, None, None]:
    """Publish session wired to in-memory collaborators and scripted channels."""
    publish_session = PublishSession(
        artifact,
        sources,
        credentials,
        settings_manager,
        channel_factory=channel_factory,
    )
    yield publish_session
    publish_session.close()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Temporarily clean environment variables.

    Removes FEEDPUBLISH_* environment variables during test.
    """
    old_env = {}
    for key in list(os.environ.keys()):
        if key.startswith("FEEDPUBLISH_"):
            old_env[key] = os.environ.pop(key)

    yield

    os.environ.update(old_env)
