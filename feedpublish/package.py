"""Package artifact handed to a publish session."""

import re
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from feedpublish.exceptions import ConfigurationError

# Newtonsoft.Json.13.0.1 -> ("Newtonsoft.Json", "13.0.1")
DOTTED_NAME_PATTERN = re.compile(
    r"^(?P<id>.+?)\.(?P<version>\d+(?:\.\d+)*(?:-[0-9A-Za-z.-]+)?)$"
)
# mypkg-1.2.3 or mypkg-1.2.3-py3-none-any -> ("mypkg", "1.2.3")
DASHED_NAME_PATTERN = re.compile(r"^(?P<id>.+?)-(?P<version>\d[^-]*)")
ARCHIVE_SUFFIXES = (".tar.gz", ".tar.bz2", ".tar.xz")


def parse_package_filename(filename: str) -> tuple[str, str] | None:
    """Infer (id, version) from an artifact file name.

    Args:
        filename: File name with or without directory and extension

    Returns:
        Tuple of (id, version), or None if the name has no recognizable version
    """
    name = Path(filename).name
    stem = Path(name).stem
    for suffix in ARCHIVE_SUFFIXES:
        if name.lower().endswith(suffix):
            stem = name[: -len(suffix)]
            break
    # Dashed first: NuGet prerelease tags ("1.0.0-beta") never start with a digit
    for pattern in (DASHED_NAME_PATTERN, DOTTED_NAME_PATTERN):
        match = pattern.match(stem)
        if match:
            return match.group("id"), match.group("version")
    return None


class PackageArtifact:
    """A built package: immutable identity plus a lazily opened byte stream.

    The stream is shared by every publish attempt and rewound before each one.
    """

    def __init__(
        self,
        package_id: str,
        version: str,
        opener: Callable[[], BinaryIO],
        path: Path | None = None,
    ) -> None:
        if not package_id:
            raise ValueError("package_id must not be empty")
        if not version:
            raise ValueError("version must not be empty")
        self._id = package_id
        self._version = version
        self._opener = opener
        self._stream: BinaryIO | None = None
        self.path = path

    @classmethod
    def from_path(
        cls,
        path: Path,
        package_id: str | None = None,
        version: str | None = None,
    ) -> "PackageArtifact":
        """Create an artifact for a file on disk.

        Identity not given explicitly is inferred from the file name.

        Raises:
            ConfigurationError: If the file is missing or its identity is unknown
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Package file not found: {path}")

        if package_id is None or version is None:
            parsed = parse_package_filename(path.name)
            if parsed is None:
                raise ConfigurationError(
                    f"Cannot infer package id and version from {path.name}",
                    fix_hint="Pass --id and --package-version explicitly",
                )
            package_id = package_id or parsed[0]
            version = version or parsed[1]

        return cls(package_id, version, lambda: open(path, "rb"), path=path)

    @property
    def id(self) -> str:
        return self._id

    @property
    def version(self) -> str:
        return self._version

    @property
    def stream(self) -> BinaryIO:
        if self._stream is None:
            self._stream = self._opener()
        return self._stream

    def rewind(self) -> BinaryIO:
        """Seek the shared stream back to the start and return it."""
        stream = self.stream
        stream.seek(0)
        return stream

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __repr__(self) -> str:
        return f"PackageArtifact(id={self._id!r}, version={self._version!r})"
