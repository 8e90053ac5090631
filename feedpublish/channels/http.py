"""HTTP upload channels.

Both variants stream the package over a single connection so progress can be
reported as bytes leave the process:
- V2: PUT <source>/api/v2/package, multipart body, key in X-NuGet-ApiKey
- V1: POST <source>/PackageFiles/<key>/nupkg, then
      POST <source>/PublishedPackages/Publish to make the upload visible
"""

import http.client
import json
import logging
import uuid
from collections.abc import Generator, Iterator
from typing import TYPE_CHECKING, BinaryIO, ClassVar
from urllib.parse import quote, urlsplit

from feedpublish.channels.base import (
    ChannelRegistry,
    PushCompleted,
    PushEvent,
    PushFailed,
    PushProgress,
    UploadChannel,
    is_timeout,
)

if TYPE_CHECKING:
    from feedpublish.package import PackageArtifact

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-NuGet-ApiKey"

Body = list[bytes | BinaryIO]


def stream_length(stream: BinaryIO) -> int:
    """Size of a seekable stream; leaves it positioned at offset 0."""
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


def server_error_message(status: int, reason: str, body: bytes) -> str:
    message = f"The remote server returned an error: ({status}) {reason}."
    detail = body.decode("utf-8", errors="replace").strip()
    if detail and len(detail) <= 200 and not detail.startswith("<"):
        message = f"{message} {detail}"
    return message


class HttpUploadChannel(UploadChannel):
    """Shared request plumbing for the HTTP channels."""

    def _open_connection(self, url: str) -> http.client.HTTPConnection:
        parts = urlsplit(url)
        if parts.scheme == "https":
            return http.client.HTTPSConnection(parts.netloc, timeout=self.timeout)
        if parts.scheme == "http":
            return http.client.HTTPConnection(parts.netloc, timeout=self.timeout)
        raise ValueError(f"Unsupported URL scheme: {parts.scheme or '(none)'}")

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Body,
    ) -> Generator[PushProgress, None, tuple[int, str, bytes]]:
        """Send one request, yielding progress as the body is written.

        Returns:
            Tuple of (status, reason, response body)
        """
        parts = urlsplit(url)
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"

        sizes = [len(p) if isinstance(p, bytes) else stream_length(p) for p in body]
        total = sum(sizes)

        conn = self._open_connection(url)
        try:
            conn.putrequest(method, path)
            conn.putheader("User-Agent", self.user_agent)
            conn.putheader("Content-Length", str(total))
            for name, value in headers.items():
                conn.putheader(name, value)
            conn.endheaders()

            sent = 0
            last_percent = -1
            for part in body:
                for chunk in self._chunks(part):
                    conn.send(chunk)
                    sent += len(chunk)
                    percent = sent * 100 // total if total else 100
                    if percent != last_percent:
                        last_percent = percent
                        yield PushProgress(percent)

            response = conn.getresponse()
            return response.status, response.reason, response.read()
        finally:
            conn.close()

    def _chunks(self, part: bytes | BinaryIO) -> Iterator[bytes]:
        if isinstance(part, bytes):
            for start in range(0, len(part), self.chunk_size):
                yield part[start : start + self.chunk_size]
            return
        while True:
            chunk = part.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    def _request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Body,
    ) -> Generator[PushEvent, None, PushEvent | None]:
        """Run _send and map transport problems to PushFailed.

        Timeouts are re-raised so the caller sees them unreported.

        Returns:
            PushFailed on error, None when the server answered 2xx
        """
        try:
            status, reason, payload = yield from self._send(method, url, headers, body)
        except ValueError as e:
            return PushFailed(str(e))
        except OSError as e:
            if is_timeout(e):
                raise
            logger.debug("%s to %s failed: %s", method, self.source, e)
            return PushFailed(f"Unable to connect to the remote server: {e}")
        except http.client.HTTPException as e:
            return PushFailed(f"Invalid response from the remote server: {e!r}")

        logger.debug("%s to %s -> %s %s", method, self.source, status, reason)
        if not 200 <= status < 300:
            return PushFailed(server_error_message(status, reason, payload))
        return None


@ChannelRegistry.register
class V2HttpChannel(HttpUploadChannel):
    """Single-request publish to a V2 feed."""

    name: ClassVar[str] = "v2"
    display_name: ClassVar[str] = "V2 feed (publish)"
    is_v1: ClassVar[bool] = False

    @property
    def upload_url(self) -> str:
        base = self.source.rstrip("/")
        if base.lower().endswith("/package"):
            return base
        if base.lower().endswith("/api/v2"):
            return f"{base}/package"
        return f"{base}/api/v2/package"

    def push(
        self,
        api_key: str,
        stream: BinaryIO,
        package: "PackageArtifact",
    ) -> Iterator[PushEvent]:
        boundary = uuid.uuid4().hex
        filename = f"{package.id}.{package.version}.nupkg"
        preamble = (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="package"; filename="{filename}"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode()
        epilogue = f"\r\n--{boundary}--\r\n".encode()
        headers = {
            API_KEY_HEADER: api_key,
            "Content-Type": f"multipart/form-data; boundary={boundary}",
        }

        failure = yield from self._request(
            "PUT", self.upload_url, headers, [preamble, stream, epilogue]
        )
        yield failure if failure is not None else PushCompleted()


@ChannelRegistry.register
class V1HttpChannel(HttpUploadChannel):
    """Two-step push to a V1 gallery: upload the file, then publish it."""

    name: ClassVar[str] = "v1"
    display_name: ClassVar[str] = "V1 gallery (push)"
    is_v1: ClassVar[bool] = True

    def push(
        self,
        api_key: str,
        stream: BinaryIO,
        package: "PackageArtifact",
    ) -> Iterator[PushEvent]:
        base = self.source.rstrip("/")

        upload_url = f"{base}/PackageFiles/{quote(api_key, safe='')}/nupkg"
        failure = yield from self._request(
            "POST",
            upload_url,
            {"Content-Type": "application/octet-stream"},
            [stream],
        )
        if failure is not None:
            yield failure
            return

        publish_body = json.dumps(
            {"key": api_key, "id": package.id, "version": package.version}
        ).encode()
        failure = yield from self._request(
            "POST",
            f"{base}/PublishedPackages/Publish",
            {"Content-Type": "application/json"},
            [publish_body],
        )
        yield failure if failure is not None else PushCompleted()
