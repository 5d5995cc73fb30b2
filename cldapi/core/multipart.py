"""multipart/form-data encoding for signed uploads.

Wire layout (CRLF line endings):

    --<boundary>
    Content-Disposition: form-data; name="<key>"

    <value>
    ...
    --<boundary>
    Content-Disposition: form-data; name="file"; filename="<name>"
    Content-Type: application/octet-stream

    <bytes>
    --<boundary>--

Security notes:
- The boundary is a fixed token expected by the remote API; it is not
  random. Binary payloads are not scanned for it.
- File bytes are streamed in fixed-size reads and never held in memory
  as a whole unless `encode()` is used.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator, List, Mapping, Optional, Tuple

from cldapi.core.canonical import param_to_str
from cldapi.core.exceptions import MultipartReadError

HTTP_BOUNDARY = "notrandomsequencetouseasboundary"
CHUNK_SIZE = 4096
CRLF = "\r\n"

FILE_FIELD = "file"


@dataclass(frozen=True)
class FileDescription:
    """A file to upload: either a local stream or a remote locator.

    - Local: `stream` is set and `name` is the filename sent to the server.
    - Remote: `stream` is None and `name` is a URL/path the server fetches.

    The caller owns the stream unless it was opened by `from_path`.
    """

    name: str
    stream: Optional[BinaryIO] = None
    owns_stream: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("file name (or remote locator) must be provided")

    @property
    def is_remote(self) -> bool:
        return self.stream is None

    @classmethod
    def remote(cls, locator: str) -> "FileDescription":
        return cls(name=locator)

    @classmethod
    def from_stream(cls, stream: BinaryIO, name: str) -> "FileDescription":
        return cls(name=name, stream=stream)

    @classmethod
    def from_path(cls, path: str) -> "FileDescription":
        """Open a local file for upload. Close it with `close()` or `with`."""

        return cls(name=os.path.basename(path), stream=open(path, "rb"), owns_stream=True)

    def close(self) -> None:
        if self.owns_stream and self.stream is not None:
            self.stream.close()

    def __enter__(self) -> "FileDescription":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _quote(name: str) -> str:
    """Escape a header parameter value (field name or filename)."""

    return name.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


class MultipartEncoder:
    """Serialize a parameter set and an optional file as multipart/form-data.

    Empty parameters are omitted. A `file` parameter is rejected since the
    upload itself owns that field name. The file part, when present, is always
    written last; an empty stream still yields a (zero-length) file part.
    """

    def __init__(
        self,
        params: Mapping[str, Any],
        file: Optional[FileDescription] = None,
        *,
        boundary: str = HTTP_BOUNDARY,
        chunk_size: int = CHUNK_SIZE,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if FILE_FIELD in params:
            raise ValueError(f"'{FILE_FIELD}' is reserved; pass the upload as a FileDescription")
        self.boundary = boundary
        self.file = file
        self._chunk_size = int(chunk_size)
        self._fields: List[Tuple[str, str]] = []
        for key, value in params.items():
            text = param_to_str(value)
            if text:
                self._fields.append((key, text))

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def _field_part(self, name: str, value: str) -> bytes:
        return (
            f"--{self.boundary}{CRLF}"
            f'Content-Disposition: form-data; name="{_quote(name)}"{CRLF}{CRLF}'
            f"{value}{CRLF}"
        ).encode("utf-8")

    def _file_head(self, filename: str) -> bytes:
        return (
            f"--{self.boundary}{CRLF}"
            f'Content-Disposition: form-data; name="{FILE_FIELD}"; '
            f'filename="{_quote(filename)}"{CRLF}'
            f"Content-Type: application/octet-stream{CRLF}{CRLF}"
        ).encode("utf-8")

    def _closing(self) -> bytes:
        return f"--{self.boundary}--".encode("utf-8")

    def _read_stream(self, stream: BinaryIO) -> Iterator[bytes]:
        while True:
            try:
                chunk = stream.read(self._chunk_size)
            except OSError as e:
                raise MultipartReadError(f"failed reading upload stream: {e}") from e
            if not chunk:
                return
            yield bytes(chunk)

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the body in wire order. Consumes the file stream."""

        for name, value in self._fields:
            yield self._field_part(name, value)

        if self.file is not None:
            if self.file.is_remote:
                yield self._field_part(FILE_FIELD, self.file.name)
            else:
                yield self._file_head(self.file.name)
                yield from self._read_stream(self.file.stream)
                yield CRLF.encode("utf-8")

        yield self._closing()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_chunks()

    def _stream_remaining(self) -> Optional[int]:
        stream = self.file.stream
        try:
            if not stream.seekable():
                return None
            pos = stream.tell()
            end = stream.seek(0, os.SEEK_END)
            stream.seek(pos)
        except (AttributeError, OSError, ValueError):
            return None
        return max(0, end - pos)

    def content_length(self) -> Optional[int]:
        """Exact body length, or None when the stream size cannot be known."""

        total = sum(len(self._field_part(n, v)) for n, v in self._fields)
        total += len(self._closing())
        if self.file is None:
            return total
        if self.file.is_remote:
            return total + len(self._field_part(FILE_FIELD, self.file.name))

        remaining = self._stream_remaining()
        if remaining is None:
            return None
        return total + len(self._file_head(self.file.name)) + remaining + len(CRLF)

    def encode(self) -> bytes:
        """Return the whole body as bytes."""

        return b"".join(self.iter_chunks())
