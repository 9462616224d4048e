"""Binary stream format used to hand a request to the executor process and read its reply.

Values are laid out big-endian: strings as a 32-bit byte count followed by
UTF-16BE text, byte strings as a 32-bit count followed by the bytes, and a
count of 0xFFFFFFFF marking a null value.
"""

from __future__ import annotations

import base64
import enum
import struct
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .transfer import Result

_NULL_LENGTH = 0xFFFFFFFF

NO_PROXY = b"NO_PROXY"
NO_COOKIE = b"NO_COOKIE"
EMPTY_COOKIE = b"EMPTY_COOKIE"
NO_OUTFILE = b"NO_OUTFILE"


class StreamType(enum.IntEnum):
    """Kind of request body handed to the executor."""

    NONE = 0
    FILE = 1
    BYTE_ARRAY = 2
    MULTI_BUFFER = 3


class DataStreamError(ValueError):
    """The data does not fit the stream format."""


class DataStreamWriter:
    """Builds a stream of typed values."""

    def __init__(self) -> None:
        self._data = bytearray()

    def _pack(self, fmt: str, value: int) -> None:
        try:
            self._data += struct.pack(fmt, value)
        except struct.error as exc:
            raise DataStreamError(f"value {value!r} does not fit: {exc}") from exc

    def write_string(self, text: str | None) -> None:
        """Write text as UTF-16BE with its byte count; None is written as null."""
        if text is None:
            self._pack(">I", _NULL_LENGTH)
            return
        encoded = text.encode("utf-16-be", "surrogatepass")
        self._pack(">I", len(encoded))
        self._data += encoded

    def write_bytes(self, data: bytes | bytearray | None) -> None:
        """Write a byte string with its length; None is written as null."""
        if data is None:
            self._pack(">I", _NULL_LENGTH)
            return
        self._pack(">I", len(data))
        self._data += bytes(data)

    def write_int64(self, value: int) -> None:
        self._pack(">q", value)

    def write_int32(self, value: int) -> None:
        self._pack(">i", value)

    def write_uint32(self, value: int) -> None:
        self._pack(">I", value)

    def write_uint8(self, value: int) -> None:
        self._pack(">B", value)

    def write_string_hash(self, mapping: Mapping[str, str]) -> None:
        """Write a string-to-string mapping: a count, then key and value pairs."""
        self._pack(">I", len(mapping))
        for key, value in mapping.items():
            self.write_string(key)
            self.write_string(value)

    def write_header_list(self, pairs: Iterable[tuple[bytes, bytes]]) -> None:
        """Write a list of byte-string pairs: a count, then each pair."""
        items = list(pairs)
        self._pack(">I", len(items))
        for name, value in items:
            self.write_bytes(name)
            self.write_bytes(value)

    def getvalue(self) -> bytes:
        return bytes(self._data)


class DataStreamReader:
    """Reads typed values back from a stream."""

    def __init__(self, data: bytes | bytearray) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def _take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise DataStreamError(
                f"read past end: need {count} bytes at offset {self._pos}, "
                f"have {len(self._data) - self._pos}"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]

    def read_uint32(self) -> int:
        return self._unpack(">I")

    def read_int32(self) -> int:
        return self._unpack(">i")

    def read_int64(self) -> int:
        return self._unpack(">q")

    def read_uint8(self) -> int:
        return self._unpack(">B")

    def read_string(self) -> str:
        """Read a string; a null string reads as empty."""
        length = self.read_uint32()
        if length == _NULL_LENGTH:
            return ""
        if length % 2:
            raise DataStreamError(f"odd string byte count {length}")
        return self._take(length).decode("utf-16-be", "surrogatepass")

    def read_bytes(self) -> bytes:
        """Read a byte string; a null byte string reads as empty."""
        length = self.read_uint32()
        if length == _NULL_LENGTH:
            return b""
        return self._take(length)

    def read_string_hash(self) -> dict[str, str]:
        count = self.read_uint32()
        result: dict[str, str] = {}
        for _ in range(count):
            key = self.read_string()
            result[key] = self.read_string()
        return result

    def read_header_list(self) -> list[tuple[bytes, bytes]]:
        count = self.read_uint32()
        return [(self.read_bytes(), self.read_bytes()) for _ in range(count)]


@dataclass
class ExecutorRequest:
    """Everything the executor process needs to perform one request."""

    method: str | None = None
    url: str | None = None
    query_items: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    payload_chunk_size: int = 0
    payload_file_position: int = 0
    proxy: str | None = None
    # None when no cookie jar is attached; the jar's content otherwise.
    cookie: bytes | None = None
    out_file: str | None = None
    stream_type: StreamType = StreamType.NONE
    payload: bytes = b""
    payload_file: str = ""
    multi_buffer: list[tuple[StreamType, bytes]] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        """Serialize without the base64 layer."""
        writer = DataStreamWriter()
        writer.write_string(self.method)
        writer.write_string(self.url)
        writer.write_string_hash(self.query_items)
        writer.write_string_hash(self.headers)
        writer.write_int64(self.payload_chunk_size)
        writer.write_int64(self.payload_file_position)

        writer.write_bytes(NO_PROXY if self.proxy is None else self.proxy.encode("utf-8"))

        if self.cookie is None:
            writer.write_bytes(NO_COOKIE)
        elif not self.cookie:
            writer.write_bytes(EMPTY_COOKIE)
        else:
            writer.write_bytes(self.cookie)

        writer.write_bytes(NO_OUTFILE if self.out_file is None else self.out_file.encode("utf-8"))

        stream_type = StreamType(self.stream_type)
        writer.write_uint8(stream_type)
        if stream_type is StreamType.BYTE_ARRAY:
            writer.write_bytes(self.payload)
        elif stream_type is StreamType.FILE:
            writer.write_bytes(self.payload_file.encode("utf-8"))
        elif stream_type is StreamType.MULTI_BUFFER:
            writer.write_int32(len(self.multi_buffer))
            for kind, data in self.multi_buffer:
                writer.write_int32(StreamType(kind))
                writer.write_bytes(data)
        return writer.getvalue()

    def encode(self) -> bytes:
        """Serialize and base64-encode, ready for the executor's standard input."""
        return base64.b64encode(self.to_bytes())


@dataclass
class ExecutorReply:
    """What the executor process reports back about a finished request."""

    headers: list[tuple[bytes, bytes]] = field(default_factory=list)
    body: bytes = b""
    code: int = Result.OK
    error: str = ""
    reply_url: str = ""
    # None when the executor sent no cookies.
    cookie: bytes | None = None

    @property
    def result(self) -> Result:
        return Result(self.code)

    @classmethod
    def decode(cls, data: bytes | str) -> ExecutorReply:
        """Parse the executor's base64-encoded standard output."""
        raw = base64.b64decode(data)
        reader = DataStreamReader(raw)
        headers = reader.read_header_list()
        body = reader.read_bytes()
        code = reader.read_uint32()
        error = reader.read_bytes().decode("utf-8", "replace")
        reply_url = reader.read_bytes().decode("utf-8", "replace")
        cookie: bytes | None = reader.read_bytes()
        if cookie in (b"", NO_COOKIE):
            cookie = None
        return cls(
            headers=headers,
            body=body,
            code=code,
            error=error,
            reply_url=reply_url,
            cookie=cookie,
        )