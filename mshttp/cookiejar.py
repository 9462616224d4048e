"""Cookie storage backed by a temporary file."""

from __future__ import annotations

import contextlib
import os
import tempfile
import weakref
from typing import BinaryIO


def _discard(handle: BinaryIO, path: str) -> None:
    handle.close()
    with contextlib.suppress(FileNotFoundError):
        os.remove(path)


class CookieJar:
    """A temporary cookie file, removed when the jar is closed or collected."""

    def __init__(self) -> None:
        descriptor, path = tempfile.mkstemp(prefix="cclib.", dir=tempfile.gettempdir())
        self._file: BinaryIO = os.fdopen(descriptor, "w+b")
        self.name = path
        self._finalizer = weakref.finalize(self, _discard, self._file, path)

    def file_name(self) -> str:
        return self.name

    def _check_alive(self) -> None:
        if self.is_removed():
            raise ValueError("cookie jar has been removed")

    def read(self) -> bytes:
        """Return the whole content of the cookie file."""
        self._check_alive()
        self._file.seek(0)
        return self._file.read()

    def write(self, data: bytes) -> None:
        """Replace the content of the cookie file."""
        self._check_alive()
        self._file.seek(0)
        self._file.write(data)
        self._file.truncate()
        self._file.flush()

    def close(self) -> None:
        """Close and delete the cookie file."""
        self._finalizer()

    def is_removed(self) -> bool:
        return not self._finalizer.alive

    def __enter__(self) -> CookieJar:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()