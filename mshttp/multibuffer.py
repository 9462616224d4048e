"""A read-only stream that joins byte strings and files end to end."""

from __future__ import annotations

import io
import os
from dataclasses import dataclass, field
from typing import BinaryIO, Union

Appendable = Union[bytes, bytearray, memoryview, str, "os.PathLike[str]", BinaryIO]


@dataclass
class Slot:
    """One part of a multi-buffer and the stream positions it covers."""

    device: BinaryIO | None
    begin: int
    end: int
    file_name: str = ""
    owned: bool = field(default=False, repr=False)

    @property
    def length(self) -> int:
        return self.end - self.begin + 1


def _stream_size(device: BinaryIO) -> int:
    position = device.tell()
    end = device.seek(0, io.SEEK_END)
    device.seek(position)
    return end


class MultiBuffer:
    """Concatenation of in-memory data and files, read as one stream."""

    def __init__(self) -> None:
        self._slots: list[Slot] = []
        self._cursor = 0
        self._open = False

    @property
    def items(self) -> list[Slot]:
        return list(self._slots)

    def append(self, data: Appendable) -> Slot:
        """Add bytes, a file path or a binary file object at the end."""
        if isinstance(data, (bytes, bytearray, memoryview)):
            device: BinaryIO | None = io.BytesIO(bytes(data))
            file_name = ""
            length = len(device.getbuffer())
        elif isinstance(data, (str, os.PathLike)):
            device = None
            file_name = os.fspath(data)
            length = os.path.getsize(file_name)
        else:
            device = data
            name = getattr(data, "name", "")
            file_name = name if isinstance(name, str) else ""
            length = _stream_size(data)

        begin = self._slots[-1].end + 1 if self._slots else 0
        slot = Slot(device=device, begin=begin, end=begin + length - 1, file_name=file_name)
        self._slots.append(slot)
        return slot

    def slot_by_position(self, pos: int) -> int | None:
        """Return the index of the slot holding position ``pos``, or None."""
        for index, slot in enumerate(self._slots):
            if slot.begin <= pos <= slot.end:
                return index
        return None

    def _device(self, slot: Slot) -> BinaryIO:
        if slot.device is None:
            slot.device = open(slot.file_name, "rb")
            slot.owned = True
        return slot.device

    def _check_open(self) -> None:
        if not self._open:
            raise ValueError("multi-buffer is not open")

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (all remaining when negative)."""
        self._check_open()
        index = self.slot_by_position(self._cursor)
        if index is None:
            return b""

        remaining = None if size < 0 else size
        chunks: list[bytes] = []
        while remaining is None or remaining > 0:
            slot = self._slots[index]
            device = self._device(slot)
            device.seek(self._cursor - slot.begin)
            chunk = device.read(-1 if remaining is None else remaining)
            if not chunk:
                if index == len(self._slots) - 1:
                    break
                index += 1
                continue
            chunks.append(chunk)
            self._cursor += len(chunk)
            if remaining is not None:
                remaining -= len(chunk)
        return b"".join(chunks)

    def write(self, data: bytes) -> int:
        """Refuse writing: the stream is read-only."""
        self._check_open()
        raise io.UnsupportedOperation(
            f"cannot write {len(data)} bytes: multi-buffer is read-only"
        )

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return True

    def seek(self, pos: int) -> int:
        """Move to absolute position ``pos``; it may not pass the end."""
        if pos < 0 or pos > self.size():
            raise ValueError(f"seek position {pos} is outside the buffer")
        self._cursor = pos
        return pos

    def tell(self) -> int:
        return self._cursor

    def size(self) -> int:
        """Total size in bytes of all parts as they are now."""
        total = 0
        for slot in self._slots:
            if slot.device is None:
                total += os.path.getsize(slot.file_name)
            else:
                total += _stream_size(slot.device)
        return total

    def __len__(self) -> int:
        return self.size()

    def open(self) -> MultiBuffer:
        """Open for reading from the start."""
        self._cursor = 0
        self._open = True
        return self

    @property
    def closed(self) -> bool:
        return not self._open

    def close(self) -> None:
        """Close the stream and any files it opened itself."""
        self._open = False
        for slot in self._slots:
            if slot.owned and slot.device is not None:
                slot.device.close()
                slot.device = None
                slot.owned = False

    def __enter__(self) -> MultiBuffer:
        if not self._open:
            self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()