"""Line-text record: one line of text per fragment.

Header words are single characters, so event_size counts bytes (header included)
and every character is one payload element.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

from .overlay import FragmentOverlay, FragmentWriter
from .protocol import (
    ASCII_HEADER_FMT,
    ASCII_HEADER_LEN,
    ASCII_METADATA_FMT,
    ASCII_METADATA_LEN,
    ASCII_WORD_LEN,
    EVENT_SIZE_BITS,
    FormatId,
    get_bits,
    set_bits,
)


@dataclass(frozen=True)
class AsciiHeader:
    event_size: int
    line_number: int
    unused: int = 0  # bits 28-63 of the first word, carried through untouched

    def pack(self) -> bytes:
        w0 = set_bits(0, 0, EVENT_SIZE_BITS, self.event_size)
        w0 = set_bits(w0, EVENT_SIZE_BITS, 64 - EVENT_SIZE_BITS, self.unused)
        return struct.pack(ASCII_HEADER_FMT, w0, self.line_number)

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "AsciiHeader":
        w0, line_number = struct.unpack_from(ASCII_HEADER_FMT, buf, offset)
        return cls(
            event_size=get_bits(w0, 0, EVENT_SIZE_BITS),
            line_number=line_number,
            unused=get_bits(w0, EVENT_SIZE_BITS, 64 - EVENT_SIZE_BITS),
        )


@dataclass(frozen=True)
class AsciiMetadata:
    chars_in_line: int

    def pack(self) -> bytes:
        return struct.pack(ASCII_METADATA_FMT, self.chars_in_line)

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "AsciiMetadata":
        (chars_in_line,) = struct.unpack_from(ASCII_METADATA_FMT, buf, offset)
        return cls(chars_in_line)


class AsciiFragment(FragmentOverlay):
    FORMAT = FormatId.ASCII_V1
    HEADER_CLS = AsciiHeader
    METADATA_CLS = AsciiMetadata
    HEADER_BYTES = ASCII_HEADER_LEN
    WORD_BYTES = ASCII_WORD_LEN
    ELEMENT_DTYPE = np.dtype("u1")
    METADATA_BYTES = ASCII_METADATA_LEN

    def hdr_line_number(self) -> int:
        return self.header().line_number

    def total_line_characters(self) -> int:
        return self.payload_count()

    def chars_in_line(self) -> int:
        return self.metadata().chars_in_line

    def line(self) -> bytes:
        return self.payload().tobytes()

    def _describe(self) -> str:
        return f"line {self.hdr_line_number()}: {self.line().decode('ascii', errors='replace')!r}"


class AsciiFragmentWriter(FragmentWriter):
    OVERLAY = AsciiFragment

    def hdr_line_number(self) -> int:
        return self.overlay.hdr_line_number()

    def set_hdr_line_number(self, line_number: int) -> None:
        self._update_header(line_number=line_number)

    def total_line_characters(self) -> int:
        return self.overlay.total_line_characters()

    def line(self) -> bytes:
        return self.overlay.line()

    def set_line(self, text: bytes | str) -> None:
        """Resize for `text` and copy it into the payload."""
        raw = text.encode("ascii") if isinstance(text, str) else bytes(text)
        self.resize(len(raw))
        if raw:
            self.payload()[:] = np.frombuffer(raw, dtype=self.OVERLAY.ELEMENT_DTYPE)
