"""Generic reader/writer overlays for word-sized fragment formats.

A format subclasses FragmentOverlay with its layout constants and header /
metadata codecs; the arithmetic below is shared. Payload element views are
numpy arrays over the fragment's bytearray, so no bytes are copied. Views must
not outlive a resize: the fragment refuses to resize while any are held.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, ClassVar

import numpy as np

from .errors import (
    EventSizeOverflow,
    IndexOutOfRange,
    MalformedBuffer,
    MalformedHeader,
    MalformedPayload,
)
from .fragment import Fragment
from .protocol import MAX_EVENT_SIZE_WORDS, FormatId
from .units import elements_per_word, elements_to_words, words_to_elements


class FragmentOverlay:
    """Read-only view of `{Header, Payload}` at the start of a fragment's payload."""

    FORMAT: ClassVar[FormatId]
    HEADER_CLS: ClassVar[Any]
    METADATA_CLS: ClassVar[Any] = None
    HEADER_BYTES: ClassVar[int]
    WORD_BYTES: ClassVar[int]
    ELEMENT_DTYPE: ClassVar[np.dtype]

    def __init__(self, frag: Fragment) -> None:
        self._frag = frag

    @property
    def fragment(self) -> Fragment:
        return self._frag

    # ---------- layout ----------
    @classmethod
    def hdr_size_words(cls) -> int:
        return cls.HEADER_BYTES // cls.WORD_BYTES

    @classmethod
    def elements_per_word(cls) -> int:
        return elements_per_word(cls.WORD_BYTES, cls.ELEMENT_DTYPE.itemsize)

    # ---------- header / metadata ----------
    def header(self):
        size = self._frag.payload_byte_size()
        if size < self.HEADER_BYTES:
            raise MalformedHeader(
                f"{type(self).__name__}: fragment holds {size} bytes, header needs {self.HEADER_BYTES}"
            )
        return self.HEADER_CLS.unpack(self._frag.data)

    def metadata(self):
        if self.METADATA_CLS is None:
            raise MalformedBuffer(f"{type(self).__name__} defines no metadata block")
        if not self._frag.has_metadata():
            raise MalformedBuffer(f"{type(self).__name__}: fragment carries no metadata")
        return self.METADATA_CLS.unpack(self._frag.metadata())

    def hdr_event_size(self) -> int:
        return self.header().event_size

    # ---------- payload ----------
    def payload_count(self) -> int:
        event_size = self.hdr_event_size()
        if event_size < self.hdr_size_words():
            raise MalformedHeader(
                f"{type(self).__name__}: event_size {event_size} smaller than header ({self.hdr_size_words()} words)"
            )
        return words_to_elements(event_size - self.hdr_size_words(), self.elements_per_word())

    def payload_begin(self) -> int:
        """Byte offset of the first payload element within the fragment payload."""
        return self._frag.payload_begin_bytes() + self.HEADER_BYTES

    def payload_end(self) -> int:
        return self.payload_begin() + self.payload_count() * self.ELEMENT_DTYPE.itemsize

    def _view(self, writable: bool) -> np.ndarray:
        count = self.payload_count()
        begin = self.payload_begin()
        end = begin + count * self.ELEMENT_DTYPE.itemsize
        if end > self._frag.payload_end_bytes():
            raise MalformedPayload(
                f"{type(self).__name__}: header claims payload up to byte {end}, "
                f"fragment holds {self._frag.payload_byte_size()}"
            )
        if count == 0:
            arr = np.empty(0, dtype=self.ELEMENT_DTYPE)
            arr.flags.writeable = writable
            return arr
        buf = memoryview(self._frag.data)
        if not writable:
            buf = buf.toreadonly()
        return np.frombuffer(buf, dtype=self.ELEMENT_DTYPE, count=count, offset=begin)

    def payload(self) -> np.ndarray:
        """Read-only, zero-copy array of the payload elements."""
        return self._view(writable=False)

    def element(self, index: int):
        count = self.payload_count()
        if not 0 <= index < count:
            raise IndexOutOfRange(f"{type(self).__name__}: index {index} outside [0, {count})")
        return self.payload()[index].item()

    # ---------- diagnostics ----------
    def _describe(self) -> str:
        return f"event_size: {self.hdr_event_size()}"

    def __str__(self) -> str:
        try:
            return f"{type(self).__name__} {self._describe()}"
        except (MalformedHeader, MalformedPayload) as e:
            return f"{type(self).__name__} <malformed: {e}>"


class FragmentWriter:
    """Mutable view over a fragment being populated.

    Wraps the same fragment as a reader overlay (`self.overlay`) and adds the
    right to resize it and rewrite header fields. `resize` is the only code
    path that sets the header's event_size.
    """

    OVERLAY: ClassVar[type[FragmentOverlay]]

    def __init__(self, frag: Fragment) -> None:
        if not frag.has_metadata() or frag.payload_byte_size() > 0:
            raise MalformedBuffer(
                f"{type(self).__name__}: fragment does not appear to consist of (and only of) "
                f"its metadata block (has_metadata={frag.has_metadata()}, "
                f"payload_bytes={frag.payload_byte_size()})"
            )
        self._frag = frag
        self.overlay = self.OVERLAY(frag)
        # Allocate space for the header
        frag.resize_bytes(self.OVERLAY.HEADER_BYTES)
        self.resize(0)

    @property
    def fragment(self) -> Fragment:
        return self._frag

    def _update_header(self, **fields) -> None:
        hdr = replace(self.overlay.header(), **fields)
        self._frag.data[: self.OVERLAY.HEADER_BYTES] = hdr.pack()

    def resize(self, n_elements: int) -> None:
        """Size the fragment for n_elements payload elements and record it in the header."""
        ov = self.OVERLAY
        event_size = elements_to_words(n_elements, ov.elements_per_word()) + ov.hdr_size_words()
        if event_size > MAX_EVENT_SIZE_WORDS:
            raise EventSizeOverflow(
                f"{type(self).__name__}: {n_elements} elements need {event_size} words, "
                f"event_size field holds at most {MAX_EVENT_SIZE_WORDS}"
            )
        self._frag.resize_bytes(event_size * ov.WORD_BYTES)
        self._update_header(event_size=event_size)

    def payload(self) -> np.ndarray:
        """Writable array over the payload. Do not hold it across `resize`."""
        return self.overlay._view(writable=True)

    # Reader-equivalent accessors
    def header(self):
        return self.overlay.header()

    def metadata(self):
        return self.overlay.metadata()

    def hdr_event_size(self) -> int:
        return self.overlay.hdr_event_size()

    def hdr_size_words(self) -> int:
        return self.overlay.hdr_size_words()

    def payload_count(self) -> int:
        return self.overlay.payload_count()

    def payload_begin(self) -> int:
        return self.overlay.payload_begin()

    def payload_end(self) -> int:
        return self.overlay.payload_end()

    def element(self, index: int):
        return self.overlay.element(index)

    def __str__(self) -> str:
        return str(self.overlay)
