"""Detector-hit record read out of a cosmic-ray tagger module.

Unlike the word-sized formats, the record's size is implied by the hit count
in its header: a 12-byte header followed by `nhit` 4-byte hits, padded to the
allocation unit. Hits are addressed by byte offset. Nothing here checks that
the record is sane; run frag_verify.logic.verify_crt on untrusted input
before trusting these accessors.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, NamedTuple

import numpy as np

from .errors import IndexOutOfRange, MalformedHeader, MalformedPayload
from .fragment import Fragment
from .protocol import (
    CRT_HEADER_FMT,
    CRT_HEADER_LEN,
    CRT_HEADER_MAGIC,
    CRT_HIT_FMT,
    CRT_HIT_LEN,
    CRT_HIT_MAGIC,
    FormatId,
)
from .units import round_up

HIT_DTYPE = np.dtype([("magic", "u1"), ("channel", "u1"), ("adc", "<u2")])


@dataclass(frozen=True)
class CRTHeader:
    magic: int
    nhit: int
    module_num: int
    unixtime: int
    fifty_mhz_time: int

    def pack(self) -> bytes:
        return struct.pack(
            CRT_HEADER_FMT, self.magic, self.nhit, self.module_num, self.unixtime, self.fifty_mhz_time
        )

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "CRTHeader":
        return cls(*struct.unpack_from(CRT_HEADER_FMT, buf, offset))


class Hit(NamedTuple):
    channel: int
    adc: int
    magic: int = CRT_HIT_MAGIC

    @property
    def signed_adc(self) -> int:
        """The sample as the module's signed 16-bit convention reads it."""
        return self.adc - 0x10000 if self.adc & 0x8000 else self.adc

    def pack(self) -> bytes:
        return struct.pack(CRT_HIT_FMT, self.magic, self.channel, self.adc)

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "Hit":
        magic, channel, adc = struct.unpack_from(CRT_HIT_FMT, buf, offset)
        return cls(channel=channel, adc=adc, magic=magic)


def record_size(nhit: int) -> int:
    """Bytes a record with nhit hits occupies in a fragment."""
    return round_up(CRT_HEADER_LEN + nhit * CRT_HIT_LEN)


def build_record(
    hits: Iterable[Hit],
    *,
    module_num: int = 0,
    unixtime: int = 0,
    fifty_mhz_time: int = 0,
    nhit: int | None = None,
    magic: int = CRT_HEADER_MAGIC,
) -> bytes:
    """Encode a record, padded to the allocation unit.

    `nhit` defaults to the number of hits; pass it to produce a record whose
    header disagrees with its body.
    """
    hits = list(hits)
    header = CRTHeader(
        magic=magic,
        nhit=len(hits) if nhit is None else nhit,
        module_num=module_num,
        unixtime=unixtime,
        fifty_mhz_time=fifty_mhz_time,
    )
    body = header.pack() + b"".join(h.pack() for h in hits)
    return body + bytes(round_up(len(body)) - len(body))


class CRTFragment:
    FORMAT = FormatId.CRT_V1
    HEADER_BYTES = CRT_HEADER_LEN
    HIT_BYTES = CRT_HIT_LEN

    def __init__(self, frag: Fragment) -> None:
        self._frag = frag

    @property
    def fragment(self) -> Fragment:
        return self._frag

    def size_bytes(self) -> int:
        return self._frag.payload_byte_size()

    def header(self) -> CRTHeader:
        if self.size_bytes() < self.HEADER_BYTES:
            raise MalformedHeader(
                f"CRTFragment: fragment holds {self.size_bytes()} bytes, header needs {self.HEADER_BYTES}"
            )
        return CRTHeader.unpack(self._frag.data)

    def magic(self) -> int:
        return self.header().magic

    def num_hits(self) -> int:
        return self.header().nhit

    def module_num(self) -> int:
        return self.header().module_num

    def unixtime(self) -> int:
        return self.header().unixtime

    def fifty_mhz_time(self) -> int:
        return self.header().fifty_mhz_time

    def expected_size_bytes(self) -> int:
        return record_size(self.num_hits())

    def hit_offset(self, index: int) -> int:
        return self._frag.payload_begin_bytes() + self.HEADER_BYTES + index * self.HIT_BYTES

    def hit(self, index: int) -> Hit:
        nhit = self.num_hits()
        if not 0 <= index < nhit:
            raise IndexOutOfRange(f"CRTFragment: hit {index} outside [0, {nhit})")
        off = self.hit_offset(index)
        if off + self.HIT_BYTES > self._frag.payload_end_bytes():
            raise MalformedPayload(f"CRTFragment: hit {index} would be past end of fragment")
        return Hit.unpack(self._frag.data, off)

    def channel(self, index: int) -> int:
        return self.hit(index).channel

    def adc(self, index: int) -> int:
        return self.hit(index).adc

    def hits(self) -> np.ndarray:
        """Read-only, zero-copy structured array of all declared hits."""
        nhit = self.num_hits()
        end = self.hit_offset(nhit)
        if end > self._frag.payload_end_bytes():
            raise MalformedPayload(
                f"CRTFragment: {nhit} hits need {end} bytes, fragment holds {self.size_bytes()}"
            )
        if nhit == 0:
            arr = np.empty(0, dtype=HIT_DTYPE)
            arr.flags.writeable = False
            return arr
        view = memoryview(self._frag.data).toreadonly()
        return np.frombuffer(view, dtype=HIT_DTYPE, count=nhit, offset=self.hit_offset(0))

    def __str__(self) -> str:
        try:
            h = self.header()
        except MalformedHeader as e:
            return f"CRTFragment <malformed: {e}>"
        return (
            f"CRTFragment module {h.module_num}, {h.nhit} hits, "
            f"unixtime {h.unixtime}, 50MHz time {h.fifty_mhz_time}"
        )
