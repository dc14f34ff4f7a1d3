"""Simulated-ADC record: 16-bit samples from a 12- or 14-bit ADC board.

Two samples pack into each 4-byte header word. The metadata block records the
board serial number and how many of the 16 bits carry data.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

from .errors import IndexOutOfRange, MalformedPayload
from .overlay import FragmentOverlay, FragmentWriter
from .protocol import (
    ADC_SENTINEL,
    EVENT_SIZE_BITS,
    TOY_ADC_BITS_BITS,
    TOY_ADC_BITS_SHIFT,
    TOY_HEADER_FMT,
    TOY_HEADER_LEN,
    TOY_METADATA_FMT,
    TOY_METADATA_LEN,
    TOY_SERIAL_BITS,
    TOY_SERIAL_SHIFT,
    TOY_WORD_LEN,
    FormatId,
    get_bits,
    set_bits,
)


@dataclass(frozen=True)
class ToyHeader:
    event_size: int
    trigger_number: int
    unused: int = 0

    def pack(self) -> bytes:
        w0 = set_bits(0, 0, EVENT_SIZE_BITS, self.event_size)
        w0 = set_bits(w0, EVENT_SIZE_BITS, 32 - EVENT_SIZE_BITS, self.unused)
        return struct.pack(TOY_HEADER_FMT, w0, self.trigger_number)

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "ToyHeader":
        w0, trigger_number = struct.unpack_from(TOY_HEADER_FMT, buf, offset)
        return cls(
            event_size=get_bits(w0, 0, EVENT_SIZE_BITS),
            trigger_number=trigger_number,
            unused=get_bits(w0, EVENT_SIZE_BITS, 32 - EVENT_SIZE_BITS),
        )


@dataclass(frozen=True)
class ToyMetadata:
    board_serial_number: int
    num_adc_bits: int

    def pack(self) -> bytes:
        w = set_bits(0, TOY_SERIAL_SHIFT, TOY_SERIAL_BITS, self.board_serial_number)
        w = set_bits(w, TOY_ADC_BITS_SHIFT, TOY_ADC_BITS_BITS, self.num_adc_bits)
        return struct.pack(TOY_METADATA_FMT, w)

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "ToyMetadata":
        (w,) = struct.unpack_from(TOY_METADATA_FMT, buf, offset)
        return cls(
            board_serial_number=get_bits(w, TOY_SERIAL_SHIFT, TOY_SERIAL_BITS),
            num_adc_bits=get_bits(w, TOY_ADC_BITS_SHIFT, TOY_ADC_BITS_BITS),
        )


class ToyFragment(FragmentOverlay):
    FORMAT = FormatId.TOY_V1
    HEADER_CLS = ToyHeader
    METADATA_CLS = ToyMetadata
    HEADER_BYTES = TOY_HEADER_LEN
    WORD_BYTES = TOY_WORD_LEN
    ELEMENT_DTYPE = np.dtype("<u2")
    METADATA_BYTES = TOY_METADATA_LEN

    def hdr_trigger_number(self) -> int:
        return self.header().trigger_number

    def board_serial_number(self) -> int:
        return self.metadata().board_serial_number

    def num_adc_bits(self) -> int:
        return self.metadata().num_adc_bits

    def total_adc_values(self) -> int:
        return self.payload_count()

    def adc_value(self, index: int) -> int:
        return self.element(index)

    def adc_value_or_sentinel(self, index: int) -> int:
        """Like adc_value, but answers ADC_SENTINEL (0xFFFF) for a bad index."""
        try:
            return self.adc_value(index)
        except IndexOutOfRange:
            return ADC_SENTINEL

    @staticmethod
    def adc_range(daq_adc_bits: int) -> int:
        """One past the largest ADC value representable in daq_adc_bits."""
        return 1 << daq_adc_bits

    def find_bad_adc(self, daq_adc_bits: int) -> int | None:
        """Index of the first sample with bits set above daq_adc_bits, or None."""
        if daq_adc_bits >= self.ELEMENT_DTYPE.itemsize * 8:
            return None
        bad = np.flatnonzero(self.payload() >> daq_adc_bits)
        return int(bad[0]) if bad.size else None

    def fast_verify(self, daq_adc_bits: int) -> bool:
        return self.find_bad_adc(daq_adc_bits) is None

    def check_adc_data(self, daq_adc_bits: int | None = None) -> None:
        """Raise MalformedPayload if any sample exceeds the ADC's bit depth.

        The bit depth defaults to the one recorded in the metadata block.
        """
        if daq_adc_bits is None:
            daq_adc_bits = self.num_adc_bits()
        idx = self.find_bad_adc(daq_adc_bits)
        if idx is not None:
            raise MalformedPayload(
                f"ToyFragment: ADC value {self.adc_value(idx)} at index {idx} "
                f"above max {self.adc_range(daq_adc_bits) - 1} for {daq_adc_bits}-bit ADC"
            )

    def _describe(self) -> str:
        return f"event size: {self.hdr_event_size()}, trigger number: {self.hdr_trigger_number()}"


class ToyFragmentWriter(FragmentWriter):
    OVERLAY = ToyFragment

    def hdr_trigger_number(self) -> int:
        return self.overlay.hdr_trigger_number()

    def set_hdr_trigger_number(self, trigger_number: int) -> None:
        self._update_header(trigger_number=trigger_number)

    def total_adc_values(self) -> int:
        return self.overlay.total_adc_values()

    def adc_value(self, index: int) -> int:
        return self.overlay.adc_value(index)
