"""Datagram record: the bytes of one received UDP datagram.

event_size counts 4-byte words, so the payload is the datagram rounded up to a
whole word; the datagram's own length is not kept.
"""
from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from .overlay import FragmentOverlay, FragmentWriter
from .protocol import (
    EVENT_SIZE_BITS,
    UDP_ADDRESS_BITS,
    UDP_ADDRESS_SHIFT,
    UDP_HEADER_FMT,
    UDP_HEADER_LEN,
    UDP_METADATA_FMT,
    UDP_METADATA_LEN,
    UDP_PORT_BITS,
    UDP_PORT_SHIFT,
    UDP_TYPE_BITS,
    UDP_TYPE_SHIFT,
    UDP_WORD_LEN,
    FormatId,
    get_bits,
    set_bits,
)


class DataType(IntEnum):
    """What the datagram bytes hold."""
    RAW = 0
    JSON = 1
    STRING = 2


@dataclass(frozen=True)
class UDPHeader:
    event_size: int
    data_type: int

    def pack(self) -> bytes:
        w0 = set_bits(0, 0, EVENT_SIZE_BITS, self.event_size)
        w0 = set_bits(w0, UDP_TYPE_SHIFT, UDP_TYPE_BITS, self.data_type)
        return struct.pack(UDP_HEADER_FMT, w0)

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "UDPHeader":
        (w0,) = struct.unpack_from(UDP_HEADER_FMT, buf, offset)
        return cls(
            event_size=get_bits(w0, 0, EVENT_SIZE_BITS),
            data_type=get_bits(w0, UDP_TYPE_SHIFT, UDP_TYPE_BITS),
        )


@dataclass(frozen=True)
class UDPMetadata:
    port: int
    address: int  # IPv4 address as a 32-bit integer

    def pack(self) -> bytes:
        w = set_bits(0, UDP_PORT_SHIFT, UDP_PORT_BITS, self.port)
        w = set_bits(w, UDP_ADDRESS_SHIFT, UDP_ADDRESS_BITS, self.address)
        return struct.pack(UDP_METADATA_FMT, w)

    @classmethod
    def unpack(cls, buf, offset: int = 0) -> "UDPMetadata":
        (w,) = struct.unpack_from(UDP_METADATA_FMT, buf, offset)
        return cls(
            port=get_bits(w, UDP_PORT_SHIFT, UDP_PORT_BITS),
            address=get_bits(w, UDP_ADDRESS_SHIFT, UDP_ADDRESS_BITS),
        )

    @classmethod
    def from_endpoint(cls, host: str, port: int) -> "UDPMetadata":
        return cls(port=port, address=int(ipaddress.IPv4Address(host)))


class UDPFragment(FragmentOverlay):
    FORMAT = FormatId.UDP_V1
    HEADER_CLS = UDPHeader
    METADATA_CLS = UDPMetadata
    HEADER_BYTES = UDP_HEADER_LEN
    WORD_BYTES = UDP_WORD_LEN
    ELEMENT_DTYPE = np.dtype("u1")
    METADATA_BYTES = UDP_METADATA_LEN

    def hdr_data_type(self) -> DataType | int:
        raw = self.header().data_type
        try:
            return DataType(raw)
        except ValueError:
            return raw

    def udp_data_words(self) -> int:
        return self.payload_count() // self.elements_per_word()

    def port(self) -> int:
        return self.metadata().port

    def address(self) -> str:
        return str(ipaddress.IPv4Address(self.metadata().address))

    def _describe(self) -> str:
        return f"event_size: {self.hdr_event_size()}, data_type: {int(self.hdr_data_type())}"


class UDPFragmentWriter(FragmentWriter):
    OVERLAY = UDPFragment

    def hdr_data_type(self) -> DataType | int:
        return self.overlay.hdr_data_type()

    def set_hdr_type(self, data_type: int) -> None:
        self._update_header(data_type=int(data_type) & ((1 << UDP_TYPE_BITS) - 1))

    def udp_data_words(self) -> int:
        return self.overlay.udp_data_words()
