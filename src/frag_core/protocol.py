"""Fragment overlay protocol constants.

Single source of truth for record layouts, magic values and validation bounds.
Keep this file stable. Writers, readers and the verifier must remain synchronized.

All multi-byte fields are little-endian. Bitfields are packed LSB-first inside
their storage word.
"""
from enum import IntEnum


class FormatId(IntEnum):
    """Codec identifiers. An incompatible layout gets a new member, never an edit."""
    ASCII_V1 = 1
    UDP_V1 = 2
    TOY_V1 = 3
    CRT_V1 = 4


# Backing buffer word (uint64); every resize rounds up to this
ALLOCATION_UNIT = 8

# event_size is a 28-bit field in every sized header
EVENT_SIZE_BITS = 28
MAX_EVENT_SIZE_WORDS = (1 << EVENT_SIZE_BITS) - 1

# Line-text record
# Header: [u64: event_size:28 | unused:36] [u64: line_number] = 16 bytes, 1-byte words
ASCII_HEADER_FMT = "<QQ"
ASCII_HEADER_LEN = 16
ASCII_WORD_LEN = 1
ASCII_METADATA_FMT = "<I"  # chars_in_line
ASCII_METADATA_LEN = 4

# Datagram record
# Header: [u32: event_size:28 | type:4] = 4 bytes, 4-byte words
UDP_HEADER_FMT = "<I"
UDP_HEADER_LEN = 4
UDP_WORD_LEN = 4
UDP_TYPE_SHIFT = 28
UDP_TYPE_BITS = 4
# Metadata: [u64: port:16 | address:32 | unused:16]
UDP_METADATA_FMT = "<Q"
UDP_METADATA_LEN = 8
UDP_PORT_SHIFT, UDP_PORT_BITS = 0, 16
UDP_ADDRESS_SHIFT, UDP_ADDRESS_BITS = 16, 32

# Simulated-ADC record
# Header: [u32: event_size:28 | unused:4] [u32: trigger_number] = 8 bytes, 4-byte words
TOY_HEADER_FMT = "<II"
TOY_HEADER_LEN = 8
TOY_WORD_LEN = 4
# Metadata: [u32: board_serial_number:16 | num_adc_bits:8 | unused:8]
TOY_METADATA_FMT = "<I"
TOY_METADATA_LEN = 4
TOY_SERIAL_SHIFT, TOY_SERIAL_BITS = 0, 16
TOY_ADC_BITS_SHIFT, TOY_ADC_BITS_BITS = 16, 8
ADC_SENTINEL = 0xFFFF

# Detector-hit record
# Header: [Magic(1) | NHit(1) | Module(2) | UnixTime(4, signed) | 50MHz(4)] = 12 bytes
CRT_HEADER_FMT = "<BBHiI"
CRT_HEADER_LEN = 12
# Hit: [Magic(1) | Channel(1) | ADC(2)] = 4 bytes
CRT_HIT_FMT = "<BBH"
CRT_HIT_LEN = 4
CRT_HEADER_MAGIC = ord("M")
CRT_HIT_MAGIC = ord("H")

# Validation bounds
CRT_MAX_HITS = 64
CRT_NUM_CHANNELS = 64
CRT_ADC_BITS = 12
CRT_ADC_LIMIT = 1 << CRT_ADC_BITS
# 2017-07-14; no detector record predates deployment
PLAUSIBLE_UNIXTIME_FLOOR = 1_500_000_000

# Stream resynchronization bounds
DEFAULT_MAX_RESYNC_BYTES = 16 * 1024 * 1024  # scan window per corruption event
DEFAULT_MAX_GARBAGE_BYTES = 64 * 1024  # garbage span that earns an extra warning


def get_bits(word: int, shift: int, width: int) -> int:
    """Extract an unsigned bitfield from a plain integer."""
    return (word >> shift) & ((1 << width) - 1)


def set_bits(word: int, shift: int, width: int, value: int) -> int:
    """Return `word` with the bitfield replaced by `value` (masked to width)."""
    mask = ((1 << width) - 1) << shift
    return (word & ~mask) | ((value << shift) & mask)
