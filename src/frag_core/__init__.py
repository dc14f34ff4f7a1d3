"""Fragment overlays - typed zero-copy views over DAQ record buffers."""
from .ascii import AsciiFragment, AsciiFragmentWriter
from .crt import CRTFragment, Hit, build_record
from .errors import (
    EventSizeOverflow,
    FragmentError,
    IndexOutOfRange,
    MalformedBuffer,
    MalformedHeader,
    MalformedPayload,
)
from .fragment import Fragment
from .protocol import FormatId
from .toy import ToyFragment, ToyFragmentWriter
from .udp import DataType, UDPFragment, UDPFragmentWriter

__all__ = [
    "AsciiFragment",
    "AsciiFragmentWriter",
    "CRTFragment",
    "DataType",
    "EventSizeOverflow",
    "FormatId",
    "Fragment",
    "FragmentError",
    "Hit",
    "IndexOutOfRange",
    "MalformedBuffer",
    "MalformedHeader",
    "MalformedPayload",
    "ToyFragment",
    "ToyFragmentWriter",
    "UDPFragment",
    "UDPFragmentWriter",
    "build_record",
]
