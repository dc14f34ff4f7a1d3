"""Human-readable rendering of detector-hit records, for debugging corrupt data.

Every renderer returns a string and reads nothing past the fragment's end.
"""
from __future__ import annotations

from frag_core.crt import CRTFragment, Hit
from frag_core.fragment import Fragment
from frag_core.protocol import CRT_HEADER_LEN, CRT_HIT_LEN


def _printable(b: int) -> str:
    return chr(b) if 0x20 <= b < 0x7F else "."


def hexdump(data: bytes, width: int = 16) -> str:
    """Offset, hex bytes and printable ASCII, `width` bytes per line."""
    lines = []
    for off in range(0, len(data), width):
        chunk = bytes(data[off : off + width])
        hexpart = " ".join(f"{b:02x}" for b in chunk)
        text = "".join(_printable(b) for b in chunk)
        lines.append(f"{off:08x}  {hexpart:<{width * 3 - 1}}  |{text}|")
    return "\n".join(lines)


def render_crt_header(frag: Fragment) -> str:
    size = frag.payload_byte_size()
    if size < CRT_HEADER_LEN:
        return f"CRT fragment is only {size} bytes, smaller than the {CRT_HEADER_LEN}-byte header"
    h = CRTFragment(frag).header()
    return "\n".join(
        [
            "CRT header:",
            f"  magic:          {_printable(h.magic)!r} (0x{h.magic:02x})",
            f"  n hit:          {h.nhit}",
            f"  module:         {h.module_num}",
            f"  unix time:      {h.unixtime} (0x{h.unixtime & 0xFFFFFFFF:08x})",
            f"  50MHz time:     {h.fifty_mhz_time} (0x{h.fifty_mhz_time:08x})",
            f"  fragment bytes: {size}",
        ]
    )


def render_crt_hit(frag: Fragment, index: int) -> str:
    if index < 0:
        return f"Hit {index} is out of range"
    off = frag.payload_begin_bytes() + CRT_HEADER_LEN + index * CRT_HIT_LEN
    if off + CRT_HIT_LEN > frag.payload_end_bytes():
        return f"Hit {index} would be past end of fragment"
    h = Hit.unpack(frag.data, off)
    return f"  {index:2d}: magic {_printable(h.magic)!r} channel {h.channel:2d} adc {h.signed_adc:5d}"


def render_crt_hits(frag: Fragment, max_hits: int | None = None) -> str:
    """All hits the header declares, capped at max_hits."""
    if frag.payload_byte_size() < CRT_HEADER_LEN:
        return render_crt_header(frag)
    n = CRTFragment(frag).num_hits()
    if max_hits is not None:
        n = min(n, max_hits)
    return "\n".join(render_crt_hit(frag, i) for i in range(n))


def render_crt(frag: Fragment, max_hits: int | None = None, raw: bool = False) -> str:
    parts = [render_crt_header(frag)]
    if frag.payload_byte_size() >= CRT_HEADER_LEN:
        parts.append("CRT hits:")
        parts.append(render_crt_hits(frag, max_hits))
    if raw:
        parts.append("Raw bytes:")
        parts.append(hexdump(frag.data))
    return "\n".join(p for p in parts if p)
