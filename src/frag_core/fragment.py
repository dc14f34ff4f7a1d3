from __future__ import annotations

from .errors import FragmentError
from .protocol import ALLOCATION_UNIT
from .units import round_up


class Fragment:
    """Growable payload buffer with an optional metadata block.

    This is the backing buffer the overlays interpret. It owns the bytes; the
    overlays only hold a reference. Payload and metadata are both stored in
    whole allocation units (VALUE_BYTES), so sizes reported here are always
    multiples of it.
    """

    VALUE_BYTES = ALLOCATION_UNIT

    def __init__(self, metadata: bytes | None = None) -> None:
        self._metadata: bytes | None = None
        self.data = bytearray()
        if metadata is not None:
            self.set_metadata(metadata)

    @classmethod
    def from_bytes(cls, payload: bytes, metadata: bytes | None = None) -> "Fragment":
        """Wrap received bytes, padding the payload to the allocation unit."""
        frag = cls(metadata)
        frag.data.extend(payload)
        frag.data.extend(bytes(round_up(len(payload), cls.VALUE_BYTES) - len(payload)))
        return frag

    # ---------- metadata ----------
    def has_metadata(self) -> bool:
        return self._metadata is not None

    def metadata(self) -> bytes:
        if self._metadata is None:
            raise FragmentError("fragment has no metadata block")
        return self._metadata

    def set_metadata(self, metadata: bytes) -> None:
        if self.data:
            raise FragmentError("metadata must be set before any payload is added")
        pad = round_up(len(metadata), self.VALUE_BYTES) - len(metadata)
        self._metadata = bytes(metadata) + bytes(pad)

    # ---------- payload ----------
    def payload_byte_size(self) -> int:
        return len(self.data)

    def payload_begin_bytes(self) -> int:
        return 0

    def payload_end_bytes(self) -> int:
        return len(self.data)

    def resize_bytes(self, n_bytes: int) -> None:
        """Grow or shrink the payload to n_bytes (rounded up), keeping the prefix."""
        if n_bytes < 0:
            raise ValueError(f"negative payload size {n_bytes}")
        target = round_up(n_bytes, self.VALUE_BYTES)
        cur = len(self.data)
        try:
            if target > cur:
                self.data.extend(bytes(target - cur))
            elif target < cur:
                del self.data[target:]
        except BufferError as e:
            raise FragmentError("payload views are still held; release them before resizing") from e

    def __repr__(self) -> str:
        md = len(self._metadata) if self._metadata is not None else None
        return f"Fragment(payload_bytes={len(self.data)}, metadata_bytes={md})"
