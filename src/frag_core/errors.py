class FragmentError(Exception):
    """Base exception for fragment overlay errors."""


class MalformedBuffer(FragmentError):
    """Buffer does not hold (only) header-to-be-written plus metadata."""


class MalformedHeader(FragmentError):
    """Header missing or declaring an impossible size."""


class MalformedPayload(FragmentError):
    """Payload extent or element content disagrees with the header."""


class IndexOutOfRange(FragmentError, IndexError):
    """Element or hit index beyond the count derived from the header."""


class FragmentWarning(UserWarning):
    """Recoverable anomaly seen while scanning or dumping records."""


class EventSizeOverflow(FragmentError, ValueError):
    """Requested payload needs more words than the 28-bit event_size field holds."""
