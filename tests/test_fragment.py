import numpy as np
import pytest

from frag_core.errors import FragmentError
from frag_core.fragment import Fragment


def test_resize_rounds_to_allocation_unit_and_keeps_prefix():
    frag = Fragment(b"\x01\x02\x03\x04")
    frag.resize_bytes(3)
    assert frag.payload_byte_size() == 8
    frag.data[:3] = b"abc"
    frag.resize_bytes(20)
    assert frag.payload_byte_size() == 24
    assert bytes(frag.data[:3]) == b"abc"
    assert bytes(frag.data[3:]) == bytes(21)
    frag.resize_bytes(2)
    assert bytes(frag.data) == b"abc" + bytes(5)


def test_metadata_is_padded_and_optional():
    assert not Fragment().has_metadata()
    with pytest.raises(FragmentError):
        Fragment().metadata()
    frag = Fragment(b"\xaa\xbb\xcc\xdd")
    assert frag.has_metadata()
    assert frag.metadata() == b"\xaa\xbb\xcc\xdd" + bytes(4)


def test_metadata_cannot_follow_payload():
    frag = Fragment()
    frag.resize_bytes(8)
    with pytest.raises(FragmentError):
        frag.set_metadata(b"\x00")


def test_from_bytes_pads_payload():
    frag = Fragment.from_bytes(b"x" * 13)
    assert frag.payload_byte_size() == 16
    assert frag.payload_begin_bytes() == 0
    assert frag.payload_end_bytes() == 16


def test_resize_refused_while_view_held():
    frag = Fragment.from_bytes(bytes(16))
    view = np.frombuffer(memoryview(frag.data), dtype="u1")
    with pytest.raises(FragmentError):
        frag.resize_bytes(32)
    del view
    frag.resize_bytes(32)
    assert frag.payload_byte_size() == 32
