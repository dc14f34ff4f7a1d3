import numpy as np
import pytest

from frag_core.errors import FragmentError, IndexOutOfRange, MalformedBuffer, MalformedPayload
from frag_core.fragment import Fragment
from frag_core.protocol import ADC_SENTINEL
from frag_core.toy import ToyFragment, ToyFragmentWriter, ToyMetadata


def _fill(samples, bits=12, trigger=1) -> Fragment:
    frag = Fragment(ToyMetadata(board_serial_number=0x0101, num_adc_bits=bits).pack())
    w = ToyFragmentWriter(frag)
    w.set_hdr_trigger_number(trigger)
    w.resize(len(samples))
    if len(samples):
        w.payload()[: len(samples)] = samples
    return frag


@pytest.mark.parametrize("n", [0, 1, 2, 3, 4096])
def test_round_trip(n):
    samples = (np.arange(n) * 7 % 4096).astype("<u2")
    reader = ToyFragment(_fill(samples, trigger=99))
    assert reader.hdr_trigger_number() == 99
    # two samples per word; odd counts gain one zero sample
    assert reader.total_adc_values() == n + n % 2
    assert np.array_equal(reader.payload()[:n], samples)
    assert reader.payload().tobytes()[: 2 * n] == samples.tobytes()


@pytest.mark.parametrize("n", [0, 1, 2, 5])
def test_size_invariant_after_resize(n):
    frag = Fragment(ToyMetadata(1, 12).pack())
    w = ToyFragmentWriter(frag)
    w.resize(n)
    assert w.hdr_event_size() * 4 == 8 + -(-n // 2) * 4


def test_metadata_accessors():
    reader = ToyFragment(_fill([1, 2], bits=14))
    assert reader.board_serial_number() == 0x0101
    assert reader.num_adc_bits() == 14


def test_adc_value_out_of_range_is_typed_failure():
    reader = ToyFragment(_fill([10, 20]))
    assert reader.adc_value(1) == 20
    with pytest.raises(IndexOutOfRange):
        reader.adc_value(2)


def test_sentinel_compatibility():
    reader = ToyFragment(_fill([10, 20]))
    assert reader.adc_value_or_sentinel(0) == 10
    assert reader.adc_value_or_sentinel(2) == ADC_SENTINEL


def test_bad_adc_detection():
    reader = ToyFragment(_fill([0, 4095, 4096, 5]))
    assert reader.adc_range(12) == 4096
    assert reader.find_bad_adc(12) == 2
    assert not reader.fast_verify(12)
    assert reader.fast_verify(14)
    with pytest.raises(MalformedPayload, match="index 2"):
        reader.check_adc_data()
    reader.check_adc_data(14)


def test_clean_data_passes_check():
    reader = ToyFragment(_fill([0, 1, 4095]))
    assert reader.find_bad_adc(12) is None
    reader.check_adc_data()


def test_payload_view_blocks_resize():
    frag = Fragment(ToyMetadata(1, 12).pack())
    w = ToyFragmentWriter(frag)
    w.resize(4)
    held = w.payload()
    with pytest.raises(FragmentError):
        w.resize(8)
    del held
    w.resize(8)
    assert w.total_adc_values() == 8


def test_writer_precondition():
    with pytest.raises(MalformedBuffer):
        ToyFragmentWriter(Fragment())
    with pytest.raises(MalformedBuffer):
        ToyFragmentWriter(_fill([1, 2, 3]))


def test_str():
    assert str(ToyFragment(_fill([1, 2, 3], trigger=5))) == "ToyFragment event size: 4, trigger number: 5"
