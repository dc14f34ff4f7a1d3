from frag_core.crt import CRTFragment, record_size
from frag_core.fragment import Fragment
from frag_core.protocol import (
    CRT_ADC_LIMIT,
    CRT_HEADER_LEN,
    CRT_HEADER_MAGIC,
    CRT_HIT_MAGIC,
    CRT_MAX_HITS,
    CRT_NUM_CHANNELS,
    PLAUSIBLE_UNIXTIME_FLOOR,
)
from .const import ERRORS
from .dump import hexdump


def _err(code: str, **context) -> dict:
    return {"code": code, "message": ERRORS[code], **context}


def check_size_sufficient(frag: Fragment, errors: list) -> bool:
    """Layer 1: the header is readable at all."""
    size = frag.payload_byte_size()
    if size < CRT_HEADER_LEN:
        errors.append(_err("E_SIZE_SHORT", observed=size, expected=CRT_HEADER_LEN))
        return False
    return True


def check_size_consistent(frag: Fragment, errors: list) -> bool:
    """Layer 2: the byte extent is exactly what the declared hit count implies."""
    nhit = CRTFragment(frag).num_hits()
    size = frag.payload_byte_size()
    expected = record_size(nhit)
    if size != expected:
        errors.append(
            _err("E_SIZE_MISMATCH", observed=size, expected=expected, nhit=nhit, dump=hexdump(frag.data))
        )
        return False
    return True


def check_header(frag: Fragment, errors: list) -> bool:
    """Layer 3: magic, hit count and timestamp are plausible. Reports every bad field."""
    h = CRTFragment(frag).header()
    ok = True
    if h.magic != CRT_HEADER_MAGIC:
        errors.append(_err("E_HEADER_MAGIC", field="magic", observed=h.magic, expected=CRT_HEADER_MAGIC))
        ok = False
    if not 0 < h.nhit <= CRT_MAX_HITS:
        errors.append(_err("E_HEADER_NHIT", field="nhit", observed=h.nhit, expected=f"1..{CRT_MAX_HITS}"))
        ok = False
    if h.unixtime < PLAUSIBLE_UNIXTIME_FLOOR:
        errors.append(
            _err("E_HEADER_TIME", field="unixtime", observed=h.unixtime, expected=f">={PLAUSIBLE_UNIXTIME_FLOOR}")
        )
        ok = False
    return ok


def check_hits(frag: Fragment, errors: list) -> bool:
    """Layer 4: every declared hit is sane. Stops at the first bad hit."""
    view = CRTFragment(frag)
    for i in range(view.num_hits()):
        hit = view.hit(i)
        if hit.magic != CRT_HIT_MAGIC:
            errors.append(_err("E_HIT_MAGIC", hit=i, field="magic", observed=hit.magic, expected=CRT_HIT_MAGIC))
            return False
        if hit.channel >= CRT_NUM_CHANNELS:
            errors.append(
                _err("E_HIT_CHANNEL", hit=i, field="channel", observed=hit.channel, expected=f"0..{CRT_NUM_CHANNELS - 1}")
            )
            return False
        if not 0 <= hit.signed_adc < CRT_ADC_LIMIT:
            errors.append(
                _err("E_HIT_ADC", hit=i, field="adc", observed=hit.signed_adc, expected=f"0..{CRT_ADC_LIMIT - 1}")
            )
            return False
    return True


LAYERS = (check_size_sufficient, check_size_consistent, check_header, check_hits)


def verify_crt(frag: Fragment) -> dict:
    """Run the layers in order; each assumes the ones before it passed."""
    errors = []
    for layer in LAYERS:
        if not layer(frag, errors):
            return {"status": "FAIL", "error_count": len(errors), "errors": errors}
    return {"status": "PASS", "error_count": 0, "errors": []}


def is_good(frag: Fragment) -> bool:
    return verify_crt(frag)["status"] == "PASS"
