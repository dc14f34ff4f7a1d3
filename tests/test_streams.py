import json

import pyarrow.parquet as pq
import pytest
from click.testing import CliRunner

from frag_compile.cli import main as compile_main
from frag_compile.streams import HITS_SCHEMA, CrtStreamScanner, compile_hits_evidence, hits_frame
from frag_core.crt import Hit, build_record
from frag_core.errors import FragmentWarning

T0 = 1_700_000_000


def _record(i, nhit=2, **kw):
    hits = [Hit(channel=c, adc=100 * i + c) for c in range(nhit)]
    kw.setdefault("module_num", i)
    kw.setdefault("unixtime", T0 + i)
    # keep the 50MHz counter bytes away from anything that looks like a header
    kw.setdefault("fifty_mhz_time", 0)
    return build_record(hits, **kw)


def _write(tmp_path, *records):
    p = tmp_path / "stream.bin"
    p.write_bytes(b"".join(records))
    return p


def test_clean_stream(tmp_path):
    recs = [_record(i, nhit=i + 1) for i in range(5)]
    scanner = CrtStreamScanner(_write(tmp_path, *recs))
    assert scanner.get_scan_stats() == {
        "corrupt_headers": 0,
        "garbage_bytes": 0,
        "resyncs": 0,
        "records": 5,
        "rejected": 0,
    }
    offsets = [off for off, _ in scanner.records]
    assert offsets[0] == 0
    assert offsets[1] == len(recs[0])


def test_resync_over_garbage(tmp_path):
    garbage = b"\x00" * 8 + b"\xff" * 16
    p = _write(tmp_path, _record(0), garbage, _record(1))
    with pytest.warns(FragmentWarning, match="Resyncing"):
        scanner = CrtStreamScanner(p)
    stats = scanner.get_scan_stats()
    assert stats["records"] == 2
    assert stats["corrupt_headers"] == 1
    assert stats["resyncs"] == 1
    assert stats["garbage_bytes"] == len(garbage)


def test_corrupt_magic_skips_record(tmp_path):
    first = bytearray(_record(0))
    first[0] ^= 0x01
    p = _write(tmp_path, bytes(first), _record(1), _record(2))
    with pytest.warns(FragmentWarning):
        scanner = CrtStreamScanner(p)
    assert [off for off, _ in scanner.records] == [len(first), 2 * len(first)]
    assert scanner.scan_stats["garbage_bytes"] == len(first)


def test_resync_is_byte_granular(tmp_path):
    p = _write(tmp_path, _record(0), b"\xff" * 5, _record(1), _record(2), _record(3))
    with pytest.warns(FragmentWarning, match="Resyncing"):
        scanner = CrtStreamScanner(p)
    stats = scanner.get_scan_stats()
    assert stats["records"] == 4
    assert stats["corrupt_headers"] == 1
    assert stats["resyncs"] == 1
    assert stats["garbage_bytes"] == 5
    assert [off for off, _ in scanner.records] == [0, 29, 53, 77]


@pytest.mark.parametrize("n_after", [7, 15])
def test_false_header_in_garbage_is_skipped(tmp_path, n_after):
    # "M\x40" reads as a 64-hit header. With 7 records after it the claimed
    # body runs past EOF; with 15 it is read whole and fails header checks.
    fake = b"M\x40" + bytes(6)
    after = [_record(i) for i in range(1, n_after + 1)]
    p = _write(tmp_path, _record(0), b"\xff" * 8, fake, *after)
    with pytest.warns(FragmentWarning):
        scanner = CrtStreamScanner(p)
    stats = scanner.get_scan_stats()
    assert stats["records"] == n_after + 1
    assert stats["rejected"] == 0
    assert stats["corrupt_headers"] == 2
    assert stats["resyncs"] == 2
    assert stats["garbage_bytes"] == 16


def test_implausible_header_fields_trigger_resync(tmp_path):
    bad = _record(1, unixtime=5)
    p = _write(tmp_path, _record(0), bad, _record(2))
    with pytest.warns(FragmentWarning, match="E_HEADER_TIME"):
        scanner = CrtStreamScanner(p)
    stats = scanner.get_scan_stats()
    assert stats["records"] == 2
    assert stats["corrupt_headers"] == 1
    assert stats["rejected"] == 0
    assert [off for off, _ in scanner.records] == [0, 2 * len(bad)]


def test_bad_hit_record_is_rejected_but_scan_continues(tmp_path):
    bad = build_record([Hit(0, 1), Hit(64, 2)], module_num=1, unixtime=T0 + 1)
    p = _write(tmp_path, _record(0), bad, _record(2))
    with pytest.warns(FragmentWarning, match="E_HIT_CHANNEL"):
        scanner = CrtStreamScanner(p)
    assert scanner.scan_stats["records"] == 2
    assert scanner.scan_stats["rejected"] == 1
    assert scanner.scan_stats["corrupt_headers"] == 0
    assert scanner.rejected[0]["offset"] == len(_record(0))
    assert scanner.rejected[0]["errors"][0]["code"] == "E_HIT_CHANNEL"


def test_resync_budget_limits_search(tmp_path):
    p = _write(tmp_path, _record(0), b"\xff" * 24, _record(1))
    with pytest.warns(FragmentWarning, match="Unable to resync"):
        scanner = CrtStreamScanner(p, max_resync_bytes=8)
    assert scanner.scan_stats["records"] == 1


def test_torn_tail_stops_scan(tmp_path):
    p = _write(tmp_path, _record(0), _record(1)[:-4])
    with pytest.warns(FragmentWarning, match="Torn"):
        scanner = CrtStreamScanner(p)
    assert scanner.scan_stats["records"] == 1


def test_unrecoverable_garbage(tmp_path):
    p = _write(tmp_path, b"\xff" * 64)
    with pytest.warns(FragmentWarning, match="Unable to resync"):
        scanner = CrtStreamScanner(p)
    assert scanner.records == []


def test_hits_frame_rows(tmp_path):
    scanner = CrtStreamScanner(_write(tmp_path, _record(0, nhit=2), _record(1, nhit=3)))
    df = hits_frame(scanner.records)
    assert len(df) == 5
    assert list(df["hit_index"]) == [0, 1, 0, 1, 2]
    assert list(df["module_num"]) == [0, 0, 1, 1, 1]
    assert list(df["adc"]) == [0, 1, 100, 101, 102]
    assert list(df.columns) == HITS_SCHEMA.names


def test_hits_frame_empty():
    df = hits_frame([])
    assert df.empty
    assert list(df.columns) == HITS_SCHEMA.names


def test_compile_hits_evidence(tmp_path):
    p = _write(tmp_path, _record(0, nhit=4), _record(1, nhit=1))
    out = tmp_path / "out"
    summary = compile_hits_evidence(p, out)
    assert summary["hits"] == 5

    table = pq.read_table(out / "hits.parquet")
    assert table.schema.equals(HITS_SCHEMA, check_metadata=False)
    assert table.num_rows == 5
    assert table.column("channel").to_pylist() == [0, 1, 2, 3, 0]

    scan = json.loads((out / "scan.json").read_text(encoding="utf-8"))
    assert scan["format"] == "CRT_V1"
    assert scan["stats"]["records"] == 2
    assert scan["rejected"] == []


def test_compile_cli_passes_resync_budget(tmp_path):
    p = _write(tmp_path, _record(0), b"\xff" * 24, _record(1))
    runner = CliRunner()

    r = runner.invoke(compile_main, [str(p), str(tmp_path / "wide")])
    assert r.exit_code == 0, r.output
    scan = json.loads((tmp_path / "wide" / "scan.json").read_text(encoding="utf-8"))
    assert scan["stats"]["records"] == 2

    r = runner.invoke(compile_main, [str(p), str(tmp_path / "narrow"), "--max-resync-bytes", "8"])
    assert r.exit_code == 0, r.output
    scan = json.loads((tmp_path / "narrow" / "scan.json").read_text(encoding="utf-8"))
    assert scan["stats"]["records"] == 1
