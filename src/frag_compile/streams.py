from __future__ import annotations

import json
import struct
from pathlib import Path
from typing import BinaryIO
from warnings import warn

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from frag_core.crt import CRTFragment, record_size
from frag_core.errors import FragmentWarning
from frag_core.fragment import Fragment
from frag_core.protocol import (
    CRT_HEADER_FMT,
    CRT_HEADER_LEN,
    CRT_HEADER_MAGIC,
    CRT_MAX_HITS,
    DEFAULT_MAX_GARBAGE_BYTES,
    DEFAULT_MAX_RESYNC_BYTES,
)
from frag_verify.logic import verify_crt

HITS_SCHEMA = pa.schema(
    [
        ("offset", pa.int64()),
        ("module_num", pa.uint16()),
        ("unixtime", pa.int32()),
        ("fifty_mhz_time", pa.uint32()),
        ("hit_index", pa.uint8()),
        ("channel", pa.uint8()),
        ("adc", pa.uint16()),
    ]
)


def _plausible_header(header: bytes) -> bool:
    if len(header) < CRT_HEADER_LEN:
        return False
    magic, nhit = header[0], header[1]
    return magic == CRT_HEADER_MAGIC and 0 < nhit <= CRT_MAX_HITS


class CrtStreamScanner:
    """Walks a file of back-to-back detector-hit records.

    - Each record's length follows from the hit count in its header.
    - A candidate that is implausible, runs past EOF or fails header checks is
      a corrupt header; the scan resyncs byte by byte to the next plausible one.
    - Records whose header is sane but whose hits are not are rejected, kept
      with their errors, and also resynced past.
    """

    def __init__(self, stream_path: Path, max_resync_bytes: int = DEFAULT_MAX_RESYNC_BYTES):
        self.stream_path = Path(stream_path)
        self.max_resync_bytes = max_resync_bytes
        self.records: list[tuple[int, Fragment]] = []
        self.rejected: list[dict] = []
        self.scan_stats = {
            "corrupt_headers": 0,
            "garbage_bytes": 0,
            "resyncs": 0,
            "records": 0,
            "rejected": 0,
        }

        self._scan()

    def _resync(self, f: BinaryIO, start_pos: int) -> int:
        """Scan forward from start_pos for the next plausible header.

        Returns the absolute offset of the header, or -1 if none starts within
        max_resync_bytes.
        """
        chunk_size = 64 * 1024  # 64KB
        magic_bytes = bytes([CRT_HEADER_MAGIC])
        limit = start_pos + self.max_resync_bytes

        pos = start_pos
        while pos < limit:
            want = min(chunk_size, limit - pos)
            # Read a header's worth past the window so a match near its end is complete.
            f.seek(pos)
            chunk = f.read(want + CRT_HEADER_LEN - 1)

            i = chunk.find(magic_bytes, 0, want)
            while i != -1:
                if _plausible_header(chunk[i : i + CRT_HEADER_LEN]):
                    return pos + i
                i = chunk.find(magic_bytes, i + 1, want)

            if len(chunk) < want + CRT_HEADER_LEN - 1:
                return -1
            pos += want

        return -1

    def _skip_past(self, f: BinaryIO, start_off: int) -> bool:
        """Resync from just after start_off. False when the stream is unrecoverable."""
        next_off = self._resync(f, start_off + 1)
        if next_off == -1:
            warn("Unable to resync CRT stream. Stopping scan.", FragmentWarning)
            return False

        garbage = next_off - start_off
        self.scan_stats["garbage_bytes"] += garbage
        self.scan_stats["resyncs"] += 1
        if garbage > DEFAULT_MAX_GARBAGE_BYTES:
            warn(f"Large garbage span during resync: {garbage} bytes", FragmentWarning)

        f.seek(next_off)
        return True

    def _scan(self) -> None:
        with open(self.stream_path, "rb") as f:
            while True:
                start_off = f.tell()
                header = f.read(CRT_HEADER_LEN)

                # Clean EOF
                if len(header) == 0:
                    break

                # Truncated header
                if len(header) < CRT_HEADER_LEN:
                    warn(f"Truncated CRT header at offset {start_off}", FragmentWarning)
                    break

                # 1. Header plausibility and resync
                if not _plausible_header(header):
                    self.scan_stats["corrupt_headers"] += 1
                    magic, nhit = struct.unpack_from(CRT_HEADER_FMT, header)[:2]
                    warn(
                        f"Corrupt CRT header (magic 0x{magic:02x}, nhit {nhit}) at offset {start_off}. Resyncing.",
                        FragmentWarning,
                    )
                    if not self._skip_past(f, start_off):
                        break
                    continue

                # 2. Record read; a body past EOF means the header was not real
                length = record_size(header[1])
                body = f.read(length - CRT_HEADER_LEN)
                if len(body) != length - CRT_HEADER_LEN:
                    self.scan_stats["corrupt_headers"] += 1
                    warn(f"Torn CRT record at offset {start_off}. Resyncing.", FragmentWarning)
                    if not self._skip_past(f, start_off):
                        break
                    continue

                # 3. Structural validation
                frag = Fragment.from_bytes(header + body)
                result = verify_crt(frag)
                if result["status"] != "PASS":
                    codes = ",".join(e["code"] for e in result["errors"])
                    if result["errors"][0]["code"].startswith("E_HIT_"):
                        self.scan_stats["rejected"] += 1
                        self.rejected.append({"offset": start_off, "errors": result["errors"]})
                        warn(f"Rejected CRT record at offset {start_off}: {codes}. Resyncing.", FragmentWarning)
                    else:
                        self.scan_stats["corrupt_headers"] += 1
                        warn(f"Implausible CRT header at offset {start_off}: {codes}. Resyncing.", FragmentWarning)
                    if not self._skip_past(f, start_off):
                        break
                    continue

                self.records.append((start_off, frag))
                self.scan_stats["records"] += 1

    def get_scan_stats(self) -> dict:
        return dict(self.scan_stats)


def hits_frame(records: list[tuple[int, Fragment]]) -> pd.DataFrame:
    """One row per hit of every record, in stream order."""
    frames = []
    for offset, frag in records:
        view = CRTFragment(frag)
        h = view.header()
        hits = view.hits()
        frames.append(
            pd.DataFrame(
                {
                    "offset": offset,
                    "module_num": h.module_num,
                    "unixtime": h.unixtime,
                    "fifty_mhz_time": h.fifty_mhz_time,
                    "hit_index": range(len(hits)),
                    "channel": hits["channel"].copy(),
                    "adc": hits["adc"].copy(),
                }
            )
        )
    if not frames:
        return HITS_SCHEMA.empty_table().to_pandas()
    return pd.concat(frames, ignore_index=True)


def compile_hits_evidence(
    stream_path: Path, out_path: Path, max_resync_bytes: int = DEFAULT_MAX_RESYNC_BYTES
) -> dict:
    """Build OUT/hits.parquet and OUT/scan.json from a detector-hit stream."""
    scanner = CrtStreamScanner(stream_path, max_resync_bytes=max_resync_bytes)
    out_path = Path(out_path)
    out_path.mkdir(parents=True, exist_ok=True)

    df = hits_frame(scanner.records)
    table = pa.Table.from_pandas(df, schema=HITS_SCHEMA, preserve_index=False)
    pq.write_table(table, out_path / "hits.parquet")

    stats = scanner.get_scan_stats()
    summary = {
        "format": CRTFragment.FORMAT.name,
        "stats": stats,
        "hits": len(df),
        "rejected": scanner.rejected,
    }
    (out_path / "scan.json").write_text(
        json.dumps(summary, sort_keys=True, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    return summary
