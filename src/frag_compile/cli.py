"""Detector-hit stream to parquet compiler."""
from __future__ import annotations

from pathlib import Path

import click

from frag_compile.streams import compile_hits_evidence
from frag_core.protocol import DEFAULT_MAX_RESYNC_BYTES


@click.command()
@click.argument("stream", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--max-resync-bytes",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_RESYNC_BYTES,
    show_default=True,
    help="Give up on a corrupt stream after scanning this many bytes for the next header",
)
def main(stream: Path, out: Path, max_resync_bytes: int) -> None:
    """Scan a detector-hit STREAM and write OUT/hits.parquet."""
    print(f"Scanning CRT stream: {stream}")
    try:
        summary = compile_hits_evidence(stream, out, max_resync_bytes=max_resync_bytes)
    except Exception as e:
        # Fail closed with a single-line reason; no stack traces in pipelines.
        print(f"FATAL: {e}")
        raise SystemExit(1)

    stats = summary["stats"]
    print(f"PASS: Hits written to {out / 'hits.parquet'}")
    print(f"  Records: {stats['records']}")
    print(f"  Hits: {summary['hits']}")
    print(f"  Rejected: {stats['rejected']}")
    print(f"  Resyncs: {stats['resyncs']} ({stats['garbage_bytes']} garbage bytes)")


if __name__ == "__main__":
    main()
