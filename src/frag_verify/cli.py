import json
from pathlib import Path
import click
from frag_core.fragment import Fragment
from .dump import render_crt
from .logic import verify_crt


def _load(path: Path) -> Fragment:
    return Fragment.from_bytes(path.read_bytes())


@click.group()
@click.version_option(package_name="frag-overlays")
def main():
    pass

@main.command("crt")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def crt_cmd(path: Path):
    """Verify one detector-hit record file."""
    result = verify_crt(_load(path))
    click.echo(json.dumps(result, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if result["status"] != "PASS":
        raise SystemExit(1)

@main.command("dump")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--hits", "max_hits", type=int, default=None, help="Print at most this many hits")
@click.option("--raw", is_flag=True, help="Append a hex/ASCII dump of the whole record")
def dump_cmd(path: Path, max_hits, raw: bool):
    """Print a detector-hit record's header and hits."""
    click.echo(render_crt(_load(path), max_hits=max_hits, raw=raw))

if __name__ == "__main__":
    main()
