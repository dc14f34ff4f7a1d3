import random
import time
from pathlib import Path

from frag_core.crt import Hit, build_record
from frag_core.protocol import CRT_ADC_LIMIT, CRT_MAX_HITS, CRT_NUM_CHANNELS

# --- CONFIGURATION ---
N_MODULES = 4
FIFTY_MHZ = 50_000_000


def random_record(rng: random.Random, unixtime: int, bad_hit: bool = False) -> bytes:
    """One plausible record; with bad_hit, its last hit's channel is out of range."""
    nhit = rng.randint(1, CRT_MAX_HITS)
    channels = rng.sample(range(CRT_NUM_CHANNELS), nhit)
    hits = [Hit(channel=ch, adc=rng.randrange(CRT_ADC_LIMIT)) for ch in channels]
    if bad_hit:
        hits[-1] = hits[-1]._replace(channel=CRT_NUM_CHANNELS)
    return build_record(
        hits,
        module_num=rng.randrange(N_MODULES),
        unixtime=unixtime,
        fifty_mhz_time=rng.randrange(FIFTY_MHZ),
    )


def generate_stream(out_file, records: int = 10, bad_hit: bool = False, seed=None) -> Path:
    rng = random.Random(seed)
    path = Path(out_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    now = int(time.time())

    with open(path, "wb") as f:
        for i in range(records):
            # The bad record, if any, sits in the middle of the stream
            f.write(random_record(rng, now + i, bad_hit=bad_hit and i == records // 2))

    print(f"GENERATED: {path} ({records} records, bad_hit={bad_hit})")
    return path


if __name__ == "__main__":
    import sys

    # Usage:
    #   python tools/sim_crt.py OUT_FILE [--records N] [--seed S] [--bad-hit]

    args = [a for a in sys.argv[1:] if a]

    def pop_flag(arg_list: list[str], flag: str) -> tuple[bool, list[str]]:
        """Remove a boolean flag from an argv-style list."""
        if flag in arg_list:
            return True, [a for a in arg_list if a != flag]
        return False, arg_list

    def pop_value(arg_list: list[str], flag: str):
        if flag not in arg_list:
            return None, arg_list
        i = arg_list.index(flag)
        if i + 1 >= len(arg_list):
            raise SystemExit(f"{flag} requires a value")
        return int(arg_list[i + 1]), arg_list[:i] + arg_list[i + 2:]

    bad_hit, args = pop_flag(args, "--bad-hit")
    records, args = pop_value(args, "--records")
    seed, args = pop_value(args, "--seed")

    out = args[0] if len(args) > 0 else "crt_stream.bin"
    generate_stream(out, records=records or 10, bad_hit=bad_hit, seed=seed)
