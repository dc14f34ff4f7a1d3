import sys
from pathlib import Path

from frag_core.protocol import CRT_HEADER_LEN


def main():
    if len(sys.argv) not in (2, 3):
        print("Usage: corrupt_one_byte.py <stream> [offset]")
        raise SystemExit(2)

    p = Path(sys.argv[1])
    b = bytearray(p.read_bytes())
    if len(b) < CRT_HEADER_LEN:
        print("File too small to corrupt safely.")
        raise SystemExit(2)

    # Default: flip a bit in the first record's magic byte ('M' -> 'L').
    # The scanner must then resync to the second record.
    idx = int(sys.argv[2]) if len(sys.argv) == 3 else 0
    b[idx] ^= 0x01
    p.write_bytes(bytes(b))
    print(f"Corrupted 1 byte at offset {idx} in {p}")

if __name__ == "__main__":
    main()
