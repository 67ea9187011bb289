#!/usr/bin/env python3
import csv, random, sys
from pathlib import Path

from streamstat.classify import canonical_number

# Usage: python make_csv.py out.csv rows num_cols str_cols null_rate seed
# Example: python make_csv.py /tmp/mixed_1gb.csv 10_000_000 6 2 0.05 1337

def write_csv(out, rows: int, nnum: int, nstr: int, null_rate: float = 0.0, seed: int = 1337) -> Path:
    """Write a reproducible CSV with n<i> numeric and s<j> text columns.

    Integers and 6-decimal floats are written in their canonical form, so
    every non-empty n<i> cell classifies as numeric.
    """
    rng = random.Random(seed)
    p = Path(out)
    with p.open("w", newline="") as f:
        w = csv.writer(f)
        w.writerow([f"n{i}" for i in range(nnum)] + [f"s{j}" for j in range(nstr)])
        rr = rng.random
        ri = rng.randint
        choice = rng.choice
        letters = "abcdefxyz"
        for _ in range(rows):
            row = []
            for _ in range(nnum):
                if rr() < null_rate:
                    row.append("")
                elif rr() < 0.5:
                    row.append(str(ri(-10**6, 10**6)))
                else:
                    row.append(canonical_number(ri(-10**12, 10**12) / 10**6))
            for _ in range(nstr):
                if rr() < null_rate:
                    row.append("")
                else:
                    k = ri(3, 10)
                    row.append("".join(choice(letters) for _ in range(k)))
            w.writerow(row)
    return p


def main():
    if len(sys.argv) != 7:
        print("Usage: python make_csv.py out.csv rows num_cols str_cols null_rate seed", file=sys.stderr)
        sys.exit(2)
    out, rows, nnum, nstr, null_rate, seed = (
        sys.argv[1], int(sys.argv[2].replace('_', '')), int(sys.argv[3]),
        int(sys.argv[4]), float(sys.argv[5]), int(sys.argv[6])
    )
    write_csv(out, rows, nnum, nstr, null_rate, seed)

if __name__ == "__main__":
    main()
