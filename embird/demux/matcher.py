#!/usr/bin/env python

"""Bounded-mismatch matching of IUPAC patterns against reads.

Only substitutions are counted, there are no insertions or deletions.
Each pattern symbol stands for a set of nucleotides (a `Base` flag
set) and a read position matches a pattern position if its base is
in that set. Degenerate symbols such as N or R therefore cost nothing
against any base in their set.

Both reads and patterns are encoded to uint8 bit masks through fixed
lookup tables, so that mismatches over every window of a read are
counted at once by numpy.

Example
-------
>>> match("ACGTACGTTTTT", "ACGTRCG", max_mismatches=0)
>>> # Hit(start=0, end=7, mismatches=0)
>>> match("TTACGTACG", "ACGTACG", 0, anchored=False, window=9)
>>> # Hit(start=2, end=9, mismatches=0)
"""

from typing import Dict, NamedTuple, Optional, Union
from enum import IntFlag
from functools import lru_cache
import numpy as np


class Base(IntFlag):
    """Nucleotides as bit flags, a set of bases is their union."""
    A = 1
    C = 2
    G = 4
    T = 8


IUPAC: Dict[str, Base] = {
    "A": Base.A,
    "C": Base.C,
    "G": Base.G,
    "T": Base.T,
    "R": Base.A | Base.G,
    "Y": Base.C | Base.T,
    "S": Base.G | Base.C,
    "W": Base.A | Base.T,
    "K": Base.G | Base.T,
    "M": Base.A | Base.C,
    "B": Base.C | Base.G | Base.T,
    "D": Base.A | Base.G | Base.T,
    "H": Base.A | Base.C | Base.T,
    "V": Base.A | Base.C | Base.G,
    "N": Base.A | Base.C | Base.G | Base.T,
}

# ascii code -> mask. Read symbols other than ACGT (e.g., no-call N)
# map to 0 and thus mismatch every pattern symbol.
PATTERN_MASKS = np.zeros(256, dtype=np.uint8)
READ_MASKS = np.zeros(256, dtype=np.uint8)
for _symbol, _bases in IUPAC.items():
    PATTERN_MASKS[ord(_symbol)] = int(_bases)
    PATTERN_MASKS[ord(_symbol.lower())] = int(_bases)
for _symbol in "ACGT":
    READ_MASKS[ord(_symbol)] = int(IUPAC[_symbol])
    READ_MASKS[ord(_symbol.lower())] = int(IUPAC[_symbol])

Sequence = Union[str, np.ndarray]


class Hit(NamedTuple):
    """Span [start, end) of a read matched by a pattern."""
    start: int
    end: int
    mismatches: int


def symbol_matches(symbol: str, base: str) -> bool:
    """Return True if read base is in the set coded by pattern symbol."""
    return bool(PATTERN_MASKS[ord(symbol)] & READ_MASKS[ord(base)])


def encode_read(sequence: str) -> np.ndarray:
    """Return read bases as an array of Base masks."""
    return READ_MASKS[np.frombuffer(sequence.encode("ascii"), dtype=np.uint8)]


@lru_cache(maxsize=None)
def encode_pattern(pattern: str) -> np.ndarray:
    """Return pattern symbols as an array of Base masks.

    Raises ValueError if the pattern has non-IUPAC symbols. Results
    are cached and read-only since patterns are reused for every read.
    """
    masks = PATTERN_MASKS[np.frombuffer(pattern.encode("ascii"), dtype=np.uint8)]
    if not masks.all():
        bad = sorted({i for i in pattern if not PATTERN_MASKS[ord(i)]})
        raise ValueError(f"pattern {pattern} contains non-IUPAC symbols {bad}")
    masks.flags.writeable = False
    return masks


def count_mismatches(sequence: Sequence, pattern: str) -> int:
    """Return the number of mismatches between equal length strings."""
    read = encode_read(sequence) if isinstance(sequence, str) else sequence
    masks = encode_pattern(pattern)
    if len(read) != len(masks):
        raise ValueError("sequence and pattern must have the same length")
    return int(np.count_nonzero((read & masks) == 0))


def match(
    sequence: Sequence,
    pattern: str,
    max_mismatches: int,
    anchored: bool = True,
    window: Optional[int] = None,
) -> Optional[Hit]:
    """Return the best Hit of pattern in sequence, or None.

    Parameters
    ----------
    sequence: str or encoded read (see `encode_read`).
    pattern: IUPAC pattern.
    max_mismatches: largest number of mismatches accepted.
    anchored: if True the pattern must start at offset 0, else every
        offset is tested and the leftmost of the least mismatched
        windows is returned.
    window: only the first `window` bases of the sequence are searched
        when not anchored. Default is the whole sequence.
    """
    masks = encode_pattern(pattern)
    size = len(masks)
    read = encode_read(sequence) if isinstance(sequence, str) else sequence
    if not anchored and window is not None:
        read = read[:window]
    if len(read) < size:
        return None
    if not size:
        return Hit(0, 0, 0)

    if anchored:
        mismatches = int(np.count_nonzero((read[:size] & masks) == 0))
        if mismatches > max_mismatches:
            return None
        return Hit(0, size, mismatches)

    # mismatches at every offset; argmin returns the leftmost minimum.
    windows = np.lib.stride_tricks.sliding_window_view(read, size)
    mismatches = np.count_nonzero((windows & masks) == 0, axis=1)
    start = int(mismatches.argmin())
    if mismatches[start] > max_mismatches:
        return None
    return Hit(start, start + size, int(mismatches[start]))
