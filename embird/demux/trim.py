#!/usr/bin/env python

"""Remove the barcode+linker span from attributed read pairs.

The primer is kept on both mates. Sequence and quality strings are
always cut by the same length, and the R2 header is rebuilt from R1's
so that both mates carry identical formatting.

Example
-------
>>> # '*'=barcode, '-'=linker, 'F'=forward primer.
>>> # before: ******--FFFFFFFFFFFFFFFFFFF.........
>>> # after:          FFFFFFFFFFFFFFFFFFF.........
"""

from typing import Iterable, List
from dataclasses import dataclass

from embird.schema import SampleSpec
from embird.demux.fastq import ReadPair, normalize_mate_headers
from embird.demux.matcher import match


@dataclass
class Trimmer:
    """Cut the barcode+linker span of one sample from its read pairs."""
    sample: SampleSpec
    """: Sample whose forward and reverse prefixes are removed."""
    max_mismatch: int = 0
    """: Same allowance that was used to attribute the pair."""

    def trim(self, pair: ReadPair) -> ReadPair:
        """Return the pair with both prefixes removed and R2 header rebuilt.

        Raises ValueError if either mate does not start with the sample's
        barcode+linker within max_mismatch.
        """
        fhit = match(pair.r1.codes, self.sample.forward_prefix, self.max_mismatch)
        rhit = match(pair.r2.codes, self.sample.reverse_prefix, self.max_mismatch)
        if fhit is None or rhit is None:
            raise ValueError(
                f"pair {pair.identifier} does not start with the barcode+linker "
                f"of sample {self.sample.name}")
        trimmed = ReadPair(pair.r1.trim_left(fhit.end), pair.r2.trim_left(rhit.end))
        return normalize_mate_headers(trimmed)

    def trim_pairs(self, pairs: Iterable[ReadPair]) -> List[ReadPair]:
        """Trim every pair, keeping their order."""
        return [self.trim(i) for i in pairs]
