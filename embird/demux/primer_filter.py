#!/usr/bin/env python

"""Keep read pairs that carry a forward and a reverse primer.

Amplicons are ligated in either direction, so the forward primer can
be on R1 or on R2. Pairs are returned in a normalized orientation in
which R1 is always the mate with the forward primer.

Example
-------
>>> # '*'=barcode, '-'=linker, 'F'/'R'=forward/reverse primer.
>>> # R1: ******--FFFFFFFFFFFFFFFFFFF.........    (as is)
>>> # R2: ******--RRRRRRRRRRRRRRRRRRRR........
>>> #
>>> # R1: ******--RRRRRRRRRRRRRRRRRRRR........    (swapped)
>>> # R2: ******--FFFFFFFFFFFFFFFFFFF.........
"""

from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum
from loguru import logger

from embird.schema import SampleSpec
from embird.demux.fastq import Partition, ReadPair
from embird.demux.matcher import match

logger = logger.bind(name="embird")


class Orientation(Enum):
    """Physical orientation of a pair relative to the primers."""
    AS_IS = "as_is"
    SWAPPED = "swapped"


@dataclass
class PrimerFilter:
    """Primer pairs of a library and the windows they are searched in."""
    primer_pairs: List[Tuple[str, str]]
    """: Distinct (forward, reverse) primer combinations."""
    forward_window: int
    """: Number of R1 bases searched for a forward primer."""
    reverse_window: int
    """: Number of R2 bases searched for a reverse primer."""
    max_mismatch: int = 2
    """: Mismatches allowed between primer and read."""

    @classmethod
    def from_samples(cls, samples: Sequence[SampleSpec], max_mismatch: int) -> "PrimerFilter":
        """Window is the longest barcode+linker plus the primer length."""
        primer_pairs = []
        for sample in samples:
            pair = (sample.forward_primer, sample.reverse_primer)
            if pair not in primer_pairs:
                primer_pairs.append(pair)
        fprefix = max(len(i.forward_prefix) for i in samples)
        rprefix = max(len(i.reverse_prefix) for i in samples)
        return cls(
            primer_pairs=primer_pairs,
            forward_window=fprefix + max(len(i[0]) for i in primer_pairs),
            reverse_window=rprefix + max(len(i[1]) for i in primer_pairs),
            max_mismatch=max_mismatch,
        )

    def _has_primers(self, fmate, rmate, fprimer: str, rprimer: str) -> bool:
        fhit = match(fmate.codes, fprimer, self.max_mismatch, False, self.forward_window)
        if fhit is None:
            return False
        rhit = match(rmate.codes, rprimer, self.max_mismatch, False, self.reverse_window)
        return rhit is not None

    def orientation(self, pair: ReadPair) -> Optional[Orientation]:
        """Return how the primers lie on the pair, None if not found.

        The as-is orientation is tested first for every primer pair.
        """
        for fprimer, rprimer in self.primer_pairs:
            if self._has_primers(pair.r1, pair.r2, fprimer, rprimer):
                return Orientation.AS_IS
        for fprimer, rprimer in self.primer_pairs:
            if self._has_primers(pair.r2, pair.r1, fprimer, rprimer):
                return Orientation.SWAPPED
        return None

    def run(self, pairs: List[ReadPair]) -> Partition:
        """Return (normalized pairs, dropped identifiers)."""
        kept = []
        dropped = []
        nswapped = 0
        for pair in pairs:
            orient = self.orientation(pair)
            if orient is None:
                dropped.append(pair.identifier)
            elif orient is Orientation.SWAPPED:
                kept.append(pair.swapped())
                nswapped += 1
            else:
                kept.append(pair)
        logger.debug(
            f"primer filter kept {len(kept)} pairs ({nswapped} swapped), "
            f"dropped {len(dropped)}")
        return Partition(kept, dropped)
