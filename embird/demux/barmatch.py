#!/usr/bin/env python

"""Attribute primer-normalized read pairs to samples by barcode.

Each sample is matched independently on both sides of a pair. The
forward pattern (barcode+linker+primer) is anchored at the start of
R1 and the reverse pattern at the start of R2. A pair is attributed
to a sample only if BOTH sides confirm.

Matching a side has two stages
------------------------------
A: the barcode alone is anchored with <= max_barcode_mismatch
   mismatches. These are the raw candidates.
B: the full barcode+linker+primer span is anchored with
   <= max_confirm_mismatch mismatches (0 in exact mode). This
   rejects barcode-only false positives.

Example R1 of an attributed pair
--------------------------------
>>> # '*'=barcode, '-'=linker, 'F'=forward primer.
>>> #
>>> # ******--FFFFFFFFFFFFFFFFFFF
>>> @M00123:45:000000000-ABCDE:1:1101:15589:1331 1:N:0:1
>>> ACGTACGTGTGCCAGCAGCCGCGGTAATACGGAGGGTGCAAGCGTTAATCGGAATTACTGGG
>>> +
>>> IIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIIII
"""

from typing import Dict, List, Optional, Set, Tuple
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from loguru import logger

from embird.schema import SampleSpec, SampleStats
from embird.demux.fastq import Read, ReadPair
from embird.demux.matcher import Hit, match

logger = logger.bind(name="embird")


class Side(Enum):
    """Which of a sample's patterns produced a match."""
    FORWARD = "forward"
    REVERSE = "reverse"


class PairState(Enum):
    """Terminal state of a (pair, sample) after classification.

    A pair confirmed on one side only (a forward or reverse candidate)
    ends as DISCARDED.
    """
    UNSEEN = "unseen"
    ATTRIBUTED = "attributed"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class MatchResult:
    """A confirmed match of one side's pattern on one mate."""
    identifier: str
    span: Tuple[int, int]
    mismatches: int
    orientation: Side
    mate: int


@dataclass
class SampleResult:
    """Classification of a list of pairs against one sample."""
    sample: str
    forward: Dict[str, MatchResult] = field(default_factory=dict)
    """: Deduplicated forward-confirmed matches on R1, by identifier."""
    reverse: Dict[str, MatchResult] = field(default_factory=dict)
    """: Deduplicated reverse-confirmed matches on R2, by identifier."""
    stats: SampleStats = field(default_factory=SampleStats)

    @property
    def attributed(self) -> List[str]:
        """Identifiers confirmed on both sides, in arrival order."""
        return [i for i in self.forward if i in self.reverse]

    def state(self, identifier: str) -> PairState:
        """Return the terminal state of a pair for this sample."""
        if identifier in self.forward and identifier in self.reverse:
            return PairState.ATTRIBUTED
        if identifier in self.forward or identifier in self.reverse:
            return PairState.DISCARDED
        return PairState.UNSEEN


@dataclass
class BarMatching:
    """Barcode matching of read pairs against a single sample."""
    sample: SampleSpec
    """: Sample whose barcodes, linkers and primers are matched."""
    max_barcode_mismatch: int = 0
    """: Allowance for the barcode alone (stage A), 0 or 1."""
    max_confirm_mismatch: int = 0
    """: Allowance for barcode+linker+primer (stage B)."""

    def __post_init__(self):
        # exact mode does not widen the full span allowance.
        if not self.max_barcode_mismatch:
            self.max_confirm_mismatch = 0

    @property
    def mode(self) -> str:
        return "tolerant" if self.max_barcode_mismatch else "exact"

    def match_side(self, read: Read, side: Side) -> Tuple[bool, Optional[Hit]]:
        """Return (barcode candidate, full span Hit or None) on a read."""
        if side is Side.FORWARD:
            barcode, pattern = self.sample.forward_barcode, self.sample.forward_pattern
        else:
            barcode, pattern = self.sample.reverse_barcode, self.sample.reverse_pattern
        if match(read.codes, barcode, self.max_barcode_mismatch) is None:
            return False, None
        return True, match(read.codes, pattern, self.max_confirm_mismatch)

    def classify(self, pairs: List[ReadPair]) -> SampleResult:
        """Return the forward and reverse sets and counters for pairs."""
        stats = SampleStats()
        results = {Side.FORWARD: defaultdict(list), Side.REVERSE: defaultdict(list)}
        expected = {Side.FORWARD: 1, Side.REVERSE: 2}

        for pair in pairs:
            for read in pair:
                for side in Side:
                    candidate, hit = self.match_side(read, side)
                    on_side = read.mate == expected[side]
                    if candidate and on_side:
                        if side is Side.FORWARD:
                            stats.forward_candidates += 1
                        else:
                            stats.reverse_candidates += 1
                    if hit is None:
                        continue
                    if on_side:
                        if side is Side.FORWARD:
                            stats.forward_confirmed += 1
                        else:
                            stats.reverse_confirmed += 1
                    results[side][pair.identifier].append(MatchResult(
                        identifier=pair.identifier,
                        span=(hit.start, hit.end),
                        mismatches=hit.mismatches,
                        orientation=side,
                        mate=read.mate,
                    ))

        forward, stats.forward_artifacts = deduplicate(results[Side.FORWARD], mate=1)
        reverse, stats.reverse_artifacts = deduplicate(results[Side.REVERSE], mate=2)
        result = SampleResult(self.sample.name, forward, reverse, stats)
        stats.attributed = len(result.attributed)
        stats.partial = len(forward) + len(reverse) - 2 * stats.attributed
        return result


def deduplicate(
    results: Dict[str, List[MatchResult]],
    mate: int,
) -> Tuple[Dict[str, MatchResult], int]:
    """Return one side's {identifier: match} set and its artifact count.

    An identifier is kept only if it matched a single window and that
    window is on the expected mate. Identifiers that also match on
    the other mate, or match more than one window, are artifacts.
    """
    kept = {}
    artifacts = 0
    for identifier, hits in results.items():
        if not any(i.mate == mate for i in hits):
            continue
        windows = {(i.mate, i.span) for i in hits}
        if len(windows) == 1:
            kept[identifier] = hits[0]
        else:
            artifacts += 1
    return kept, artifacts


def resolve_attributions(results: List[SampleResult]) -> Tuple[Dict[str, List[str]], Set[str]]:
    """Drop pairs attributed to more than one sample.

    Returns {sample: [identifiers]} of unique attributions and the
    set of multiply attributed identifiers. The attributed and
    ambiguous counters of each SampleResult are updated.
    """
    owners = Counter(i for result in results for i in result.attributed)
    ambiguous = {i for i, count in owners.items() if count > 1}
    assigned = {}
    for result in results:
        attributed = result.attributed
        unique = [i for i in attributed if i not in ambiguous]
        result.stats.ambiguous = len(attributed) - len(unique)
        result.stats.attributed = len(unique)
        assigned[result.sample] = unique
    if ambiguous:
        logger.warning(
            f"{len(ambiguous)} pairs matched more than one sample and were dropped.")
    return assigned, ambiguous


def barmatch(pairs: List[ReadPair], samples: List[SampleSpec], max_barcode_mismatch: int,
             max_confirm_mismatch: int) -> List[SampleResult]:
    """Classify pairs against each sample."""
    results = []
    for sample in samples:
        barmatcher = BarMatching(sample, max_barcode_mismatch, max_confirm_mismatch)
        results.append(barmatcher.classify(pairs))
    return results
