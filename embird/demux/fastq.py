#!/usr/bin/env python

"""Read and ReadPair records parsed from paired fastq files.

Mates are reconciled by read identifier, the first word of the header
without an optional /1 or /2 suffix. Files from the sequencer list
mates in the same order, in which case pairs are yielded as they are
read. Otherwise mates are held until their partner is found.

Example Illumina header
-----------------------
>>> # identifier ------------------------------ comment ---------
>>> @M00123:45:000000000-ABCDE:1:1101:15589:1331 1:N:0:ATCACG
>>> #                                 mate/filtered/control/index
"""

from typing import Dict, Iterator, List, NamedTuple, Optional, Set, Tuple
import gzip
import itertools
import re
import zlib
from dataclasses import dataclass, replace
from functools import cached_property
from pathlib import Path
import numpy as np
from loguru import logger

from embird.core.exceptions import FastqFormatError
from embird.demux.matcher import encode_read

logger = logger.bind(name="embird")

# mate:filtered:... comment of Illumina (Casava >= 1.8) headers.
ILLUMINA_COMMENT = re.compile(r"^[12]:[YN]:")


@dataclass(frozen=True)
class Read:
    """One mate of a read pair. Immutable after parsing."""
    identifier: str
    sequence: str
    quality: str
    mate: int
    passed_filter: bool = True
    comment: str = ""

    @classmethod
    def from_lines(cls, lines: Tuple[str, str, str, str], mate: int) -> "Read":
        """Parse a Read from the four lines of a fastq record."""
        header, sequence, plus, quality = (i.rstrip("\r\n") for i in lines)
        if not header.startswith("@") or not plus.startswith("+"):
            raise FastqFormatError(f"malformed fastq record: {header[:60]}")
        if len(sequence) != len(quality):
            raise FastqFormatError(
                f"sequence and quality lengths differ in record {header[:60]}")
        fields = header[1:].split(maxsplit=1)
        if not fields:
            raise FastqFormatError("fastq record has an empty header")
        identifier = fields[0]
        if identifier.endswith(("/1", "/2")):
            identifier = identifier[:-2]
        comment = fields[1] if len(fields) > 1 else ""
        parts = comment.split(":")
        passed_filter = not (len(parts) > 1 and parts[1] == "Y")
        return cls(identifier, sequence, quality, mate, passed_filter, comment)

    @cached_property
    def codes(self) -> np.ndarray:
        """Sequence encoded for the matcher, computed once per read."""
        return encode_read(self.sequence)

    def trim_left(self, length: int) -> "Read":
        """Return a copy with length bases removed from seq and qual."""
        return replace(self, sequence=self.sequence[length:], quality=self.quality[length:])

    def with_mate(self, mate: int) -> "Read":
        """Return a copy labeled as mate (1|2), header comment included."""
        return replace(self, mate=mate, comment=set_comment_mate(self.comment, mate))

    def to_fastq(self) -> str:
        header = f"@{self.identifier} {self.comment}" if self.comment else f"@{self.identifier}"
        return f"{header}\n{self.sequence}\n+\n{self.quality}\n"


class ReadPair(NamedTuple):
    """Two mates sharing an identifier."""
    r1: Read
    r2: Read

    @property
    def identifier(self) -> str:
        return self.r1.identifier

    @property
    def passed_filter(self) -> bool:
        return self.r1.passed_filter and self.r2.passed_filter

    def swapped(self) -> "ReadPair":
        """Return the pair with mates exchanged and relabeled."""
        return ReadPair(self.r2.with_mate(1), self.r1.with_mate(2))


class Partition(NamedTuple):
    """Result of a pipeline stage: pairs kept, identifiers dropped."""
    kept: List[ReadPair]
    dropped: List[str]


def set_comment_mate(comment: str, mate: int) -> str:
    """Set the mate number of an Illumina header comment."""
    if ILLUMINA_COMMENT.match(comment):
        return f"{mate}{comment[1:]}"
    return comment


def normalize_mate_headers(pair: ReadPair) -> ReadPair:
    """Rebuild the R2 header comment from R1's so that both mates of
    a pair carry identical header formatting except the mate number.
    """
    read1 = pair.r1.with_mate(1)
    if ILLUMINA_COMMENT.match(read1.comment):
        read2 = replace(pair.r2, mate=2, comment=set_comment_mate(read1.comment, 2))
    else:
        read2 = pair.r2.with_mate(2)
    return ReadPair(read1, read2)


def iter_reads(fastq: Path, mate: int) -> Iterator[Read]:
    """Generator of Reads from a fastq file (gzip OK)."""
    fastq = Path(fastq)
    xopen = gzip.open if fastq.suffix == ".gz" else open
    with xopen(fastq, "rt", encoding="ascii") as infile:
        quart = itertools.zip_longest(infile, infile, infile, infile)
        try:
            for lines in quart:
                if None in lines:
                    if all(not i or not i.strip() for i in lines):
                        continue
                    raise FastqFormatError(f"truncated fastq record at end of {fastq}")
                yield Read.from_lines(lines, mate)
        except UnicodeDecodeError as err:
            raise FastqFormatError(f"non-ascii data in {fastq}") from err
        except (zlib.error, gzip.BadGzipFile, EOFError) as err:
            raise FastqFormatError(f"corrupt or truncated gzip data in {fastq}: {err}") from err


class PairedFastqReader:
    """Iterate over the ReadPairs of an (R1, R2) file-pair.

    The number of mates left without a partner is stored to .orphans
    once iteration is finished.
    """
    def __init__(self, fastqs: Tuple[Path, Path]):
        self.fastqs = tuple(Path(i) for i in fastqs)
        self.orphans = 0

    def __iter__(self) -> Iterator[ReadPair]:
        pending1: Dict[str, Read] = {}
        pending2: Dict[str, Read] = {}
        paired: Set[str] = set()
        reads1 = iter_reads(self.fastqs[0], 1)
        reads2 = iter_reads(self.fastqs[1], 2)

        for read1, read2 in itertools.zip_longest(reads1, reads2):
            if read1 is not None:
                _check_new(read1, paired, pending1, self.fastqs[0])
            if read2 is not None:
                _check_new(read2, paired, pending2, self.fastqs[1])

            # fast path: files are in the same order.
            if read1 and read2 and read1.identifier == read2.identifier:
                paired.add(read1.identifier)
                yield ReadPair(read1, read2)
                continue
            if read1 is not None:
                mate = pending2.pop(read1.identifier, None)
                if mate is not None:
                    paired.add(read1.identifier)
                    yield ReadPair(read1, mate)
                else:
                    pending1[read1.identifier] = read1
            if read2 is not None:
                mate = pending1.pop(read2.identifier, None)
                if mate is not None:
                    paired.add(read2.identifier)
                    yield ReadPair(mate, read2)
                else:
                    pending2[read2.identifier] = read2

        self.orphans = len(pending1) + len(pending2)
        if self.orphans:
            logger.warning(
                f"{self.orphans} reads in {self.fastqs[0].name} / "
                f"{self.fastqs[1].name} have no mate and were skipped.")


def _check_new(read: Read, paired: Set[str], pending: Dict[str, Read], fastq: Path) -> None:
    """Raise if a read identifier was already seen in the same file."""
    if read.identifier in paired or read.identifier in pending:
        raise FastqFormatError(
            f"read identifier {read.identifier} occurs twice in {fastq}")


def quality_filter(pairs: List[ReadPair]) -> Partition:
    """Keep pairs in which no mate is flagged as filtered (':Y:')."""
    kept = []
    dropped = []
    for pair in pairs:
        if pair.passed_filter:
            kept.append(pair)
        else:
            dropped.append(pair.identifier)
    return Partition(kept, dropped)


def load_pairs(fastqs: Tuple[Path, Path]) -> Tuple[List[ReadPair], int]:
    """Return all pairs of a file-pair and the number of orphan mates."""
    reader = PairedFastqReader(fastqs)
    pairs = list(reader)
    return pairs, reader.orphans


def write_fastq(path: Path, reads: List[Read], mode: str = "a") -> None:
    """Write (append) reads to a plain text fastq file."""
    with open(path, mode, encoding="ascii") as out:
        out.write("".join(i.to_fastq() for i in reads))


def read_fastq(path: Path, mate: Optional[int] = None) -> List[Read]:
    """Return all Reads of a fastq file, mate taken from path if None."""
    if mate is None:
        mate = 2 if "_R2" in Path(path).name else 1
    return list(iter_reads(path, mate))
