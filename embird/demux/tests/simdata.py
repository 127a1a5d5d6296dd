#!/usr/bin/env python

"""Synthetic amplicon reads, raw library dirs, and sample sheets.

Reads are built as barcode+linker+primer+payload so that the expected
trimmed output is always primer+payload.

>>> # '*'=barcode, '-'=linker, 'F'=forward primer, 'p'=payload
>>> # ******--FFFFFFFFFFFFFFFFFFFpppppppppppppppppppppppppppppppppp
"""

from typing import List, Sequence, Tuple
import gzip
from pathlib import Path

from embird.schema import SampleSpec
from embird.demux.fastq import Read
from embird.demux.sample_sheet import FIELDS

# IUPAC primers of the sample sheet and a concrete sequence of each.
FPRIMER = "GTGCCAGCMGCCGCGGTAA"
RPRIMER = "GGACTACHVGGGTWTCTAAT"
FPRIMER_SEQ = "GTGCCAGCAGCCGCGGTAA"
RPRIMER_SEQ = "GGACTACAAGGGTATCTAAT"
FLINKER = "GT"
RLINKER = "CC"
PAYLOAD1 = "TACGGAGGGTGCAAGCGTTAATCGGAATTACTGGG"
PAYLOAD2 = "CCTGTTTGCTCCCCACGCTTTCGCACCTCAGCGTC"

# name, forward barcode, reverse barcode
BARCODES = {
    "S1": ("ACGTAC", "TGCATG"),
    "S2": ("GATCGA", "CTAGCT"),
}

HEADER = ["sample", "fwd_dir", "rev_dir", "fwd_primer", "rev_primer",
          "fwd_barcode", "rev_barcode", "fwd_linker", "rev_linker"]


def identifier(num: int) -> str:
    return f"M00001:1:000000000-A1B2C:1:1101:{1000 + num}:2000"


def make_record(num: int, mate: int, sequence: str, filtered: bool = False) -> str:
    """Return a 4-line fastq record with a Casava 1.8 header."""
    flag = "Y" if filtered else "N"
    return f"@{identifier(num)} {mate}:{flag}:0:1\n{sequence}\n+\n{'I' * len(sequence)}\n"


def make_read(sequence: str, mate: int = 1, num: int = 0) -> Read:
    return Read.from_lines(make_record(num, mate, sequence).splitlines(True), mate)


def forward_seq(barcode: str, linker: str = FLINKER, payload: str = PAYLOAD1) -> str:
    return barcode + linker + FPRIMER_SEQ + payload


def reverse_seq(barcode: str, linker: str = RLINKER, payload: str = PAYLOAD2) -> str:
    return barcode + linker + RPRIMER_SEQ + payload


def make_pair(num: int, fbarcode: str, rbarcode: str, swapped: bool = False,
              filtered: bool = False) -> Tuple[str, str]:
    """Return (R1 record, R2 record) of an amplicon pair."""
    seq1 = forward_seq(fbarcode)
    seq2 = reverse_seq(rbarcode)
    if swapped:
        seq1, seq2 = seq2, seq1
    return (
        make_record(num, 1, seq1, filtered),
        make_record(num, 2, seq2, filtered),
    )


def example_pairs() -> List[Tuple[str, str]]:
    """The four pairs of the end-to-end scenario.

    1: S1 on both sides. 2: S2 on both sides. 3: no reverse primer on
    R2. 4: barcodes of no sample on either side.
    """
    pair3 = (
        make_record(3, 1, forward_seq(BARCODES["S1"][0])),
        make_record(3, 2, "T" * 60),
    )
    return [
        make_pair(1, *BARCODES["S1"]),
        make_pair(2, *BARCODES["S2"]),
        pair3,
        make_pair(4, "CCCCCC", "AAAAAA"),
    ]


def write_fastq_gz(path: Path, records: Sequence[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with gzip.open(path, "wt", encoding="ascii") as out:
        out.write("".join(records))
    return path


def write_library(rawdir: Path, library: str, pairs: Sequence[Tuple[str, str]],
                  stem: str = None) -> Tuple[Path, Path]:
    """Write pairs to {rawdir}/{library}/{stem}_R[12]_001.fastq.gz."""
    stem = stem or library
    libdir = Path(rawdir) / library
    return (
        write_fastq_gz(libdir / f"{stem}_R1_001.fastq.gz", [i[0] for i in pairs]),
        write_fastq_gz(libdir / f"{stem}_R2_001.fastq.gz", [i[1] for i in pairs]),
    )


def sample_row(name: str, library: str = "LIB1", barcodes: Tuple[str, str] = None) -> List[str]:
    fbar, rbar = barcodes or BARCODES[name]
    return [name, library, library, FPRIMER, RPRIMER, fbar, rbar, FLINKER, RLINKER]


def write_sample_sheet(path: Path, rows: Sequence[Sequence[str]], sep: str = ",") -> Path:
    path = Path(path)
    lines = [sep.join(HEADER)] + [sep.join(i) for i in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def make_sample(name: str, library: str = "LIB1", barcodes: Tuple[str, str] = None) -> SampleSpec:
    return SampleSpec(**dict(zip(FIELDS, sample_row(name, library, barcodes))))
