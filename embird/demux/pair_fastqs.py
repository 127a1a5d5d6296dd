#!/usr/bin/env python

"""Group raw fastq files of a library dir into (R1, R2) file-pairs.

Raw files must expose a mate marker (_R1 or _R2) followed by an
optional per-pair suffix, as in the Illumina naming convention:
>>> 'LIB1_S1_L001_R1_001.fastq.gz'  # pair 'LIB1_S1_L001_001', mate 1
>>> 'LIB1_S1_L001_R2_001.fastq.gz'  # pair 'LIB1_S1_L001_001', mate 2
>>> 'plate3_R1.fq'                  # pair 'plate3', mate 1

Any fastq file that does not follow this convention, or lacks its
partner mate, raises a ConfigurationError before reads are consumed.
"""

from typing import Dict, Tuple
from pathlib import Path
import re
from loguru import logger

from embird.core.exceptions import ConfigurationError
from embird.core.utils import is_fastq

logger = logger.bind(name="embird")

FASTQ_NAME = re.compile(
    r"^(?P<prefix>.+)_R(?P<mate>[12])(?P<suffix>_[^.]+)?\.(?:fastq|fq)(?:\.gz)?$"
)


def parse_fastq_name(path: Path) -> Tuple[str, int]:
    """Return (pair name, mate number) parsed from a fastq file name.

    Example
    -------
    >>> parse_fastq_name(Path("name_prefix_001_R1_002.fastq.gz"))
    >>> # ("name_prefix_001_002", 1)
    """
    hit = FASTQ_NAME.match(path.name)
    if hit is None:
        raise ConfigurationError(
            f"fastq file name ({path.name}) has no mate marker. Raw file "
            "names must contain _R1 or _R2, optionally followed by a '_' "
            "suffix, before the .fastq/.fq(.gz) extension.")
    name = hit.group("prefix") + (hit.group("suffix") or "")
    return name, int(hit.group("mate"))


def get_file_pairs(libdir: Path) -> Dict[str, Tuple[Path, Path]]:
    """Return {pair name: (R1, R2)} for fastq files in a library dir.

    Pairs are sorted by name. Files without a fastq extension are
    ignored.
    """
    mates: Dict[str, Dict[int, Path]] = {}
    for path in sorted(Path(libdir).iterdir()):
        if not path.is_file() or not is_fastq(path.name):
            if path.is_file():
                logger.debug(f"ignoring non-fastq file {path.name}")
            continue
        name, mate = parse_fastq_name(path)
        paths = mates.setdefault(name, {})
        if mate in paths:
            raise ConfigurationError(
                f"fastq files {paths[mate].name} and {path.name} both map to "
                f"mate R{mate} of pair '{name}'.")
        paths[mate] = path.expanduser().resolve()

    file_pairs = {}
    for name in sorted(mates):
        paths = mates[name]
        if set(paths) != {1, 2}:
            found = next(iter(paths.values()))
            raise ConfigurationError(
                f"fastq file {found.name} in {libdir} has no paired R1/R2 "
                "partner. Paired files should have matching names except "
                "for _R1 and _R2.")
        file_pairs[name] = (paths[1], paths[2])
        logger.debug(f"PE fastqs: {name}: {(paths[1].name, paths[2].name)}")
    return file_pairs
