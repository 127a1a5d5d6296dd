#!/usr/bin/env python

"""Count reads in the outputs of a demux run.

count_reads: the number of records and lines of each {sample}_R[12].fastq.gz
file is written to `{outpath}/sample_counts.gz.log`.

count_id_lists: the number of identifiers kept per sample, summed over
its `id_lists/listmaster.{sample}.{file-pair}` files, is written to
`{outpath}/sample_counts.log`.

Examples
--------
>>> embird count -o ./embird_out
>>> embird count -o ./embird_out --id-lists
"""

from typing import Dict, List
import gzip
from pathlib import Path
from loguru import logger
import pandas as pd

from embird.core.exceptions import EmbirdError

logger = logger.bind(name="embird")


def count_reads(outpath: Path) -> pd.DataFrame:
    """Return a table of reads and lines per output fastq.gz file."""
    outpath = Path(outpath)
    fastqs = sorted(outpath.glob("*.fastq.gz"))
    if not fastqs:
        raise EmbirdError(f"no .fastq.gz files found in {outpath}")

    data: Dict[str, List[int]] = {}
    for path in fastqs:
        nlines = 0
        with gzip.open(path, 'rt', encoding="ascii") as infile:
            for nlines, _ in enumerate(infile, 1):
                pass
        if nlines % 4:
            logger.warning(f"{path.name} has {nlines} lines, not a multiple of 4.")
        data[path.name] = [nlines // 4, nlines]

    table = pd.DataFrame.from_dict(data, orient="index", columns=["reads", "lines"])
    table.index.name = "file"
    logfile = outpath / "sample_counts.gz.log"
    with open(logfile, 'w', encoding="utf-8") as out:
        out.write("# Number of reads in the fastq.gz output files for each sample.\n")
        out.write(table.to_string() + "\n")
    logger.info(f"read counts written to {logfile}")
    return table


def count_id_lists(outpath: Path) -> pd.DataFrame:
    """Return a table of identifiers kept per sample over all file-pairs."""
    outpath = Path(outpath)
    listdir = outpath / "id_lists"
    paths = sorted(listdir.glob("listmaster.*")) if listdir.is_dir() else []
    if not paths:
        raise EmbirdError(
            f"no listmaster files found in {listdir}. Run demux with --keep-id-lists.")

    data: Dict[str, int] = {}
    for path in paths:
        # listmaster.{sample}.{file-pair}, file-pair names have no '.'
        sample = path.name.split(".", 1)[1].rsplit(".", 1)[0]
        with open(path, 'r', encoding="ascii") as infile:
            data[sample] = data.get(sample, 0) + sum(1 for _ in infile)

    table = pd.DataFrame.from_dict(data, orient="index", columns=["reads"])
    table.index.name = "sample"
    logfile = outpath / "sample_counts.log"
    with open(logfile, 'w', encoding="utf-8") as out:
        out.write("# Total number of reads in the listmaster files for each sample.\n")
        out.write(table.to_string() + "\n")
    logger.info(f"id list counts written to {logfile}")
    return table


if __name__ == "__main__":
    pass
