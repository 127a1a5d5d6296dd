#!/usr/bin/env python

"""Parse the sample sheet into SampleSpec objects.

The sample sheet is a CSV, TSV, or semicolon delimited table with a
single header row. Columns are read by position, header names are
not checked:

>>> sample,fwd_dir,rev_dir,fwd_primer,rev_primer,fwd_barcode,rev_barcode,fwd_linker,rev_linker
>>> S01,LIB1,LIB1,GTGCCAGCMGCCGCGGTAA,GGACTACHVGGGTWTCTAAT,ACGTAC,TGCATG,GT,CC

Linker columns can be left empty.
"""

from typing import Dict, List
from pathlib import Path
from loguru import logger
import pandas as pd
from pandas.errors import EmptyDataError, ParserError
from pydantic import ValidationError

from embird.core.exceptions import ConfigurationError
from embird.core.utils import clean_name
from embird.schema import SampleSpec

logger = logger.bind(name="embird")

FIELDS = [
    "name",
    "forward_dir",
    "reverse_dir",
    "forward_primer",
    "reverse_primer",
    "forward_barcode",
    "reverse_barcode",
    "forward_linker",
    "reverse_linker",
]


def sniff_delimiter(path: Path) -> str:
    """Return the delimiter used in the header row."""
    with open(path, "r", encoding="utf-8") as infile:
        header = infile.readline()
    for delim in ("\t", ",", ";"):
        if delim in header:
            return delim
    return r"\s+"


def read_sample_sheet(path: Path) -> List[SampleSpec]:
    """Return a SampleSpec for each row of the sample sheet.

    Sample names with characters that are unsafe in file names are
    changed with a warning. Raises ConfigurationError on any malformed
    row or duplicated sample name.
    """
    path = Path(path)
    try:
        table = pd.read_csv(
            path,
            sep=sniff_delimiter(path),
            header=0,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            engine="python",
        ).fillna("")
    except (ParserError, EmptyDataError, UnicodeDecodeError) as err:
        raise ConfigurationError(
            f"Failed to parse sample sheet {path}: {err}") from err

    if table.shape[1] != len(FIELDS):
        raise ConfigurationError(
            f"sample sheet {path} has {table.shape[1]} columns, expected "
            f"{len(FIELDS)}: {', '.join(FIELDS)}.")
    if table.empty:
        raise ConfigurationError(f"sample sheet {path} contains no samples.")
    table.columns = FIELDS

    samples: Dict[str, SampleSpec] = {}
    for idx, row in enumerate(table.itertuples(index=False)):
        # header is line 1
        lineno = idx + 2
        values = row._asdict()
        name = clean_name(str(values["name"]).strip())
        if name != str(values["name"]).strip():
            logger.warning(f"changing name {values['name']} to {name} (bad characters).")
        values["name"] = name
        try:
            sample = SampleSpec(**values)
        except ValidationError as err:
            raise ConfigurationError(
                f"malformed sample sheet row (line {lineno}): {err}") from err
        if sample.name in samples:
            raise ConfigurationError(
                f"sample name {sample.name} occurs more than once in the "
                f"sample sheet (line {lineno}). Names must be unique.")
        samples[sample.name] = sample

    logger.debug(f"sample sheet:\n{table.to_string()}")
    return list(samples.values())


def group_by_library(samples: List[SampleSpec]) -> Dict[str, List[SampleSpec]]:
    """Return {library dir name: [samples]} in sample sheet order."""
    libraries: Dict[str, List[SampleSpec]] = {}
    for sample in samples:
        libraries.setdefault(sample.library, []).append(sample)
    return libraries
