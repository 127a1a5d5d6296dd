#!/usr/bin/env python

"""Globals used commonly.

"""

import string


# used in sample_sheet.py to fix sample names used as file stems.
BADCHARS = (
    string.punctuation
    .replace("_", "")
    .replace("-", "")
    .replace(".", "") + " "
)

# raw fastq file extensions recognized in library directories.
FASTQ_SUFFIXES = (".fastq", ".fq", ".fastq.gz", ".fq.gz")


def clean_name(name: str) -> str:
    """Return name with each BADCHARS character replaced by '_'."""
    for badchar in BADCHARS:
        name = name.replace(badchar, "_")
    return name


def is_fastq(name: str) -> bool:
    """Return True if a file name has a fastq extension (gzip OK)."""
    return name.endswith(FASTQ_SUFFIXES)
