#!/usr/bin/env python

"""Serializable schemas for sample specs and demultiplexing stats.

SampleSpec is parsed from one row of the sample sheet and is frozen
for the life of a library run. The Stats models are filled while
file-pairs are processed and dumped to JSON at the end of a run.

JSON SCHEMA (stats):
--------------------
{
    LIB1: {
        name: 'LIB1',
        status: 'complete',
        file_pairs: [{name: 'LIB1_001', total_pairs: 4, ...}, ...],
        samples: {sample1: {forward_candidates: 1, ...}, ...},
    },
    ...
}
"""

from typing import Dict, List, Tuple, Literal
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from embird.demux.matcher import IUPAC

__all__ = [
    "SampleSpec",
    "SampleStats",
    "FilePairStats",
    "LibraryStats",
]


class SampleSpec(BaseModel):
    """One sample: the barcodes, linkers, and primers on each mate."""
    name: str
    forward_dir: str
    reverse_dir: str
    forward_primer: str
    reverse_primer: str
    forward_barcode: str
    reverse_barcode: str
    forward_linker: str = ""
    reverse_linker: str = ""

    model_config = ConfigDict(frozen=True)

    @field_validator("name", "forward_dir", "reverse_dir")
    @classmethod
    def _label_validator(cls, value: str) -> str:
        value = str(value).strip()
        if not value:
            raise ValueError("sample name and directory tags cannot be empty")
        return value

    @field_validator(
        "forward_primer", "reverse_primer", "forward_barcode", "reverse_barcode")
    @classmethod
    def _required_sequence_validator(cls, value: str) -> str:
        value = _clean_sequence(value)
        if not value:
            raise ValueError("primers and barcodes cannot be empty")
        return value

    @field_validator("forward_linker", "reverse_linker")
    @classmethod
    def _linker_validator(cls, value: str) -> str:
        return _clean_sequence(value)

    @model_validator(mode="after")
    def _check_single_library(self) -> "SampleSpec":
        if self.forward_dir != self.reverse_dir:
            raise ValueError(
                f"forward ({self.forward_dir}) and reverse ({self.reverse_dir}) "
                "raw directory tags differ; samples cannot span libraries")
        return self

    @property
    def library(self) -> str:
        """Name of the raw data dir holding this sample's reads."""
        return self.forward_dir

    @property
    def forward_prefix(self) -> str:
        """Span trimmed from the start of R1."""
        return self.forward_barcode + self.forward_linker

    @property
    def reverse_prefix(self) -> str:
        """Span trimmed from the start of R2."""
        return self.reverse_barcode + self.reverse_linker

    @property
    def forward_pattern(self) -> str:
        return self.forward_prefix + self.forward_primer

    @property
    def reverse_pattern(self) -> str:
        return self.reverse_prefix + self.reverse_primer


def _clean_sequence(value: str) -> str:
    value = str(value).strip().upper()
    bad = sorted(set(value) - set(IUPAC))
    if bad:
        raise ValueError(f"sequence {value} contains non-IUPAC symbols {bad}")
    return value


class SampleStats(BaseModel):
    """Counters for one sample in one file-pair or summed over a library."""
    forward_candidates: int = 0
    reverse_candidates: int = 0
    forward_confirmed: int = 0
    reverse_confirmed: int = 0
    forward_artifacts: int = 0
    reverse_artifacts: int = 0
    partial: int = 0
    ambiguous: int = 0
    attributed: int = 0

    def add(self, other: "SampleStats") -> None:
        """Sum the counters of other into self."""
        for key in type(self).model_fields:
            setattr(self, key, getattr(self, key) + getattr(other, key))

    @property
    def anomaly(self) -> bool:
        """Barcode-only candidates that did not confirm on the full span."""
        return self.forward_candidates != self.forward_confirmed


class FilePairStats(BaseModel):
    """Results of processing one raw (R1, R2) file-pair."""
    name: str
    fastqs: Tuple[Path, Path]
    total_pairs: int = 0
    orphans: int = 0
    filter_failed: int = 0
    primer_matched: int = 0
    attributed: int = 0
    ambiguous: int = 0
    samples: Dict[str, SampleStats] = Field(default_factory=dict)

    @computed_field
    @property
    def discarded(self) -> int:
        return self.total_pairs - self.attributed


class LibraryStats(BaseModel):
    """Results of one library (raw dir) of a run."""
    name: str
    status: Literal["pending", "complete", "failed"] = "pending"
    error: str = ""
    file_pairs: List[FilePairStats] = Field(default_factory=list)
    samples: Dict[str, SampleStats] = Field(default_factory=dict)

    @computed_field
    @property
    def attributed(self) -> int:
        return sum(i.attributed for i in self.file_pairs)

    @computed_field
    @property
    def discarded(self) -> int:
        return sum(i.discarded for i in self.file_pairs)
