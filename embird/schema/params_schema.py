#!/usr/bin/env python

"""Params schema for type checking and serialization.

Pydantic Models are similar to dataclases but they also include
*type validation*, meaning that if you try to set an attribute to
the wrong type it will raise an error. The Params model is built
from CLI or API arguments before any files are touched, so that
every configuration error is raised before output is written.

The barcode mismatch tolerance is either 0 (exact) or 1 (tolerant).
In tolerant mode a second, wider allowance (max_confirm_mismatch)
is applied when re-matching the full barcode+linker+primer span.
"""

# pylint: disable=no-self-argument, no-name-in-module

from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from loguru import logger

logger = logger.bind(name="embird")


class Params(BaseModel):
    """Parameters of an embird demultiplexing run."""
    raw_path: Path = Field(description="parent dir of the library dirs")
    sample_sheet: Path = Field(description="delimited table of sample specs")
    outpath: Path = Field(Path("./embird_out"), description="cleared before each run")
    max_barcode_mismatch: int = Field(0, description="0 (exact) or 1 (tolerant)")
    max_confirm_mismatch: int = Field(4, description="full-span allowance in tolerant mode")
    max_primer_mismatch: int = Field(2, description="allowance for the primer filter")
    cores: int = Field(1, description="parallel workers across file-pairs")
    keep_id_lists: bool = Field(False, description="write listmaster id files")

    model_config = ConfigDict(validate_assignment=True)

    def __str__(self):
        return self.model_dump_json(indent=2)

    @property
    def confirm_mismatch(self) -> int:
        """Allowance used over barcode+linker+primer (0 in exact mode)."""
        if not self.max_barcode_mismatch:
            return 0
        return self.max_confirm_mismatch

    @field_validator("raw_path")
    @classmethod
    def _raw_path_validator(cls, value: Path) -> Path:
        """Raw parent dir must exist, library dirs are checked later."""
        value = Path(value).expanduser().resolve()
        if not value.is_dir():
            raise ValueError(f"raw_path '{value}' is not a directory.")
        return value

    @field_validator("sample_sheet")
    @classmethod
    def _sample_sheet_validator(cls, value: Path) -> Path:
        value = Path(value).expanduser().resolve()
        if not value.is_file():
            raise ValueError(f"no sample sheet found at '{value}'.")
        return value

    @field_validator("outpath")
    @classmethod
    def _outpath_validator(cls, value: Path) -> Path:
        value = Path(value).expanduser().resolve()
        if value.exists() and not value.is_dir():
            raise ValueError(f"outpath '{value}' exists and is not a directory.")
        return value

    @field_validator("max_barcode_mismatch")
    @classmethod
    def _barcode_mismatch_validator(cls, value: int) -> int:
        if value not in (0, 1):
            raise ValueError(
                f"max_barcode_mismatch must be 0 or 1, not {value}.")
        return value

    @field_validator("max_confirm_mismatch", "max_primer_mismatch")
    @classmethod
    def _allowance_validator(cls, value: int) -> int:
        if value < 0:
            raise ValueError("mismatch allowances cannot be negative.")
        return value

    @field_validator("cores")
    @classmethod
    def _cores_validator(cls, value: int) -> int:
        if value < 1:
            raise ValueError("cores must be >= 1.")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "Params":
        """Confirm allowance must cover the barcode tolerance, and the
        outpath (cleared at run start) cannot hold the input data.
        """
        if self.max_barcode_mismatch and self.max_confirm_mismatch < self.max_barcode_mismatch:
            raise ValueError(
                "max_confirm_mismatch must be >= max_barcode_mismatch.")
        for path in (self.raw_path, self.sample_sheet):
            if path == self.outpath or self.outpath in path.parents:
                raise ValueError(
                    f"outpath '{self.outpath}' contains input data ({path}) "
                    "and cannot be cleared. Choose another outpath.")
        return self


if __name__ == "__main__":
    pass
