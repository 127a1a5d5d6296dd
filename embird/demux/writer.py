#!/usr/bin/env python

"""Per-sample output streams of a library run.

Trimmed pairs are appended to plain text R1 and R2 streams in a tmp
dir while a library is processed, and the streams are gzip compressed
to `{outpath}/{sample}_R1.fastq.gz` and `{outpath}/{sample}_R2.fastq.gz`
once every file-pair of the library is finished.

Compressed files have no embedded name or timestamp, so rerunning
the same data produces byte-identical outputs.
"""

from typing import Tuple
import gzip
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from loguru import logger

logger = logger.bind(name="embird")


@dataclass
class SampleWriter:
    """Single writer of a sample's R1 and R2 streams."""
    name: str
    """: Sample name, used as the output file stem."""
    outpath: Path
    """: Dir where the compressed outputs are written."""
    tmpdir: Path
    """: Dir of the uncompressed streams."""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.tmpdir.mkdir(exist_ok=True, parents=True)
        for path in self.streams:
            path.write_text("", encoding="ascii")

    @property
    def streams(self) -> Tuple[Path, Path]:
        return (
            self.tmpdir / f"{self.name}_R1.fastq",
            self.tmpdir / f"{self.name}_R2.fastq",
        )

    @property
    def outputs(self) -> Tuple[Path, Path]:
        return (
            self.outpath / f"{self.name}_R1.fastq.gz",
            self.outpath / f"{self.name}_R2.fastq.gz",
        )

    def append_chunk(self, chunk1: Path, chunk2: Path) -> None:
        """Append R1 and R2 chunk files written by a worker."""
        with self._lock:
            for chunk, stream in zip((chunk1, chunk2), self.streams):
                with open(chunk, "rb") as indata, open(stream, "ab") as out:
                    shutil.copyfileobj(indata, out)

    def finalize(self) -> Tuple[Path, Path]:
        """Compress the streams to the output files and remove them."""
        with self._lock:
            for stream, output in zip(self.streams, self.outputs):
                compress(stream, output)
                stream.unlink()
        logger.debug(f"wrote {self.outputs[0].name} and {self.outputs[1].name}")
        return self.outputs

    def discard(self) -> None:
        """Remove streams and outputs, e.g., of a failed library."""
        with self._lock:
            for path in self.streams + self.outputs:
                if path.exists():
                    path.unlink()


def compress(src: Path, dst: Path) -> None:
    """Gzip src to dst with a fixed header (no name, mtime=0)."""
    with open(src, "rb") as indata, open(dst, "wb") as raw:
        with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as out:
            shutil.copyfileobj(indata, out)
