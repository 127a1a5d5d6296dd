#!/usr/bin/env python

"""Demultiplex paired amplicon reads into per-sample fastq files.

Each library (a raw data dir named by the sample sheet) is processed
independently. Its file-pairs are run through the pipeline below,
optionally in parallel, and trimmed pairs of every sample are
collected into `{outpath}/{sample}_R1.fastq.gz` and `_R2.fastq.gz`.

Pipeline of a file-pair
-----------------------
1. pair mates by identifier (orphan mates are skipped)
2. drop pairs flagged as filtered (':Y:') on either mate
3. keep pairs with a forward and reverse primer, normalized so that
   R1 carries the forward primer
4. attribute pairs confirmed on both sides to a sample
5. drop pairs attributed to more than one sample
6. trim barcode+linker from both mates and write them

A library that cannot be read (missing dir, truncated or malformed
fastq) is marked as failed and its partial outputs are removed. Other
libraries are not affected.

Output files
------------
{outpath}/{sample}_R[12].fastq.gz
{outpath}/demultiplexing_stats.txt
{outpath}/demultiplexing_stats.json
{outpath}/embird_run.jsonl
{outpath}/id_lists/listmaster.{sample}.{file-pair}   (keep_id_lists)
"""

from typing import Dict, Tuple, List, Optional
import json
import shutil
from pathlib import Path
from dataclasses import dataclass, field
from concurrent.futures import ProcessPoolExecutor

from loguru import logger
import pandas as pd
from pydantic import ValidationError

from embird.core.exceptions import ConfigurationError, LibraryError
from embird.core.logger_setup import run_log_sink
from embird.schema import Params, SampleSpec, FilePairStats, LibraryStats, SampleStats
from embird.demux.sample_sheet import read_sample_sheet, group_by_library
from embird.demux.pair_fastqs import get_file_pairs
from embird.demux.fastq import load_pairs, quality_filter, write_fastq
from embird.demux.primer_filter import PrimerFilter
from embird.demux.barmatch import barmatch, resolve_attributions
from embird.demux.trim import Trimmer
from embird.demux.writer import SampleWriter

logger = logger.bind(name="embird")

ID_LISTS = "id_lists"


@dataclass
class Demux:
    raw_path: Path
    """: Parent dir of the library dirs named in the sample sheet."""
    sample_sheet: Path
    """: Path to the sample sheet (csv, tsv, or semicolon delimited)."""
    outpath: Path = Path("./embird_out")
    """: Dir where fastqs and stats are written. Cleared at each run."""
    max_barcode_mismatch: int = 0
    """: 0 for exact barcode matching or 1 for tolerant matching."""
    max_confirm_mismatch: int = 4
    """: Allowance over barcode+linker+primer in tolerant mode."""
    max_primer_mismatch: int = 2
    """: Allowance when searching primers in the primer filter."""
    cores: int = 1
    """: max number of parallel workers across file-pairs."""
    keep_id_lists: bool = False
    """: write the identifiers attributed to each sample per file-pair."""

    # attrs to be filled.
    params: Params = None
    """: Validated parameters."""
    _libraries: Dict[str, List[SampleSpec]] = field(default_factory=dict)
    """: Samples grouped by library dir name, in sample sheet order."""
    _file_pairs: Dict[str, Dict[str, Tuple[Path, Path]]] = field(default_factory=dict)
    """: {library: {file-pair name: (R1, R2)}} of existing library dirs."""
    _missing: Dict[str, str] = field(default_factory=dict)
    """: {library: error} of libraries that cannot be read."""
    stats: Dict[str, LibraryStats] = field(default_factory=dict)
    """: Results of the last run, by library."""

    def __post_init__(self):
        """Run subfunctions to setup object. Nothing is written."""
        self._get_params()
        self._get_samples()
        self._get_file_pairs()

    def _get_params(self) -> None:
        try:
            self.params = Params(
                raw_path=self.raw_path,
                sample_sheet=self.sample_sheet,
                outpath=self.outpath,
                max_barcode_mismatch=self.max_barcode_mismatch,
                max_confirm_mismatch=self.max_confirm_mismatch,
                max_primer_mismatch=self.max_primer_mismatch,
                cores=self.cores,
                keep_id_lists=self.keep_id_lists,
            )
        except ValidationError as err:
            msgs = "; ".join(i["msg"] for i in err.errors())
            raise ConfigurationError(f"invalid parameters: {msgs}") from err
        self.outpath = self.params.outpath
        logger.debug(f"params:\n{self.params}")

    def _get_samples(self) -> None:
        samples = read_sample_sheet(self.params.sample_sheet)
        self._libraries = group_by_library(samples)
        logger.info(
            f"{len(samples)} samples in {len(self._libraries)} libraries; "
            f"barcode matching is {'tolerant' if self.params.max_barcode_mismatch else 'exact'}")

    def _get_file_pairs(self) -> None:
        """Find file-pairs of each library. Bad names raise here."""
        for library in self._libraries:
            libdir = self.params.raw_path / library
            if not libdir.is_dir():
                self._missing[library] = f"raw data dir {libdir} not found"
                logger.error(f"library {library}: {self._missing[library]}")
                continue
            file_pairs = get_file_pairs(libdir)
            if not file_pairs:
                self._missing[library] = f"no fastq files found in {libdir}"
                logger.error(f"library {library}: {self._missing[library]}")
                continue
            self._file_pairs[library] = file_pairs
            logger.info(f"library {library}: {len(file_pairs)} file-pairs")

    @property
    def failed(self) -> List[str]:
        """Names of libraries that failed in the last run."""
        return [i for i, j in self.stats.items() if j.status == "failed"]

    def run(self) -> Dict[str, LibraryStats]:
        """Process every library and write outputs and stats."""
        self._clear_outpath()
        with run_log_sink(self.outpath / "embird_run.jsonl"):
            self.stats = {}
            for library, samples in self._libraries.items():
                self._run_library(library, samples)
            self._write_stats()
        if self.failed:
            logger.error(f"libraries failed: {', '.join(self.failed)}")
        return self.stats

    def _clear_outpath(self) -> None:
        """Remove outputs of a previous run, then create outpath."""
        if self.outpath.exists():
            logger.info(f"clearing previous outputs in {self.outpath}")
            shutil.rmtree(self.outpath)
        self.outpath.mkdir(parents=True)

    def _run_library(self, library: str, samples: List[SampleSpec]) -> None:
        """Demultiplex one library, isolating its failures."""
        ctx = RunContext(
            library=library,
            samples=samples,
            params=self.params,
            tmpdir=self.outpath / "tmpdir" / library,
            stats=LibraryStats(name=library, samples={i.name: SampleStats() for i in samples}),
        )
        self.stats[library] = ctx.stats
        log = logger.bind(library=library)
        log.info(f"processing library {library} ({len(samples)} samples)")

        try:
            if library in self._missing:
                raise LibraryError(self._missing[library])
            ctx.writers = {
                i.name: SampleWriter(i.name, self.outpath, ctx.tmpdir) for i in samples}
            self._demultiplex(ctx, self._file_pairs[library])
            for writer in ctx.writers.values():
                writer.finalize()
            ctx.stats.status = "complete"
        except (LibraryError, OSError, EOFError) as err:
            log.bind(file_pair=ctx.file_pair).error(
                f"library {library} failed: {err}. Its outputs are removed.")
            ctx.stats.status = "failed"
            ctx.stats.error = str(err)
            ctx.discard()
        finally:
            shutil.rmtree(ctx.tmpdir, ignore_errors=True)

        if ctx.stats.status == "complete":
            for sname, sstats in ctx.stats.samples.items():
                if not sstats.attributed:
                    log.bind(sample=sname).warning(f"Sample {sname} has 0 reads.")
            log.info(
                f"library {library}: {ctx.stats.attributed} pairs attributed, "
                f"{ctx.stats.discarded} discarded")

    def _demultiplex(self, ctx: "RunContext", file_pairs: Dict[str, Tuple[Path, Path]]) -> None:
        """Send file-pairs to process_file_pair, in parallel if cores > 1.

        Chunks are appended in sorted file-pair order in either case.
        """
        if ctx.params.cores > 1 and len(file_pairs) > 1:
            workers = min(ctx.params.cores, len(file_pairs))
            with ProcessPoolExecutor(max_workers=workers) as pool:
                rasyncs = {}
                for name, fastqs in file_pairs.items():
                    rasyncs[name] = pool.submit(
                        process_file_pair, name, fastqs, ctx.samples,
                        ctx.params, ctx.tmpdir / name, ctx.library)
                try:
                    for name, rasync in rasyncs.items():
                        ctx.file_pair = name
                        ctx.collect(rasync.result())
                except BaseException:
                    for rasync in rasyncs.values():
                        rasync.cancel()
                    raise
        else:
            for name, fastqs in file_pairs.items():
                ctx.file_pair = name
                fstats = process_file_pair(
                    name, fastqs, ctx.samples, ctx.params, ctx.tmpdir / name, ctx.library)
                ctx.collect(fstats)
        ctx.file_pair = None

    def _write_stats(self) -> None:
        """Write {outpath}/demultiplexing_stats.txt and .json.

        The txt file has a table of file-pair counts and a table of
        sample counters for each library. The json file is the dump
        of the LibraryStats objects.
        """
        stats_file = self.outpath / "demultiplexing_stats.txt"
        with open(stats_file, 'w', encoding="utf-8") as outfile:
            for library, lstats in self.stats.items():
                outfile.write(
                    f"# Library {library} ({lstats.status})\n######################\n")
                if lstats.error:
                    outfile.write(f"error: {lstats.error}\n\n")

                outfile.write("# Raw file statistics\n")
                columns = [
                    "total_pairs", "orphans", "filter_failed", "primer_matched",
                    "attributed", "ambiguous", "discarded"]
                file_df = pd.DataFrame(
                    index=[i.name for i in lstats.file_pairs],
                    columns=columns,
                    data=[[getattr(i, j) for j in columns] for i in lstats.file_pairs],
                )
                outfile.write(file_df.to_string() + "\n\n")

                outfile.write("# Sample demux statistics\n")
                sample_df = pd.DataFrame.from_dict(
                    {i: j.model_dump() for i, j in lstats.samples.items()},
                    orient="index",
                )
                outfile.write(sample_df.to_string() + "\n\n")

        json_file = self.outpath / "demultiplexing_stats.json"
        with open(json_file, 'w', encoding="utf-8") as outfile:
            data = {i: j.model_dump(mode="json") for i, j in self.stats.items()}
            outfile.write(json.dumps(data, indent=2) + "\n")
        logger.info(f"demultiplexing statistics written to {stats_file}")


@dataclass
class RunContext:
    """State of one library while its file-pairs are processed."""
    library: str
    samples: List[SampleSpec]
    params: Params
    tmpdir: Path
    """: Dir of the sample streams and worker chunks."""
    stats: LibraryStats
    writers: Dict[str, SampleWriter] = field(default_factory=dict)
    file_pair: Optional[str] = None
    """: Name of the file-pair being collected."""

    def collect(self, fstats: FilePairStats) -> None:
        """Append a finished file-pair's chunks and sum its stats."""
        chunkdir = self.tmpdir / fstats.name
        for sname, writer in self.writers.items():
            writer.append_chunk(
                chunkdir / f"{sname}_R1.fastq", chunkdir / f"{sname}_R2.fastq")
            self.stats.samples[sname].add(fstats.samples[sname])
        shutil.rmtree(chunkdir)
        self.stats.file_pairs.append(fstats)
        logger.bind(library=self.library, file_pair=fstats.name).info(
            f"{fstats.name}: {fstats.total_pairs} pairs, "
            f"{fstats.primer_matched} with primers, {fstats.attributed} attributed")

    def discard(self) -> None:
        """Remove outputs and id lists written for this library."""
        for writer in self.writers.values():
            writer.discard()
        if self.params.keep_id_lists:
            names = {f"listmaster.{i.name}" for i in self.samples}
            for path in (self.params.outpath / ID_LISTS).glob("listmaster.*"):
                if path.name.rsplit(".", 1)[0] in names:
                    path.unlink()


######################################################################
######################################################################


def process_file_pair(
    name: str,
    fastqs: Tuple[Path, Path],
    samples: List[SampleSpec],
    params: Params,
    chunkdir: Path,
    library: str = "",
) -> FilePairStats:
    """Run the pipeline on one file-pair and write per-sample chunks.

    Chunks are written to {chunkdir}/{sample}_R[12].fastq and are
    appended to the sample streams by the calling process.
    """
    log = logger.bind(library=library, file_pair=name)
    stats = FilePairStats(name=name, fastqs=fastqs)

    pairs, stats.orphans = load_pairs(fastqs)
    stats.total_pairs = len(pairs)
    passed = quality_filter(pairs)
    stats.filter_failed = len(passed.dropped)

    primed = PrimerFilter.from_samples(samples, params.max_primer_mismatch).run(passed.kept)
    stats.primer_matched = len(primed.kept)

    results = barmatch(
        primed.kept, samples, params.max_barcode_mismatch, params.confirm_mismatch)
    assigned, ambiguous = resolve_attributions(results)
    stats.ambiguous = len(ambiguous)

    pairs_by_id = {i.identifier: i for i in primed.kept}
    chunkdir.mkdir(parents=True, exist_ok=True)
    for sample, result in zip(samples, results):
        slog = log.bind(sample=sample.name)
        idents = assigned[sample.name]
        trimmed = Trimmer(sample, params.confirm_mismatch).trim_pairs(
            pairs_by_id[i] for i in idents)
        write_fastq(chunkdir / f"{sample.name}_R1.fastq", [i.r1 for i in trimmed], mode="w")
        write_fastq(chunkdir / f"{sample.name}_R2.fastq", [i.r2 for i in trimmed], mode="w")
        if params.keep_id_lists:
            write_id_list(params.outpath / ID_LISTS, sample.name, name, idents)

        sstats = result.stats
        stats.samples[sample.name] = sstats
        stats.attributed += sstats.attributed
        slog.debug(f"{sample.name}: {sstats.model_dump()}")
        if sstats.anomaly:
            slog.warning(
                f"{sample.name} in {name}: {sstats.forward_candidates} forward barcode "
                f"candidates but {sstats.forward_confirmed} confirmed on "
                "barcode+linker+primer.")
    return stats


def write_id_list(outdir: Path, sample: str, file_pair: str, identifiers: List[str]) -> Path:
    """Write identifiers attributed to a sample in one file-pair."""
    outdir.mkdir(parents=True, exist_ok=True)
    # '.' separates sample from file-pair in the name
    path = outdir / f"listmaster.{sample}.{file_pair.replace('.', '_')}"
    with open(path, 'w', encoding="ascii") as out:
        out.write("".join(f"{i}\n" for i in identifiers))
    return path


if __name__ == "__main__":
    pass
