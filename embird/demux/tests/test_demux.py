#!/usr/bin/env python

"""Tests of the demultiplexing and count subcommands.

- test_demux_example_library
- test_demux_rerun_is_byte_identical
- test_demux_parallel_matches_serial
- test_demux_bad_mismatch_param
- test_demux_duplicate_sample_names
- test_demux_bad_fastq_name
- test_demux_missing_library
- test_demux_truncated_library
- test_demux_corrupt_gzip_library
- test_demux_repeated_pair_fails_library
- test_demux_zero_read_sample_warning
- test_count_reads_and_id_lists
- test_cli_demux
"""

import gzip
import json
import shutil
import tempfile
import unittest
from pathlib import Path

import embird as em
from embird.__main__ import main
from embird.core.exceptions import ConfigurationError
from embird.core.logger_setup import capture_logs
from embird.demux.fastq import read_fastq
from embird.demux.tests.simdata import (
    BARCODES, FPRIMER_SEQ, RPRIMER_SEQ, PAYLOAD1, PAYLOAD2,
    example_pairs, forward_seq, identifier, make_pair, make_record, reverse_seq,
    sample_row, write_fastq_gz, write_library, write_sample_sheet)


class TestDemux(unittest.TestCase):

    def setUp(self):
        self.testdir = Path(tempfile.mkdtemp(prefix="embird-tests-"))
        self.rawdir = self.testdir / "raw"
        self.outdir = self.testdir / "embird_out"
        self.sheet = self.testdir / "samples.csv"
        write_library(self.rawdir, "LIB1", example_pairs())
        write_sample_sheet(self.sheet, [sample_row("S1"), sample_row("S2")])

    def tearDown(self):
        shutil.rmtree(self.testdir)

    def get_tool(self, **kwargs):
        return em.Demux(
            raw_path=self.rawdir,
            sample_sheet=self.sheet,
            outpath=self.outdir,
            **kwargs,
        )

    def test_demux_example_library(self):
        stats = self.get_tool(max_barcode_mismatch=0).run()
        lib = stats["LIB1"]
        self.assertEqual(lib.status, "complete")
        self.assertEqual(lib.attributed, 2)
        self.assertEqual(lib.discarded, 2)

        fstats = lib.file_pairs[0]
        self.assertEqual(fstats.name, "LIB1_001")
        self.assertEqual(fstats.total_pairs, 4)
        self.assertEqual(fstats.primer_matched, 3)
        self.assertEqual(lib.samples["S1"].attributed, 1)
        self.assertEqual(lib.samples["S2"].attributed, 1)

        s1r1 = read_fastq(self.outdir / "S1_R1.fastq.gz")
        s1r2 = read_fastq(self.outdir / "S1_R2.fastq.gz")
        self.assertEqual([i.identifier for i in s1r1], [identifier(1)])
        self.assertEqual(s1r1[0].sequence, FPRIMER_SEQ + PAYLOAD1)
        self.assertEqual(s1r2[0].sequence, RPRIMER_SEQ + PAYLOAD2)
        self.assertEqual(s1r2[0].comment, "2:N:0:1")
        s2r1 = read_fastq(self.outdir / "S2_R1.fastq.gz")
        self.assertEqual([i.identifier for i in s2r1], [identifier(2)])

        with open(self.outdir / "demultiplexing_stats.json", encoding="utf-8") as indata:
            data = json.load(indata)
        self.assertEqual(data["LIB1"]["attributed"], 2)
        self.assertTrue((self.outdir / "demultiplexing_stats.txt").exists())
        self.assertFalse((self.outdir / "tmpdir" / "LIB1").exists())

        with open(self.outdir / "embird_run.jsonl", encoding="utf-8") as indata:
            records = [json.loads(i)["record"] for i in indata]
        self.assertTrue(any(i["extra"].get("file_pair") == "LIB1_001" for i in records))

    def test_demux_swapped_pair_is_attributed(self):
        pairs = example_pairs() + [make_pair(5, *BARCODES["S2"], swapped=True)]
        write_library(self.rawdir, "LIB1", pairs)
        stats = self.get_tool().run()
        self.assertEqual(stats["LIB1"].samples["S2"].attributed, 2)
        reads = read_fastq(self.outdir / "S2_R1.fastq.gz")
        self.assertEqual(reads[1].identifier, identifier(5))
        self.assertEqual(reads[1].sequence, FPRIMER_SEQ + PAYLOAD1)

    def test_demux_rerun_is_byte_identical(self):
        self.get_tool().run()
        first = {i.name: i.read_bytes() for i in self.outdir.glob("*.fastq.gz")}
        self.get_tool().run()
        second = {i.name: i.read_bytes() for i in self.outdir.glob("*.fastq.gz")}
        self.assertEqual(sorted(first), ["S1_R1.fastq.gz", "S1_R2.fastq.gz",
                                         "S2_R1.fastq.gz", "S2_R2.fastq.gz"])
        self.assertEqual(first, second)

    def test_demux_parallel_matches_serial(self):
        more = [make_pair(i, *BARCODES["S1"]) for i in range(10, 14)]
        write_library(self.rawdir, "LIB1", more, stem="LIB1_B")
        self.get_tool(cores=1).run()
        serial = {i.name: i.read_bytes() for i in self.outdir.glob("*.fastq.gz")}
        stats = self.get_tool(cores=2).run()
        parallel = {i.name: i.read_bytes() for i in self.outdir.glob("*.fastq.gz")}
        self.assertEqual(serial, parallel)
        self.assertEqual(stats["LIB1"].samples["S1"].attributed, 5)
        self.assertEqual([i.name for i in stats["LIB1"].file_pairs], ["LIB1_001", "LIB1_B_001"])

    def test_demux_bad_mismatch_param(self):
        with self.assertRaises(ConfigurationError):
            self.get_tool(max_barcode_mismatch=2)
        self.assertFalse(self.outdir.exists())

    def test_demux_duplicate_sample_names(self):
        write_sample_sheet(self.sheet, [sample_row("S1"), sample_row("S1")])
        with self.assertRaises(ConfigurationError):
            self.get_tool()
        self.assertFalse(self.outdir.exists())

    def test_demux_bad_fastq_name(self):
        write_fastq_gz(self.rawdir / "LIB1" / "LIB1_extra.fastq.gz", [make_record(9, 1, "ACGT")])
        with self.assertRaises(ConfigurationError):
            self.get_tool()
        self.assertFalse(self.outdir.exists())

    def test_demux_outpath_holds_input(self):
        with self.assertRaises(ConfigurationError):
            em.Demux(raw_path=self.rawdir, sample_sheet=self.sheet, outpath=self.testdir)

    def test_demux_missing_library(self):
        rows = [sample_row("S1"), sample_row("S3", "LIB2", ("TTGGCC", "GGTTAA"))]
        write_sample_sheet(self.sheet, rows)
        tool = self.get_tool()
        stats = tool.run()
        self.assertEqual(stats["LIB1"].status, "complete")
        self.assertEqual(stats["LIB1"].attributed, 1)
        self.assertEqual(stats["LIB2"].status, "failed")
        self.assertIn("not found", stats["LIB2"].error)
        self.assertEqual(tool.failed, ["LIB2"])
        self.assertTrue((self.outdir / "S1_R1.fastq.gz").exists())
        self.assertFalse((self.outdir / "S3_R1.fastq.gz").exists())

    def test_demux_truncated_library(self):
        rows = [sample_row("S1"), sample_row("S3", "LIB2", ("TTGGCC", "GGTTAA"))]
        write_sample_sheet(self.sheet, rows)
        libdir = self.rawdir / "LIB2"
        write_fastq_gz(libdir / "LIB2_R1_001.fastq.gz", [make_record(1, 1, "ACGT") + "@cut\nAC\n"])
        write_fastq_gz(libdir / "LIB2_R2_001.fastq.gz", [make_record(1, 2, "ACGT")])
        stats = self.get_tool().run()
        self.assertEqual(stats["LIB1"].status, "complete")
        self.assertEqual(stats["LIB2"].status, "failed")
        self.assertFalse((self.outdir / "S3_R1.fastq.gz").exists())
        self.assertFalse((self.outdir / "S3_R2.fastq.gz").exists())

    def test_demux_corrupt_gzip_library(self):
        rows = [sample_row("S1"), sample_row("S3", "LIB2", ("TTGGCC", "GGTTAA"))]
        write_sample_sheet(self.sheet, rows)
        libdir = self.rawdir / "LIB2"
        records1 = [make_record(i, 1, forward_seq("TTGGCC")) for i in range(50)]
        records2 = [make_record(i, 2, reverse_seq("GGTTAA")) for i in range(50)]
        r1 = write_fastq_gz(libdir / "LIB2_R1_001.fastq.gz", records1)
        write_fastq_gz(libdir / "LIB2_R2_001.fastq.gz", records2)
        data = bytearray(r1.read_bytes())
        for idx in range(len(data) // 3, len(data) - 8):
            data[idx] ^= 0xFF
        r1.write_bytes(bytes(data))

        stats = self.get_tool().run()
        self.assertEqual(stats["LIB1"].status, "complete")
        self.assertEqual(stats["LIB2"].status, "failed")
        self.assertTrue((self.outdir / "demultiplexing_stats.txt").exists())
        self.assertTrue((self.outdir / "demultiplexing_stats.json").exists())
        self.assertTrue((self.outdir / "S1_R1.fastq.gz").exists())
        self.assertFalse((self.outdir / "S3_R1.fastq.gz").exists())

    def test_demux_repeated_pair_fails_library(self):
        pairs = example_pairs()
        write_library(self.rawdir, "LIB1", pairs + pairs[1:2])
        stats = self.get_tool().run()
        self.assertEqual(stats["LIB1"].status, "failed")
        self.assertIn("occurs twice", stats["LIB1"].error)
        self.assertFalse((self.outdir / "S1_R1.fastq.gz").exists())

    def test_demux_zero_read_sample_warning(self):
        rows = [sample_row("S1"), sample_row("S2"), sample_row("S4", barcodes=("TTGGCC", "GGTTAA"))]
        write_sample_sheet(self.sheet, rows)
        with capture_logs("WARNING") as cap:
            stats = self.get_tool().run()
        self.assertEqual(stats["LIB1"].status, "complete")
        self.assertTrue(any("Sample S4 has 0 reads." in i for i in cap))
        with gzip.open(self.outdir / "S4_R1.fastq.gz", "rt") as indata:
            self.assertEqual(indata.read(), "")

    def test_count_reads_and_id_lists(self):
        self.get_tool(keep_id_lists=True).run()
        idlist = self.outdir / "id_lists" / "listmaster.S1.LIB1_001"
        self.assertEqual(idlist.read_text(), identifier(1) + "\n")

        reads = em.count_reads(self.outdir)
        self.assertEqual(reads.loc["S1_R1.fastq.gz", "reads"], 1)
        self.assertEqual(reads.loc["S1_R1.fastq.gz", "lines"], 4)
        self.assertTrue((self.outdir / "sample_counts.gz.log").exists())

        ids = em.count_id_lists(self.outdir)
        self.assertEqual(ids.loc["S1", "reads"], 1)
        self.assertEqual(ids.loc["S2", "reads"], 1)
        self.assertTrue((self.outdir / "sample_counts.log").exists())

    def test_cli_demux(self):
        cmd = ["demux", "-d", str(self.rawdir), "-s", str(self.sheet), "-o", str(self.outdir)]
        with self.assertRaises(SystemExit) as exit_:
            main(cmd)
        self.assertEqual(exit_.exception.code, 0)
        self.assertTrue((self.outdir / "S1_R1.fastq.gz").exists())

        with self.assertRaises(SystemExit) as exit_:
            main(["count", "-o", str(self.outdir)])
        self.assertEqual(exit_.exception.code, 0)

    def test_cli_bad_mismatch_exits_1(self):
        cmd = ["demux", "-d", str(self.rawdir), "-s", str(self.sheet),
               "-o", str(self.outdir), "-m", "2"]
        with self.assertRaises(SystemExit) as exit_:
            main(cmd)
        self.assertEqual(exit_.exception.code, 1)
        self.assertFalse(self.outdir.exists())


if __name__ == "__main__":
    unittest.main()
