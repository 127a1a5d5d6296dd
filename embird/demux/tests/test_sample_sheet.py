#!/usr/bin/env python

"""Tests of sample sheet parsing."""

import shutil
import tempfile
import unittest
from pathlib import Path

from embird.core.exceptions import ConfigurationError
from embird.demux.sample_sheet import group_by_library, read_sample_sheet
from embird.demux.tests.simdata import FPRIMER, HEADER, sample_row, write_sample_sheet


class TestReadSampleSheet(unittest.TestCase):

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp(prefix="embird-tests-"))
        self.path = self.tmpdir / "samples.csv"

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_csv(self):
        write_sample_sheet(self.path, [sample_row("S1"), sample_row("S2", "LIB2")])
        samples = read_sample_sheet(self.path)
        self.assertEqual([i.name for i in samples], ["S1", "S2"])
        self.assertEqual(samples[0].forward_primer, FPRIMER)
        self.assertEqual(samples[0].forward_prefix, "ACGTACGT")
        self.assertEqual(list(group_by_library(samples)), ["LIB1", "LIB2"])

    def test_tsv_lowercase_and_empty_linkers(self):
        row = sample_row("S1")
        row[5] = row[5].lower()
        row[7] = row[8] = ""
        write_sample_sheet(self.path, [row], sep="\t")
        sample = read_sample_sheet(self.path)[0]
        self.assertEqual(sample.forward_barcode, "ACGTAC")
        self.assertEqual(sample.forward_linker, "")
        self.assertEqual(sample.forward_prefix, "ACGTAC")

    def test_bad_name_characters(self):
        write_sample_sheet(self.path, [sample_row("S1")])
        text = self.path.read_text().replace("\nS1,", "\nS 1,")
        self.path.write_text(text)
        self.assertEqual(read_sample_sheet(self.path)[0].name, "S_1")

    def test_duplicate_names(self):
        write_sample_sheet(self.path, [sample_row("S1"), sample_row("S1")])
        with self.assertRaises(ConfigurationError):
            read_sample_sheet(self.path)

    def test_wrong_column_count(self):
        lines = [",".join(i[:7]) for i in (HEADER, sample_row("S1"))]
        self.path.write_text("\n".join(lines) + "\n")
        with self.assertRaises(ConfigurationError):
            read_sample_sheet(self.path)

    def test_non_iupac_barcode(self):
        row = sample_row("S1")
        row[5] = "ACGTXC"
        write_sample_sheet(self.path, [row])
        with self.assertRaises(ConfigurationError):
            read_sample_sheet(self.path)

    def test_empty_primer(self):
        row = sample_row("S1")
        row[3] = ""
        write_sample_sheet(self.path, [row])
        with self.assertRaises(ConfigurationError):
            read_sample_sheet(self.path)

    def test_forward_and_reverse_dirs_differ(self):
        row = sample_row("S1")
        row[2] = "LIB2"
        write_sample_sheet(self.path, [row])
        with self.assertRaises(ConfigurationError):
            read_sample_sheet(self.path)

    def test_header_only(self):
        write_sample_sheet(self.path, [])
        with self.assertRaises(ConfigurationError):
            read_sample_sheet(self.path)


if __name__ == "__main__":
    unittest.main()
