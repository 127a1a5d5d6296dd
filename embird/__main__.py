#!/usr/bin/env python

"""Command line interface.

Examples
--------
>>> embird demux -d RAW -s SAMPLES.csv -o ./embird_out
>>> embird demux -d RAW -s SAMPLES.csv -o ./embird_out -m 1 -c 8
>>> embird count -o ./embird_out --id-lists
"""

import sys
import argparse
from pathlib import Path
from loguru import logger
import embird as em
from embird.core.exceptions import EmbirdError

logger = logger.bind(name="embird")
PARAMS = em.schema.Params.model_fields

VERSION = str(em.__version__)
HEADER = f"""
-------------------------------------------------------------
 embird [v.{VERSION}]
 Demultiplexing of paired-end amplicon reads by inline barcodes
-------------------------------------------------------------\
"""

DESCRIPTION = " embird command line tool. Select a positional subcommand:"
EPILOG = """\
Note
----
Each subcommand has its own additional help screen, e.g.,:
>>> embird demux -h

Examples
--------
>>> # demux: sort reads of each library dir to samples
>>> embird demux -d RAW -s SAMPLES.csv -o ./embird_out
>>> embird demux -d RAW -s SAMPLES.tsv -m 1 --confirm-mismatch 3 -c 8
>>> embird demux -d RAW -s SAMPLES.csv --keep-id-lists --logger DEBUG

>>> # count: count reads in the demultiplexed outputs
>>> embird count -o ./embird_out
>>> embird count -o ./embird_out --id-lists
"""

DEMUX_EPILOG = """\
Examples
--------
>>> embird demux -d RAW -s SAMPLES.csv -o ./embird_out
>>> embird demux -d RAW -s SAMPLES.csv -m 1 -c 8
>>> embird demux -d RAW -s SAMPLES.csv --logger DEBUG embird-log.txt

Sample sheet columns (header row required)
------------------------------------------
sample, fwd_dir, rev_dir, fwd_primer, rev_primer, fwd_barcode,
rev_barcode, fwd_linker, rev_linker
"""

COUNT_EPILOG = """\
Examples
--------
>>> embird count -o ./embird_out
>>> embird count -o ./embird_out --id-lists
"""


def setup_demux_subparser(subparsers: argparse._SubParsersAction) -> argparse._SubParsersAction:
    """Add `embird demux` subcommand parser."""
    demux = subparsers.add_parser(
        "demux",
        description=HEADER + "\n" + " embird demux: demultiplex reads by inline barcodes",
        help="Demultiplex paired reads of each library to samples.",
        epilog=DEMUX_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    demux.add_argument(
        "-d", metavar="raw_path", type=Path, required=True,
        help="Parent dir of the library dirs named in the sample sheet.",
    )
    demux.add_argument(
        "-s", metavar="sample_sheet", type=Path, required=True,
        help="Path to the sample sheet (CSV, TSV, or semicolon delimited).",
    )
    demux.add_argument(
        "-o", metavar="outpath", type=Path, default=PARAMS["outpath"].default,
        help="Path to the output dir. Outputs of a previous run are removed.",
    )
    demux.add_argument(
        "-m", "--max-mismatch", metavar="max_mismatch", type=int, default=0,
        help="Barcode mismatches allowed: 0 (exact) or 1 (tolerant). Default=0.",
    )
    demux.add_argument(
        "--confirm-mismatch", metavar="N", type=int,
        default=PARAMS["max_confirm_mismatch"].default,
        help=(
            "Mismatches allowed over barcode+linker+primer in tolerant "
            "mode (Default=%(default)s).")
    )
    demux.add_argument(
        "--primer-mismatch", metavar="N", type=int,
        default=PARAMS["max_primer_mismatch"].default,
        help="Mismatches allowed when searching primers (Default=%(default)s).",
    )
    demux.add_argument(
        "-c", "--cores", metavar="cores", type=int, default=1,
        help="Number of parallel workers across file-pairs.",
    )
    demux.add_argument(
        "--keep-id-lists", action="store_true",
        help="Write the read identifiers attributed to each sample.",
    )
    demux.add_argument(
        "--logger", type=str, nargs="*", default=("INFO", None),
        help=(
            "Logging info entered as one value for LOGLEVEL, or two values "
            "for LOGLEVEL LOGFILE; e.g., 'DEBUG' or 'DEBUG embird.txt.'")
    )


def setup_count_subparser(subparsers: argparse._SubParsersAction) -> argparse._SubParsersAction:
    """Add `embird count` subcommand parser."""
    count = subparsers.add_parser(
        "count",
        description=HEADER + "\n" + " embird count: count reads per output file",
        help="Count reads in the outputs of a demux run.",
        epilog=COUNT_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    count.add_argument(
        "-o", metavar="outpath", type=Path, default=PARAMS["outpath"].default,
        help="Output dir of a demux run.",
    )
    count.add_argument(
        "--id-lists", action="store_true",
        help="Also count identifiers per sample in the id_lists dir.",
    )
    count.add_argument(
        "--logger", type=str, nargs="*", default=("INFO", None),
        help=(
            "Logging info entered as one value for LOGLEVEL, or two values "
            "for LOGLEVEL LOGFILE; e.g., 'DEBUG' or 'DEBUG embird.txt.'")
    )


def setup_parsers() -> argparse.ArgumentParser:
    """Setup and return an ArgumentParser w/ subcommands."""
    parser = argparse.ArgumentParser(
        prog="embird",
        description=HEADER + "\n" + DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action='version', version=f"embird {em.__version__}")
    subparsers = parser.add_subparsers(help="sub-commands", dest="subcommand")
    setup_demux_subparser(subparsers)
    setup_count_subparser(subparsers)
    return parser


def main(argv=None):
    """Parse user CLI args and perform actions."""
    parser = setup_parsers()
    args = parser.parse_args(argv)
    if not args.subcommand:
        parser.print_help()
        raise SystemExit(1)

    # set logger
    if args.logger:
        if len(args.logger) > 1 and args.logger[1]:
            em.set_log_level(args.logger[0], args.logger[1])
        else:
            em.set_log_level(args.logger[0])

    try:
        # demultiplexing job --------------------------------------------
        if args.subcommand == "demux":
            tool = em.Demux(
                raw_path=args.d,
                sample_sheet=args.s,
                outpath=args.o,
                max_barcode_mismatch=args.max_mismatch,
                max_confirm_mismatch=args.confirm_mismatch,
                max_primer_mismatch=args.primer_mismatch,
                cores=args.cores,
                keep_id_lists=args.keep_id_lists,
            )
            tool.run()
            if tool.failed:
                raise SystemExit(1)

        # counting job ---------------------------------------------------
        if args.subcommand == "count":
            table = em.count_reads(args.o)
            logger.info(f"reads per output file:\n{table.to_string()}")
            if args.id_lists:
                table = em.count_id_lists(args.o)
                logger.info(f"reads per sample in id lists:\n{table.to_string()}")

    except EmbirdError as err:
        logger.error(f"{type(err).__name__}: {err}")
        # drain the enqueued stderr sink before exiting
        logger.complete()
        raise SystemExit(1) from err
    logger.complete()
    raise SystemExit(0)


if __name__ == "__main__":
    sys.exit(main())
