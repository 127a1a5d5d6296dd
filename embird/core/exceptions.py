#!/usr/bin/env python

"""Exceptions raised by embird.

Only configuration and resource problems are raised as exceptions.
Reads that fail to match anything are reported as empty results.
"""


class EmbirdError(Exception):
    """Base class of the errors embird raises on bad input.

    The command line entry point catches this class, logs the message
    and exits with status 1 instead of printing a traceback.
    """
    def __init__(self, *args, **kwargs):
        Exception.__init__(self, *args, **kwargs)


class ConfigurationError(EmbirdError):
    """Bad parameters, sample sheet rows, or raw file names.

    These abort the whole run before any output is written.
    """


class LibraryError(EmbirdError):
    """A resource error that is fatal only to the current library."""


class FastqFormatError(LibraryError):
    """A raw fastq file is truncated or its records are malformed."""
