#!/usr/bin/env python

"""API level classes for embird demultiplexing.

Examples
--------
>>> import embird
>>> tool = embird.Demux(
>>>     raw_path="./raw",
>>>     sample_sheet="./samples.csv",
>>>     outpath="./embird_out",
>>>     max_barcode_mismatch=1,
>>> )
>>> stats = tool.run()
>>> embird.count_reads("./embird_out")
"""

# bring nested functions to top for API access
from embird.core.logger_setup import set_log_level
from embird.demux.demux import Demux
from embird.demux.counts import count_reads, count_id_lists
from embird.schema import Params, SampleSpec

__version__ = "1.0.0"

# configure the logger
set_log_level("INFO")
