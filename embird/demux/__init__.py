#!/usr/bin/env python

"""Example usage of the Demux class for demultiplexing reads.

API
---
>>> tool = Demux(
>>>     raw_path="./raw",
>>>     sample_sheet="./samples.csv",
>>>     outpath="./embird_out",
>>>     max_barcode_mismatch=1,
>>>     max_confirm_mismatch=4,
>>>     cores=4,
>>> )
>>> stats = tool.run()
>>> stats["LIB1"].attributed

CLI
---
$ embird demux -d ./raw -s ./samples.csv -o ./embird_out -m 1 -c 4
$ embird count -o ./embird_out

"""
