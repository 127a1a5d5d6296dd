#!/usr/bin/env python

from embird.schema.params_schema import Params
from embird.schema.sample_schema import (
    SampleSpec,
    SampleStats,
    FilePairStats,
    LibraryStats,
)
