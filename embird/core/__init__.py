#!/usr/bin/env python

from embird.core.exceptions import (
    EmbirdError,
    ConfigurationError,
    LibraryError,
    FastqFormatError,
)
from embird.core.logger_setup import set_log_level, capture_logs
