#!/usr/bin/env python
# Hex dumps of byte buffers, for eyeballing blocks against RFC listings.
# %% imports
import logging

logger = logging.getLogger(__name__)

# %% Hex dump
def hex_dump(data, start=0, end=None):
    """
    Render data[start:end] as space separated two-digit hex bytes, e.g.
    '10 f1 e7 e4'.  A missing buffer renders as 'NULL'.
    """
    if data is None:
        return 'NULL'
    if end is None:
        end = len(data)
    return ' '.join('%02x' % x for x in data[start:end])

def log_hex(data, start=0, end=None, log=None):
    """Emit hex_dump(data, start, end) at DEBUG level."""
    (log or logger).debug('%s', hex_dump(data, start, end))
