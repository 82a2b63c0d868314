"""Counter injection into ESC/POS receipt templates.

A template marks the spot for the print counter with three 0xBB bytes in a
row. Each iteration the bytes around that spot are replaced by " NNNNNNNN".
"""
from __future__ import annotations

from typing import Optional

from repeat_settings import TEXT_ENCODING

MARKER_BYTE = 0xBB
MARKER_RUN = 3
COUNTER_DIGITS = 8


def locate_splice_index(template: bytes) -> Optional[int]:
    """Return the splice index for the first run of three marker bytes.

    The index is the 1-based position of the third marker byte, i.e. the
    offset just past the run. None means the template has no marker run and
    is sent as-is.
    """
    run = 0
    for position, b in enumerate(template, start=1):
        if b == MARKER_BYTE:
            run += 1
            if run >= MARKER_RUN:
                return position
        else:
            run = 0
    return None


def format_counter(counter: int) -> bytes:
    return f" {counter:0{COUNTER_DIGITS}d}".encode(TEXT_ENCODING)


def next_payload(config, counter: int) -> bytes:
    """Build the bytes to send for one iteration.

    Without a splice index the template itself is returned. Otherwise the
    result is template[:S-2] + " NNNNNNNN" + template[S+2:], always a new
    object.
    """
    template = config.template
    splice = config.splice_index
    if splice is None:
        return template
    head = template[:splice - 2]
    # S+2, not S: same bytes the serial writer skipped; a marker run at the
    # very end leaves an empty tail
    tail = template[splice + 2:]
    return b''.join((head, format_counter(counter), tail))
