"""
FlatPWM - Store Codec

The decrypted store body is the newline-joined encoding of every record.
Blank lines are ignored. Lines that don't decode, or decode to a record that
couldn't be written back, are dropped with a warning so one damaged line
can't lock the user out of the rest of the store.

Only LF separates records (a trailing CR is tolerated). Other Unicode line
breaks such as form feed or U+2028 are ordinary characters inside a value.
"""

import logging
from typing import Iterable, List

from .errors import ValidationError
from .record import Record, decode, encode, validate


logger = logging.getLogger(__name__)


def parse(body: str) -> List[Record]:
    records = []
    for lineno, line in enumerate(body.split("\n"), 1):
        if line.endswith("\r"):
            line = line[:-1]
        if not line.strip():
            continue
        record = decode(line)
        if record is None:
            # Never log the line itself, it may hold a password
            logger.warning("Skipping malformed store line %d", lineno)
            continue
        try:
            validate(record)
        except ValidationError as e:
            logger.warning("Skipping invalid store line %d (%s)", lineno, e)
            continue
        records.append(record)
    return records


def serialize(records: Iterable[Record]) -> str:
    lines = [encode(record) for record in records]
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)
