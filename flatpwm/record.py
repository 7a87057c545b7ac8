"""
FlatPWM - Record Codec

One entry per line:

    name|username|password[|fieldName:fieldValue]*

Example:
    >>> r = Record("Entry 1", "entry1@test.com", "pass1234", [("pin", "0000")])
    >>> encode(r)
    'Entry 1|entry1@test.com|pass1234|pin:0000'
    >>> decode(encode(r)) == r
    True
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import ValidationError


FIELD_SEP = "|"
SUB_SEP = ":"


@dataclass
class Record:
    name: str
    username: str
    password: str
    extra_fields: List[Tuple[str, str]] = field(default_factory=list)


# =============================================================================
# Validation
# =============================================================================

def _reject(value: str, what: str, forbidden: str) -> None:
    for ch in forbidden:
        if ch in value:
            raise ValidationError(f"{what} must not contain {ch!r}")
    if "\n" in value or "\r" in value:
        raise ValidationError(f"{what} must not contain a line break")


def validate(record: Record) -> None:
    """
    Check that a record survives encode/decode unchanged.

    Raises:
        ValidationError: On the first offending field
    """
    if not record.name:
        raise ValidationError("Name must not be empty")
    _reject(record.name, "Name", FIELD_SEP + SUB_SEP)
    _reject(record.username, "Username", FIELD_SEP + SUB_SEP)
    _reject(record.password, "Password", FIELD_SEP)

    for field_name, field_value in record.extra_fields:
        if not field_name:
            raise ValidationError("Field name must not be empty")
        _reject(field_name, "Field name", FIELD_SEP + SUB_SEP)
        _reject(field_value, f"Value of field {field_name!r}", FIELD_SEP)


# =============================================================================
# Encode / Decode
# =============================================================================

def encode(record: Record) -> str:
    """Serialize a record to one line. Rejects rather than corrupts."""
    validate(record)
    tokens = [record.name, record.username, record.password]
    tokens.extend(f"{name}{SUB_SEP}{value}" for name, value in record.extra_fields)
    return FIELD_SEP.join(tokens)


def decode(line: str) -> Optional[Record]:
    """
    Parse one line.

    Returns:
        Record, or None if the line has fewer than 2 tokens
    """
    tokens = line.split(FIELD_SEP)
    if len(tokens) < 2:
        return None

    name, username = tokens[0], tokens[1]
    password = tokens[2] if len(tokens) > 2 else ""

    extra_fields = []
    for token in tokens[3:]:
        field_name, _, field_value = token.partition(SUB_SEP)
        extra_fields.append((field_name, field_value))

    return Record(name, username, password, extra_fields)


def matches_name(record: Record, query: str, case_insensitive: bool = True) -> bool:
    """Exact name match, used by every command that addresses one entry."""
    if case_insensitive:
        return record.name.casefold() == query.casefold()
    return record.name == query


# =============================================================================
# Projection
# =============================================================================

def render(record: Record) -> str:
    """Human-readable form printed by get and search."""
    lines = [
        f"Name: {record.name}",
        f"Username: {record.username}",
        f"Password: {record.password}",
    ]
    lines.extend(f"{name}: {value}" for name, value in record.extra_fields)
    return "\n".join(lines)
