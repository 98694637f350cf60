import datetime
import logging
import re
from enum import Enum
from typing import Any

_logger = logging.getLogger("clinvar_tsv")


def int_or_none(s: str | None) -> int | None:
    if s is None or s == "":
        return None
    return int(s)


def sanitize_date(s: str) -> datetime.date | None:
    """
    Parse a string which starts with a valid date in format YYYY-MM-DD.

    This function is permissive and discards trailing input because ClinVar has
    some dates like '2018-06-21-05:00'

    See: https://github.com/clingen-data-model/clinvar-ingest/issues/99
    """
    if not s:
        return None
    pattern_str = r"^(\d{4}-\d{2}-\d{2})"
    date_pattern = re.compile(pattern_str)
    match = date_pattern.match(s)
    if match:
        if match.span()[1] != len(s):
            _logger.warning(
                f"Trailing content trimmed from date."
                f" Date {match.group(1)} was followed by {s[match.span()[1]:]}"
            )
        return datetime.date.fromisoformat(match.group(1))
    else:
        raise ValueError(f"Invalid date: {s}, must match {pattern_str}")


def dictify(
    obj,
) -> dict | list[dict | Any] | Any:  # recursive type truncated at 2nd level
    """
    Recursively dictify Python objects into dicts. Objects may be dataclass
    instances. Enums become their values and dates their ISO strings.

    Example:
        >>> import dataclasses
        >>> @dataclasses.dataclass
        ... class Foo:
        ...     a: int
        ...     b: list
        >>> dictify(Foo(1, [Foo(2, [])]))
        {'a': 1, 'b': [{'a': 2, 'b': []}]}
    """
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime.date):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: dictify(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [dictify(v) for v in obj]
    if getattr(obj, "__dict__", None):
        return dictify(vars(obj))
    return obj
