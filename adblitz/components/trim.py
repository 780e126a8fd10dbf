"""Parse per-label trim policies."""

import math
from typing import Dict, Iterable, Optional

from ..exceptions import ConfigurationError
from ..models import LastTrim, RangeTrim, TrimSpec


def _parse_number(text: str, what: str, raw: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise ConfigurationError(f"Trim {raw!r}: {what} {text!r} is not a number.", field="trim")
    if not math.isfinite(value):
        raise ConfigurationError(f"Trim {raw!r}: {what} must be finite.", field="trim")
    return value


def parse_trim_spec(text: str) -> TrimSpec:
    """Parse ``START:DURATION`` or ``last:SECONDS``."""
    head, sep, tail = text.strip().partition(":")
    if not sep or not head.strip() or not tail.strip():
        raise ConfigurationError(
            f"Trim {text!r} must be START:DURATION or last:SECONDS.", field="trim"
        )

    if head.strip().lower() == "last":
        seconds = _parse_number(tail.strip(), "seconds", text)
        if seconds <= 0:
            raise ConfigurationError(f"Trim {text!r}: seconds must be > 0.", field="trim")
        return LastTrim(seconds=seconds)

    start = _parse_number(head.strip(), "start", text)
    duration = _parse_number(tail.strip(), "duration", text)
    if start < 0:
        raise ConfigurationError(f"Trim {text!r}: start must be >= 0.", field="trim")
    if duration <= 0:
        raise ConfigurationError(f"Trim {text!r}: duration must be > 0.", field="trim")
    return RangeTrim(start=start, duration=duration)


def parse_trim_args(
    values: Iterable[str], labels: Optional[Iterable[str]] = None
) -> Dict[str, TrimSpec]:
    """Parse ``LABEL=SPEC`` entries into a map keyed by label.

    When ``labels`` is given, trims for undeclared labels are rejected.
    """
    known = set(labels) if labels is not None else None
    trims: Dict[str, TrimSpec] = {}
    for raw in values:
        label, sep, spec = raw.partition("=")
        label = label.strip()
        if not sep or not label:
            raise ConfigurationError(f"Trim must be given as LABEL=SPEC (got {raw!r}).", field="trim")
        if known is not None and label not in known:
            raise ConfigurationError(
                f"Trim for unknown segment {label!r}; declared: {sorted(known)}.", field="trim"
            )
        if label in trims:
            raise ConfigurationError(f"More than one trim given for segment {label!r}.", field="trim")
        trims[label] = parse_trim_spec(spec)
    return trims
