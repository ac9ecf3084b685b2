"""Duration strings used by the configuration file (``30s``, ``10m``, ``PT1H``)."""

import re

UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

_HUMAN_PART = re.compile(r"(\d+)\s*([smhd])")
_ISO_PATTERN = re.compile(
    r"^P(?:(?P<d>\d+)D)?(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+(?:\.\d+)?)S)?)?$"
)


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""


def parse_duration(value) -> int:
    """Convert a duration to whole seconds.

    Accepts plain integers (already seconds), human-readable strings with one
    or more ``<n><unit>`` parts (``90s``, ``1h30m``) and ISO-8601 durations
    (``PT30S``, ``P1D``).

    Raises:
        DurationParseError: If the value is empty, malformed or zero

    Examples:
        >>> parse_duration("30s")
        30
        >>> parse_duration("1h30m")
        5400
        >>> parse_duration("PT10M")
        600
    """
    if isinstance(value, bool):
        raise DurationParseError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        seconds = value
    else:
        text = str(value).strip()
        if not text:
            raise DurationParseError("Duration string cannot be empty")
        if text.upper().startswith("P"):
            seconds = _parse_iso(text.upper())
        else:
            seconds = _parse_human(text.lower())

    if seconds <= 0:
        raise DurationParseError(f"Duration must be positive: {value!r}")
    return seconds


def _parse_iso(text: str) -> int:
    match = _ISO_PATTERN.match(text)
    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration: '{text}'. Expected e.g. 'PT30S', 'PT10M', 'P1D'"
        )
    parts = match.groupdict()
    return (
        int(parts["d"] or 0) * UNIT_SECONDS["d"]
        + int(parts["h"] or 0) * UNIT_SECONDS["h"]
        + int(parts["m"] or 0) * UNIT_SECONDS["m"]
        + int(float(parts["s"] or 0))
    )


def _parse_human(text: str) -> int:
    parts = _HUMAN_PART.findall(text)
    compact = re.sub(r"\s+", "", text)
    if not parts or "".join(num + unit for num, unit in parts) != compact:
        raise DurationParseError(
            f"Invalid duration: '{text}'. Use digits with s, m, h or d (e.g. '30s', '1h30m')"
        )
    return sum(int(num) * UNIT_SECONDS[unit] for num, unit in parts)


def validate_duration_range(
    seconds: int,
    min_seconds: int,
    max_seconds: int,
    label: str = "Duration",
) -> None:
    """Raise DurationParseError when ``seconds`` falls outside [min, max]."""
    if seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {humanize_seconds(seconds)}. "
            f"Minimum is {humanize_seconds(min_seconds)}."
        )
    if seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {humanize_seconds(seconds)}. "
            f"Maximum is {humanize_seconds(max_seconds)}."
        )


def humanize_seconds(seconds: int) -> str:
    """Largest whole unit representation, e.g. ``"10 minutes"``."""
    for unit, name in (("d", "day"), ("h", "hour"), ("m", "minute")):
        size = UNIT_SECONDS[unit]
        if seconds >= size:
            count = seconds // size
            return f"{count} {name}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
