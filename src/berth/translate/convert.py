"""Conversion helpers shared by the translator and the reconciler."""

import io
import re
import tarfile
from datetime import datetime, timezone
from typing import Dict

# Nanoseconds per duration unit
_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

MEGABYTE = 1024 * 1024


def parse_duration(value: str) -> int:
    """Parse a duration string such as "1m30s" into nanoseconds.

    Malformed input yields 0.
    """
    if not value:
        return 0
    text = value.strip()
    sign = 1
    if text[:1] in "+-":
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return 0

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            return 0
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        return 0
    return sign * int(round(total))


def megabytes_to_bytes(value: int) -> int:
    """Convert megabytes to bytes."""
    return value * MEGABYTE


def swap_to_bytes(value: int) -> int:
    """Convert a swap limit in megabytes; values <= 0 are sentinels and pass through."""
    if value > 0:
        return megabytes_to_bytes(value)
    return value


def string_map(values: Dict[str, object]) -> Dict[str, str]:
    """Coerce map values to strings."""
    return {key: str(value) for key, value in values.items()}


def build_upload_archive(path: str, content: str, executable: bool = False) -> bytes:
    """Build an uncompressed single-file tar archive for copying into a container.

    The entry name is ``path`` relative to ``/``, where the archive is
    extracted.
    """
    data = content.encode()
    info = tarfile.TarInfo(name=path.lstrip("/"))
    info.mode = 0o744 if executable else 0o644
    info.size = len(data)

    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as reported by Docker.

    Docker reports nanoseconds; the fraction is truncated to microseconds.

    Raises:
        ValueError: the value is not a valid timestamp
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
