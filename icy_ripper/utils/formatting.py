"""
Conversions between byte counts, durations and the strings shown to users.
"""

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")
_SIZE_SUFFIXES = {"": 0, "B": 0, "K": 1, "M": 2, "G": 3, "T": 4}


def format_size(bytes_size: int) -> str:
    """Renders a byte count with one decimal, e.g. 1536 -> '1.5 KB'."""
    if bytes_size <= 0:
        return "0 B"
    value = float(bytes_size)
    for unit in _SIZE_UNITS:
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            break
        value /= 1024
    return f"{value:.1f} {unit}"


def format_duration(seconds: float) -> str:
    """Renders elapsed recording time, e.g. 3725 -> '1h 2m 5s'."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    fields = [(hours, "h"), (minutes, "m"), (secs, "s")]
    shown = [f"{amount}{suffix}" for amount, suffix in fields if amount]
    return " ".join(shown) or "0s"


def parse_size(value: str) -> int:
    """
    Parses a size such as '700M', '1.5G', '64KiB' or '4096' into bytes.

    Raises:
        ValueError: If the string is not a size.
    """
    text = value.strip().upper().removesuffix("IB").removesuffix("B")
    number, suffix = text, ""
    if text and text[-1] in _SIZE_SUFFIXES:
        number, suffix = text[:-1], text[-1]
    try:
        size = float(number)
    except ValueError:
        raise ValueError(f"Invalid size: {value!r}") from None
    if size < 0:
        raise ValueError(f"Size cannot be negative: {value!r}")
    return int(size * 1024 ** _SIZE_SUFFIXES[suffix])
