from __future__ import annotations

from .constants import DEFAULT_PORT


def normalize_username(value) -> str | None:
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    # A name is echoed inside every line the relay sends on its behalf.
    if "\n" in s or "\r" in s or "\x00" in s:
        return None

    return s


def parse_port(value, default: int = DEFAULT_PORT) -> int:
    """Parse a TCP port, falling back to `default` for anything unusable."""
    if value is None:
        return default
    try:
        port = int(str(value).strip())
    except ValueError:
        return default
    if port < 1 or port > 65535:
        return default
    return port


def sanitize_line(line: str) -> str:
    return line.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
