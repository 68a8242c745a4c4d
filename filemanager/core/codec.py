"""
On-disk filename scheme for managed files.

A managed file is stored as ``<uploadTimestampMillis>-<fileId>-<sanitizedName>``.
The encoded name is the only place the upload time, the id and the display
name are kept together, so every later operation recovers them with
:func:`decode`.

Hyphens inside the sanitized name are indistinguishable from the separator;
decode re-joins everything after the second hyphen, which is the known
ambiguity of this format.
"""

import re
import secrets
import time
from typing import NamedTuple, Optional

SEPARATOR = "-"
PLACEHOLDER_NAME = "file"

# 9999-12-31T23:59:59.999Z, the last instant datetime can hold
MAX_TIMESTAMP_MS = 253402300799999

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class DecodedName(NamedTuple):
    uploaded_ms: int
    file_id: str
    original_name: str


def sanitize(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``."""
    return _UNSAFE_CHARS.sub("_", name)


def new_file_id() -> str:
    # hex never contains the separator
    return secrets.token_hex(16)


def now_ms() -> int:
    return int(time.time() * 1000)


def encode(uploaded_ms: int, file_id: str, original_name: str) -> str:
    if SEPARATOR in file_id:
        raise ValueError(f"file id must not contain {SEPARATOR!r}: {file_id!r}")
    safe_name = sanitize(original_name) or PLACEHOLDER_NAME
    return SEPARATOR.join((str(uploaded_ms), file_id, safe_name))


def decode(encoded_name: str) -> Optional[DecodedName]:
    """
    Split an encoded filename back into its parts.

    Returns None for names that do not follow the scheme; such files are
    unmanaged, not errors.
    """
    parts = encoded_name.split(SEPARATOR)
    if len(parts) < 3:
        return None

    timestamp, file_id = parts[0], parts[1]
    original_name = SEPARATOR.join(parts[2:])
    if not timestamp.isdigit() or not timestamp.isascii():
        return None
    if int(timestamp) > MAX_TIMESTAMP_MS:
        return None
    if not file_id or not original_name:
        return None

    return DecodedName(int(timestamp), file_id, original_name)
