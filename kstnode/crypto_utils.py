"""
Hashing primitives for KST addresses

SHA-256 always operates on the text form of its input and returns lowercase
hex, so chained hashes hash the hex digest string rather than the raw bytes.
"""

import hashlib
from typing import Union


def sha256(data: Union[str, bytes]) -> str:
    """Compute SHA-256 hash of data."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def double_sha256(data: Union[str, bytes]) -> str:
    """Compute SHA-256 of the hex SHA-256 of data."""
    return sha256(sha256(data))


def hex_to_base36(value: int) -> str:
    """
    Map a byte value to one character of the address alphabet.

    The byte range is split into buckets of 7: 0-6 -> '0', 7-13 -> '1', ...,
    63-69 -> '9', then 70-76 -> 'a' through 245-251 -> 'z'. Anything above
    251 maps to 'e'.

    Args:
        value: Integer in the range 0-255

    Returns:
        Single character from [0-9a-z]
    """
    for i in range(6, 252, 7):
        if value <= i:
            if i <= 69:
                return chr(ord('0') + (i - 6) // 7)
            return chr(ord('a') + (i - 76) // 7)
    return 'e'
