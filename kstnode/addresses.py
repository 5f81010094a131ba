"""
KST Address Derivation

Turns secret key material into a 10-character v2 address: the 'k' prefix
followed by 9 characters of [0-9a-z].

Derivation:
1. Double-hash the secret.
2. Fill 9 slots with the first byte of successive double hashes.
3. Consume the slots in an order picked by the bytes of the final hash,
   re-hashing once whenever the picked slot is already used.
4. Map each consumed byte through hex_to_base36.

The output must match existing wallets bit for bit, so this module has no
knobs beyond the sanity cap on collision re-rolls.
"""

from typing import List, Union

from . import config
from .crypto_utils import sha256, double_sha256, hex_to_base36


class AddressDerivationError(RuntimeError):
    """Raised when the selection phase fails to terminate."""


def make_v2_address(key: Union[str, bytes]) -> str:
    """
    Derive the v2 address for a private key.

    Args:
        key: Secret key material (usually the hex private key)

    Returns:
        Address string such as 'k5ztameslf'

    Raises:
        TypeError: If key is None
        AddressDerivationError: If collision re-rolls exceed the sanity cap
    """
    if key is None:
        raise TypeError("key must not be None")

    slots: List[str] = [""] * config.ADDRESS_SLOTS
    chars: List[str] = []
    hash_hex = double_sha256(key)

    for i in range(config.ADDRESS_SLOTS):
        slots[i] = hash_hex[:2]
        hash_hex = double_sha256(hash_hex)

    rehashes = 0
    i = 0
    while i < config.ADDRESS_SLOTS:
        index = int(hash_hex[2 * i:2 * i + 2], 16) % config.ADDRESS_SLOTS

        if not slots[index]:
            rehashes += 1
            if rehashes > config.MAX_SELECTION_REHASHES:
                raise AddressDerivationError(
                    f"Address selection did not settle after {rehashes - 1} re-hashes"
                )
            hash_hex = sha256(hash_hex)
            continue

        chars.append(hex_to_base36(int(slots[index], 16)))
        slots[index] = ""
        i += 1

    return config.ADDRESS_PREFIX + "".join(chars)


def make_v2_addresses(keys) -> List[str]:
    """Derive addresses for several keys, preserving order."""
    return [make_v2_address(key) for key in keys]
