"""
Syntax validators for addresses, names and name records

All functions are pure and return a judgment instead of raising, so they can
be called directly on untrusted input.
"""

import re
from dataclasses import dataclass
from typing import Optional

from . import config

_ADDRESS = r"(?:k[a-z0-9]{9}|[a-f0-9]{10})"

ADDRESS_RE = re.compile(rf"^{_ADDRESS}$")
ADDRESS_V2_RE = re.compile(r"^k[a-z0-9]{9}$")
ADDRESS_LIST_RE = re.compile(rf"^{_ADDRESS}(?:,{_ADDRESS})*$")
NAME_RE = re.compile(r"^[a-z0-9]{1,64}$", re.IGNORECASE)
NAME_FETCH_RE = re.compile(r"^(?:xn--)?[a-z0-9]{1,64}$", re.IGNORECASE)
A_RECORD_RE = re.compile(r"^[^\s.?#]\S*$")

NAME_META_RE = re.compile(r"^(?:([a-z0-9_-]{1,32})@)?([a-z0-9]{1,64})\.kst$", re.IGNORECASE)
METANAME_METADATA_RE = re.compile(r"^(?:([a-z0-9_-]{1,32})@)?([a-z0-9]{1,64})\.kst", re.IGNORECASE)


@dataclass(frozen=True)
class NameMeta:
    """A parsed 'metaname@name.kst' reference."""
    name: str
    metaname: Optional[str] = None


def _matches(pattern: re.Pattern, value) -> bool:
    # fullmatch, since "$" alone also matches before a trailing newline
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def is_valid_address(address, v2_only: bool = False) -> bool:
    """
    Check an address.

    Accepts the current 'k' + 9 character form, and unless v2_only is set,
    the legacy 10 hex character form.
    """
    return _matches(ADDRESS_V2_RE if v2_only else ADDRESS_RE, address)


def is_valid_address_list(address_list) -> bool:
    """Check a comma-separated list of addresses (no spaces, at least one)."""
    return _matches(ADDRESS_LIST_RE, address_list)


def is_valid_name(name, fetching: bool = False) -> bool:
    """
    Check a name without its suffix.

    Args:
        name: Name to check
        fetching: Allow an 'xn--' punycode prefix, for lookups of existing names
    """
    pattern = NAME_FETCH_RE if fetching else NAME_RE
    return _matches(pattern, name) and 0 < len(name) <= config.NAME_MAX_LENGTH


def is_valid_a_record(value) -> bool:
    """Check the record value a name points to."""
    return (_matches(A_RECORD_RE, value)
            and len(value) <= config.A_RECORD_MAX_LENGTH)


def strip_name_suffix(name) -> str:
    """Remove a trailing '.kst' from a name. Custom suffixes are not supported."""
    if not name or not isinstance(name, str):
        return ""
    if name.endswith(config.NAME_SUFFIX):
        return name[:-len(config.NAME_SUFFIX)]
    return name


def parse_name_meta(text, strict: bool = True) -> Optional[NameMeta]:
    """
    Parse a 'metaname@name.kst' reference.

    With strict=False, anything after '.kst' is ignored, which is how name
    references are found at the start of transaction metadata.

    Returns:
        NameMeta with a lowercased name, or None if text is not a reference
    """
    if not isinstance(text, str):
        return None

    match = (NAME_META_RE.fullmatch(text) if strict
             else METANAME_METADATA_RE.match(text))
    if not match:
        return None

    return NameMeta(name=match.group(2).lower(), metaname=match.group(1))
