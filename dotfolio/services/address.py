"""Helpers for validating Substrate account identifiers."""

from __future__ import annotations

import hashlib
from functools import lru_cache

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {char: index for index, char in enumerate(_BASE58_ALPHABET)}
_HEX_ALPHABET = set("0123456789abcdefABCDEF")

_SS58_CHECKSUM_PREFIX = b"SS58PRE"
ACCOUNT_ID_LENGTH = 32


def is_valid_address(address: str | None) -> bool:
    """Loose check only; cryptographic validation belongs to the wallet layer."""

    return bool(address and address.strip())


def shorten(address: str, length: int = 12) -> str:
    if len(address) <= length:
        return address
    return f"{address[:length]}..."


def base58_decode(value: str) -> bytes:
    if not value:
        return b""
    num = 0
    for char in value:
        if char not in _BASE58_INDEX:
            raise ValueError("Invalid base58 character")
        num = num * 58 + _BASE58_INDEX[char]
    combined = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    pad = len(value) - len(value.lstrip("1"))
    return b"\x00" * pad + combined


@lru_cache(maxsize=256)
def decode_account_id(address: str, length: int = ACCOUNT_ID_LENGTH) -> bytes:
    """Return the account id behind an SS58 or ``0x``-hex address.

    ``length`` is the chain's account id width: 32 bytes for Substrate
    accounts, 20 for H160 accounts. H160 chains only take the hex form;
    an SS58 address names a 32-byte account that cannot exist there.
    """

    candidate = (address or "").strip()
    if not candidate:
        raise ValueError("Address is empty")

    if candidate.startswith("0x"):
        hex_part = candidate[2:]
        if len(hex_part) != length * 2 or not all(ch in _HEX_ALPHABET for ch in hex_part):
            raise ValueError(f"Hex account id must be {length} bytes")
        return bytes.fromhex(hex_part)

    if length != ACCOUNT_ID_LENGTH:
        raise ValueError(f"SS58 address given for a chain with {length}-byte accounts; use the 0x form")

    raw = base58_decode(candidate)
    if not raw:
        raise ValueError("Address is empty")

    first = raw[0]
    if first < 64:
        prefix_length = 1
    elif first < 128:
        prefix_length = 2
    else:
        raise ValueError("Unsupported SS58 network prefix")

    if len(raw) != prefix_length + ACCOUNT_ID_LENGTH + 2:
        raise ValueError("SS58 address has unexpected length")

    body, checksum = raw[:-2], raw[-2:]
    expected = hashlib.blake2b(_SS58_CHECKSUM_PREFIX + body, digest_size=64).digest()[:2]
    if checksum != expected:
        raise ValueError("SS58 checksum mismatch")
    return body[prefix_length:]


__all__ = [
    "ACCOUNT_ID_LENGTH",
    "base58_decode",
    "decode_account_id",
    "is_valid_address",
    "shorten",
]
