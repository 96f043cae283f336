"""Receiving address encodings for compressed secp256k1 public keys.

Legacy addresses are Base58Check over the key hash, witness v0 addresses are
bech32 over the same hash.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Final

import base58
import bech32
from Crypto.Hash import RIPEMD160

from ..domain.entities import AddressKind, Network


@dataclass(frozen=True)
class NetworkParams:
    """Per-network constants for address encodings."""

    coin_type: int
    p2pkh_version: int
    bech32_hrp: str


NETWORK_PARAMS: Final[dict[Network, NetworkParams]] = {
    Network.MAINNET: NetworkParams(coin_type=0, p2pkh_version=0x00, bech32_hrp="bc"),
    Network.TESTNET: NetworkParams(coin_type=1, p2pkh_version=0x6F, bech32_hrp="tb"),
}

# BIP44 for legacy addresses, BIP84 for native witness addresses.
PURPOSES: Final[dict[AddressKind, int]] = {
    AddressKind.P2PKH: 44,
    AddressKind.P2WPKH: 84,
}


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def ripemd160(data: bytes) -> bytes:
    return RIPEMD160.new(data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data)), the key hash committed to by P2PKH/P2WPKH."""
    return ripemd160(sha256(data))


def p2pkh_address(public_key: bytes, network: Network) -> str:
    version = NETWORK_PARAMS[network].p2pkh_version
    return base58.b58encode_check(bytes([version]) + hash160(public_key)).decode(
        "ascii"
    )


def p2wpkh_address(public_key: bytes, network: Network) -> str:
    if len(public_key) != 33:
        raise ValueError("Witness addresses require a compressed public key")
    address = bech32.encode(NETWORK_PARAMS[network].bech32_hrp, 0, hash160(public_key))
    if address is None:
        raise ValueError("Failed to encode witness address")
    return address


def encode_address(public_key: bytes, network: Network, kind: AddressKind) -> str:
    """Encode a compressed public key as a receiving address."""
    if kind is AddressKind.P2WPKH:
        return p2wpkh_address(public_key, network)
    return p2pkh_address(public_key, network)
