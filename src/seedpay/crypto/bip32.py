"""BIP32 key trees, delegated to the ``bip32`` library.

This module only adapts it to ``DerivationPath``, to the engine's networks and to
its error types. Child key derivation itself always goes through the library.
"""

from __future__ import annotations

from typing import Final, List, Sequence

from bip32 import BIP32, PrivateDerivationError
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..domain.entities import DerivationPath, Network
from ..domain.errors import HardenedDerivationError

MIN_SEED_BYTES: Final[int] = 16
MAX_SEED_BYTES: Final[int] = 64

# Extended key version bytes follow the library's network names (xpub / tpub).
BIP32_NETWORKS: Final[dict[Network, str]] = {
    Network.MAINNET: "main",
    Network.TESTNET: "test",
}


def public_key_from_private(private_key: bytes) -> bytes:
    """Compressed SEC1 public key for a 32-byte secp256k1 private key."""
    key = ec.derive_private_key(int.from_bytes(private_key, "big"), ec.SECP256K1())
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )


def child_numbers(path: DerivationPath) -> List[int]:
    return [segment.child_number for segment in path.segments]


def master_from_seed(seed: bytes, network: Network) -> BIP32:
    if not MIN_SEED_BYTES <= len(seed) <= MAX_SEED_BYTES:
        raise ValueError("Seed must be between 128 and 512 bits")
    return BIP32.from_seed(seed, network=BIP32_NETWORKS[network])


def derive_private_node(master: BIP32, path: DerivationPath) -> BIP32:
    """Private BIP32 node at ``path`` below ``master``, with full metadata."""
    return BIP32.from_xpriv(master.get_xpriv_from_path(child_numbers(path)))


def derive_private_key(node: BIP32, path: DerivationPath) -> tuple[bytes, bytes]:
    """(chain code, private key) at ``path`` relative to ``node``."""
    return node.get_extended_privkey_from_path(child_numbers(path))


def export_xpub(master: BIP32, path: DerivationPath) -> str:
    return master.get_xpub_from_path(child_numbers(path))


def public_key_from_xpub(xpub: str, numbers: Sequence[int]) -> bytes:
    """Public key at the child ``numbers`` below an extended public key.

    Hardened indexes commit to the parent private key, so they raise
    ``HardenedDerivationError`` here.
    """
    node = BIP32.from_xpub(xpub)
    try:
        return node.get_pubkey_from_path(list(numbers))
    except PrivateDerivationError as e:
        raise HardenedDerivationError(
            "Hardened derivation requires the private key"
        ) from e
