"""Seed custody and deterministic key derivation.

The vault is the only object that holds master key material. Components receive
a vault instance and ask it for key pairs or addresses. Neither the seed nor
private keys are returned from public methods or shown in ``repr``, and the
mnemonic is dropped once the seed is stretched from it.
"""

from __future__ import annotations

import secrets
from collections import OrderedDict
from typing import Final

from bip32 import BIP32
from mnemonic import Mnemonic

from ..domain.entities import AddressKind, DerivationPath, Network
from ..domain.errors import InsufficientEntropy, InvalidMnemonic
from .addresses import NETWORK_PARAMS, PURPOSES, encode_address
from .bip32 import (
    derive_private_key,
    derive_private_node,
    export_xpub,
    master_from_seed,
    public_key_from_private,
    public_key_from_xpub,
)

MIN_ENTROPY_BITS: Final[int] = 128
MAX_ENTROPY_BITS: Final[int] = 256
RECEIVE_CHAIN: Final[int] = 0
# m/purpose'/coin'/account'
ACCOUNT_DEPTH: Final[int] = 3
_NODE_CACHE_SIZE: Final[int] = 64

_WORDLIST = Mnemonic("english")


def generate_mnemonic(entropy_bits: int = 256) -> str:
    """Draw fresh entropy from the OS CSPRNG and encode it as a BIP39 phrase."""
    if entropy_bits < MIN_ENTROPY_BITS:
        raise InsufficientEntropy(
            f"At least {MIN_ENTROPY_BITS} bits of entropy are required"
        )
    if entropy_bits > MAX_ENTROPY_BITS or entropy_bits % 32:
        raise ValueError("Entropy must be 128-256 bits in steps of 32")
    try:
        entropy = secrets.token_bytes(entropy_bits // 8)
    except (NotImplementedError, OSError) as e:
        raise InsufficientEntropy("Secure random source unavailable") from e
    return _WORDLIST.to_mnemonic(entropy)


class KeyPair:
    """Key material for one derivation path.

    Only public data is reachable from outside. The private key stays on the
    instance so that signing code can be added without widening this surface.
    """

    __slots__ = ("_path", "_chain_code", "_private_key", "_public_key")

    def __init__(self, path: DerivationPath, chain_code: bytes, private_key: bytes):
        self._path = path
        self._chain_code = chain_code
        self._private_key = private_key
        self._public_key = public_key_from_private(private_key)

    @property
    def path(self) -> DerivationPath:
        return self._path

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def address(self, network: Network, kind: AddressKind) -> str:
        return encode_address(self._public_key, network, kind)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return (
            self._path == other._path
            and self._public_key == other._public_key
            and self._chain_code == other._chain_code
        )

    def __hash__(self) -> int:
        return hash((str(self._path), self._public_key))

    def __repr__(self) -> str:
        return f"KeyPair(path={self._path}, public_key={self._public_key.hex()})"


class SeedVault:
    """Holds one master seed and derives keys and addresses from it."""

    def __init__(self, seed: bytes):
        # Private keys do not depend on the network. The per-network masters
        # only differ in the version bytes of exported extended keys.
        self._masters: dict[Network, BIP32] = {
            network: master_from_seed(seed, network) for network in Network
        }
        self._accounts: OrderedDict[DerivationPath, BIP32] = OrderedDict()

    @classmethod
    def initialize(cls, entropy_bits: int = 256, passphrase: str = "") -> "SeedVault":
        phrase = generate_mnemonic(entropy_bits)
        return cls.from_mnemonic(phrase, passphrase)

    @classmethod
    def from_mnemonic(cls, phrase: str, passphrase: str = "") -> "SeedVault":
        normalized = " ".join(phrase.split())
        if not normalized or not _WORDLIST.check(normalized):
            raise InvalidMnemonic("Mnemonic has unknown words or a bad checksum")
        return cls(Mnemonic.to_seed(normalized, passphrase=passphrase))

    @classmethod
    def from_seed(cls, seed: bytes) -> "SeedVault":
        return cls(seed)

    def __repr__(self) -> str:
        return "SeedVault(<sealed>)"

    def _account_node(self, path: DerivationPath) -> BIP32:
        cached = self._accounts.get(path)
        if cached is not None:
            self._accounts.move_to_end(path)
            return cached
        node = derive_private_node(self._masters[Network.MAINNET], path)
        self._accounts[path] = node
        if len(self._accounts) > _NODE_CACHE_SIZE:
            self._accounts.popitem(last=False)
        return node

    def derive_key_pair(self, path: DerivationPath) -> KeyPair:
        if path.depth > ACCOUNT_DEPTH:
            node = self._account_node(
                DerivationPath(segments=path.segments[:ACCOUNT_DEPTH])
            )
            rest = DerivationPath(segments=path.segments[ACCOUNT_DEPTH:])
        else:
            node, rest = self._masters[Network.MAINNET], path
        chain_code, private_key = derive_private_key(node, rest)
        return KeyPair(path, chain_code, private_key)

    @staticmethod
    def account_path(account: int, network: Network, kind: AddressKind) -> DerivationPath:
        return (
            DerivationPath()
            .child(PURPOSES[kind], hardened=True)
            .child(NETWORK_PARAMS[network].coin_type, hardened=True)
            .child(account, hardened=True)
        )

    @classmethod
    def receive_path(
        cls, account: int, index: int, network: Network, kind: AddressKind
    ) -> DerivationPath:
        """``m/purpose'/coin'/account'/0/index``"""
        return cls.account_path(account, network, kind).child(RECEIVE_CHAIN).child(index)

    def derive_address(
        self, account: int, index: int, network: Network, kind: AddressKind
    ) -> tuple[DerivationPath, str]:
        path = self.receive_path(account, index, network, kind)
        return path, self.derive_key_pair(path).address(network, kind)

    def account_xpub(self, account: int, network: Network, kind: AddressKind) -> str:
        return export_xpub(self._masters[network], self.account_path(account, network, kind))

    @staticmethod
    def derive_public_address(
        xpub: str, chain: int, index: int, network: Network, kind: AddressKind
    ) -> str:
        """Derive a non-hardened address from an account xpub alone."""
        return encode_address(public_key_from_xpub(xpub, [chain, index]), network, kind)
