"""Domain-specific exceptions."""

from __future__ import annotations


class InsufficientEntropy(Exception):
    """Raised when a master seed cannot be generated with enough entropy."""


class InvalidMnemonic(ValueError):
    """Raised when a mnemonic phrase fails word or checksum validation."""


class InvalidDerivationPath(ValueError):
    """Raised when a derivation path string or segment is malformed."""


class HardenedDerivationError(ValueError):
    """Raised when a hardened child is requested from public key material only."""


class AllocationExhausted(Exception):
    """Raised when no further unused address index is available for an account."""


class PaymentNotFoundError(LookupError):
    """Raised when a payment lookup fails."""


class DuplicatePaymentError(ValueError):
    """Raised when recording a payment whose id or address is already owned."""


class ConcurrentUpdateError(RuntimeError):
    """Raised when a ledger update keeps losing its compare-and-set race."""


class ChainQueryError(Exception):
    """Raised by chain data sources on transport or protocol failures."""
