"""Watch-only wallet export routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ...application.dtos import AccountXpubDTO
from ...crypto.seed_vault import SeedVault
from ...domain.entities import AddressKind, Network
from ...envs.engine_env import Settings
from ..dependencies import get_engine_settings, get_seed_vault

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/accounts/{account}/xpub", response_model=AccountXpubDTO)
async def get_account_xpub(
    account: int = Path(..., ge=0, lt=2**31),
    network: Optional[Network] = Query(None),
    address_kind: Optional[AddressKind] = Query(None),
    vault: SeedVault = Depends(get_seed_vault),
    settings: Settings = Depends(get_engine_settings),
) -> AccountXpubDTO:
    """Account-level extended public key for watch-only auditing."""
    network = network or settings.network
    kind = address_kind or settings.address_kind
    return AccountXpubDTO(
        account_index=account,
        network=network,
        address_kind=kind,
        derivation_path=str(vault.account_path(account, network, kind)),
        xpub=vault.account_xpub(account, network, kind),
    )
