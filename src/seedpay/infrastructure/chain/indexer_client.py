"""Chain data source backed by an Esplora-compatible indexer HTTP API."""

from __future__ import annotations

from typing import Any, List, Optional

import httpx

from ...domain.errors import ChainQueryError
from ...domain.events import AddressActivity, FundingTransaction
from ..http.http_client import AsyncHttpClient, HttpRequestError, HttpResponseError


def _confirmations(status: dict[str, Any], tip_height: int) -> int:
    if not status.get("confirmed"):
        return 0
    block_height = status.get("block_height")
    if block_height is None:
        return 0
    return max(1, tip_height - int(block_height) + 1)


def _amount_paid_to(tx: dict[str, Any], address: str) -> int:
    return sum(
        int(out.get("value", 0))
        for out in tx.get("vout", [])
        if out.get("scriptpubkey_address") == address
    )


class EsploraIndexerClient:
    """Implements ChainDataSource over ``/address/{addr}/txs`` and the tip height.

    Confirmations are ``tip - block_height + 1`` for mined transactions and 0 for
    mempool ones. Only outputs paying the queried address count.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(base_url, timeout=timeout, transport=transport)

    async def _get_json(self, path: str) -> Any:
        try:
            resp = await self._http.get(path)
            return resp.json()
        except (HttpRequestError, HttpResponseError) as e:
            raise ChainQueryError(str(e)) from e
        except ValueError as e:
            raise ChainQueryError(f"Invalid JSON from indexer at {path}") from e

    async def get_tip_height(self) -> int:
        data = await self._get_json("/blocks/tip/height")
        try:
            return int(data)
        except (TypeError, ValueError) as e:
            raise ChainQueryError(f"Invalid tip height: {data!r}") from e

    async def get_address_activity(self, address: str) -> AddressActivity:
        tip_height = await self.get_tip_height()
        txs = await self._get_json(f"/address/{address}/txs")
        if not isinstance(txs, list):
            raise ChainQueryError(f"Unexpected transaction list for {address}")

        funding: List[FundingTransaction] = []
        for tx in txs:
            amount = _amount_paid_to(tx, address)
            if amount == 0:
                continue
            txid = tx.get("txid")
            if not txid:
                raise ChainQueryError(f"Transaction without txid for {address}")
            confirmations = _confirmations(tx.get("status") or {}, tip_height)
            funding.append(
                FundingTransaction(
                    tx_hash=txid, amount=amount, confirmations=confirmations
                )
            )
        return AddressActivity(address=address, transactions=funding)

    async def aclose(self) -> None:
        await self._http.aclose()
