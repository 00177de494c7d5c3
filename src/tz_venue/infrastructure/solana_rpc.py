"""Solana JSON-RPC deposit verifier.

Looks the transaction up with `getTransaction` (jsonParsed encoding) and
searches its SPL-token transfer instructions, outer and inner, for a
transfer of the collateral mint into the custody token account.

The amount tolerance check is NOT done here; FundsService owns that rule.
"""

import logging
from typing import Any

import httpx

from src.tz_venue.domain.ports import VerifiedTransfer

logger = logging.getLogger(__name__)

_TRANSFER_TYPES = ("transfer", "transferChecked")


def _iter_instructions(tx: dict[str, Any]):
    message = (tx.get("transaction") or {}).get("message") or {}
    yield from message.get("instructions") or []
    for inner in (tx.get("meta") or {}).get("innerInstructions") or []:
        yield from inner.get("instructions") or []


def extract_transfer_amount(
    tx: dict[str, Any], recipient: str, mint: str
) -> tuple[int, str | None] | None:
    """Return (amount_micro, sender) of the first matching transfer, or None.

    Plain `transfer` instructions carry no mint; they are accepted when the
    destination is the custody token account, which only holds `mint`.
    """
    for ix in _iter_instructions(tx):
        if ix.get("program") != "spl-token":
            continue
        parsed = ix.get("parsed")
        if not isinstance(parsed, dict) or parsed.get("type") not in _TRANSFER_TYPES:
            continue
        info = parsed.get("info") or {}
        if parsed["type"] == "transferChecked" and info.get("mint") != mint:
            continue
        if info.get("destination") != recipient:
            continue
        raw = info.get("amount") or (info.get("tokenAmount") or {}).get("amount")
        if raw is None:
            continue
        return int(raw), info.get("source") or info.get("authority")
    return None


class SolanaRpcVerifier:
    def __init__(self, rpc_url: str, mint: str, timeout: float = 10.0) -> None:
        self._rpc_url = rpc_url
        self._mint = mint
        self._timeout = timeout

    async def _get_transaction(self, tx_ref: str) -> dict[str, Any] | None:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTransaction",
            "params": [
                tx_ref,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(self._rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        if body.get("error"):
            raise httpx.HTTPError(f"RPC error: {body['error']}")
        return body.get("result")

    async def verify_transfer(
        self, tx_ref: str, expected_amount: int, expected_recipient: str
    ) -> VerifiedTransfer:
        try:
            tx = await self._get_transaction(tx_ref)
        except httpx.HTTPError as e:
            logger.warning("Deposit lookup failed for %s: %s", tx_ref, e)
            return VerifiedTransfer(verified=False, error=f"RPC lookup failed: {e}")

        if tx is None:
            return VerifiedTransfer(verified=False, error="Transaction not found on chain")
        if (tx.get("meta") or {}).get("err"):
            return VerifiedTransfer(verified=False, error="Transaction failed on chain")

        found = extract_transfer_amount(tx, expected_recipient, self._mint)
        if found is None:
            return VerifiedTransfer(
                verified=False, error="No collateral transfer to the custody account"
            )

        amount, sender = found
        logger.info("Deposit %s verified on chain: %d micro from %s", tx_ref, amount, sender)
        return VerifiedTransfer(verified=True, actual_amount=amount, sender=sender)
