"""Redis record of gateway transactions already applied to an invoice.

Narrows the window between reading the balance and writing the payment when
several instances (or rapid redeliveries) process the same transaction.
"""

import redis.asyncio as redis

from payrelay.common.logging import logger


class TransactionLedger:
    """`SET NX` claims keyed by gateway transaction id."""

    def __init__(self, rdb, ttl_seconds: int, namespace: str = "reconciled:authnet") -> None:
        self.rdb = rdb
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int) -> "TransactionLedger":
        return cls(redis.Redis.from_url(url, decode_responses=True), ttl_seconds)

    def _key(self, transaction_id: str) -> str:
        return f"{self.namespace}:{transaction_id}"

    async def claim(self, transaction_id: str) -> bool:
        """True when this caller owns the transaction; False if already claimed.

        When Redis is unavailable the claim is granted and balance gating is
        the only guard.
        """

        try:
            return bool(await self.rdb.set(self._key(transaction_id), "1", nx=True, ex=self.ttl_seconds))
        except redis.RedisError as exc:
            logger.warning("transaction_ledger_claim_failed transaction_id=%s error=%s", transaction_id, exc)
            return True

    async def release(self, transaction_id: str) -> None:
        """Drop a claim after a failed write so a redelivery can retry."""

        try:
            await self.rdb.delete(self._key(transaction_id))
        except redis.RedisError as exc:
            logger.warning("transaction_ledger_release_failed transaction_id=%s error=%s", transaction_id, exc)

    async def close(self) -> None:
        await self.rdb.aclose()
