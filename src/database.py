"""
Redis bookkeeping for wallet balances and the monitor's restart seed.
"""
import asyncio
from functools import partial
from typing import Optional

import redis

from .monitor.trigger import MonitorState, Stance
from .utils.logger import get_logger

logger = get_logger("database")

LAST_BALANCE_KEY = "LAST_BALANCE:{symbol}"
BALANCE_HISTORY_KEY = "BALANCES:{symbol}"
SEED_STANCE_KEY = "MONITOR:STANCE"
SEED_REFERENCE_PRICE_KEY = "MONITOR:REFERENCE_PRICE"


class BalanceStore:
    """
    Redis-backed store.

    Keys:
    - LAST_BALANCE:<symbol>  last non-zero raw balance seen
    - BALANCES:<symbol>      history list, newest first
    - MONITOR:STANCE / MONITOR:REFERENCE_PRICE  seed for TriggerMonitor.create

    The redis client is blocking; calls run in the default executor.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def connect(cls, host: str, port: int, password: str = "", db: int = 0) -> "BalanceStore":
        client = redis.Redis(
            host=host,
            port=port,
            password=password or None,
            db=db,
            decode_responses=True
        )
        return cls(client)

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def ping(self) -> None:
        """Check connectivity. Raises redis.RedisError on failure."""
        await self._run(self._client.ping)

    async def get_last_balance(self, symbol: str) -> Optional[str]:
        return await self._run(self._client.get, LAST_BALANCE_KEY.format(symbol=symbol))

    async def get_balance_history(self, symbol: str, limit: int = 20) -> list[str]:
        return await self._run(
            self._client.lrange, BALANCE_HISTORY_KEY.format(symbol=symbol), 0, limit - 1
        )

    async def record_balance(self, symbol: str, balance: str) -> bool:
        """
        Track a freshly fetched raw balance.

        Creates LAST_BALANCE:<symbol> when missing. A non-zero balance that
        differs from the stored one overwrites it and is pushed onto the
        history.

        Returns:
            True if the history grew
        """
        key = LAST_BALANCE_KEY.format(symbol=symbol)
        last = await self._run(self._client.get, key)

        if last is None:
            logger.warning(f"Key {key} does not exist in Redis, creating it")
            await self._run(self._client.set, key, balance)

        if balance == "0" or last == balance:
            return False

        await self._run(self._client.set, key, balance)
        await self._run(
            self._client.lpush, BALANCE_HISTORY_KEY.format(symbol=symbol), balance
        )
        logger.debug(f"Recorded {symbol} balance", extra={"balance": balance})
        return True

    async def save_seed(self, state: MonitorState) -> None:
        """Persist stance and reference price for the next process start."""
        await self._run(self._client.set, SEED_STANCE_KEY, state.stance.value)
        await self._run(
            self._client.set, SEED_REFERENCE_PRICE_KEY, repr(state.reference_price)
        )

    async def load_seed(self) -> Optional[tuple[Stance, float]]:
        """
        Load the persisted seed.

        Returns:
            (stance, reference_price), or None if nothing was saved
        """
        stance = await self._run(self._client.get, SEED_STANCE_KEY)
        if stance is None:
            return None

        reference = await self._run(self._client.get, SEED_REFERENCE_PRICE_KEY)
        return Stance.parse(stance), float(reference or 0.0)

    def close(self) -> None:
        self._client.close()
