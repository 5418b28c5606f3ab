#!/usr/bin/env python3
"""
Simple status display for the Fusion swap bot.
Shows the persisted monitor seed, balance history and API reachability.

Usage:
    python -m scripts.status
"""

import asyncio
from datetime import datetime

import aiohttp
import redis

from src.config import load_config
from src.clients.oneinch_client import OneInchClient
from src.database import BalanceStore


async def check_api() -> bool:
    """Check that the unauthenticated token endpoint answers."""
    url = f"{OneInchClient.BASE_URL}/auth/token"
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url) as resp:
                return resp.status == 200
    except aiohttp.ClientError as e:
        print(f"   {e}")
        return False


async def show_store(store: BalanceStore, symbols: list[str]) -> None:
    """Print the monitor seed and recent balances."""
    seed = await store.load_seed()
    print("\n" + "-"*60)
    print("📌 MONITOR SEED")
    print("-"*60)
    if seed:
        stance, reference_price = seed
        print(f"   Waiting to {stance.label}, reference price: {reference_price:f}")
    else:
        print("   No seed saved yet - bot starts from INITIAL_STANCE")

    for symbol in symbols:
        history = await store.get_balance_history(symbol, limit=5)
        print("\n" + "-"*60)
        print(f"💰 {symbol} BALANCES (newest first)")
        print("-"*60)
        if not history:
            print("   (none recorded)")
        for balance in history:
            print(f"   • {balance}")


async def main():
    """Main status display."""
    config = load_config()

    print("\n" + "="*60)
    print("  FUSION SWAP BOT - STATUS")
    print(f"  {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("="*60)

    print("\n🔍 Checking 1inch API connectivity...")
    if await check_api():
        print("✅ 1inch API is accessible")
    else:
        print("❌ 1inch API is not accessible")

    store = BalanceStore.connect(
        host=config.redis.host,
        port=config.redis.port,
        password=config.redis.password,
        db=config.redis.db
    )
    try:
        await store.ping()
    except redis.RedisError as e:
        print(f"❌ Redis is not reachable: {e}")
        return

    try:
        await show_store(store, [config.target_token.symbol, config.stable_token.symbol])
    finally:
        store.close()

    print("\n" + "="*60)
    print("  STATUS CHECK COMPLETE")
    print("="*60)


if __name__ == "__main__":
    asyncio.run(main())
