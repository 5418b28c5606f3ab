"""
Fusion Swap Bot

Alternates a wallet between a target token and a stable token using 1inch
Fusion orders.

Entry point: python -m src.main

Key Modules:
- src.monitor: Trailing trigger-band monitor (when to swap)
- src.clients: 1inch Fusion API client and signing wallet
- src.database: Redis balance history and monitor restart seed
- src.config: Environment configuration
"""
