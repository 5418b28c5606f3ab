# 1inch and wallet clients
from .oneinch_client import OneInchClient, OneInchAPIError
from .wallet import Wallet, WalletError

__all__ = ["OneInchClient", "OneInchAPIError", "Wallet", "WalletError"]
