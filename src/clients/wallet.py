"""
Signing wallet for Fusion orders.
Wraps an eth-account local account loaded from a hex private key.
"""

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from ..utils.logger import get_logger

logger = get_logger("wallet")


class WalletError(Exception):
    """Key does not match the expected address, or a signature check failed."""


def _to_hex(signature: bytes) -> str:
    return "0x" + bytes(signature).hex()


def normalize_typed_data(typed_data: dict) -> dict:
    """
    Convert string-encoded integers in the primary message to ints.

    The Fusion quoter returns uint256 fields as decimal strings.
    """
    primary = typed_data.get("primaryType", "")
    fields = typed_data.get("types", {}).get(primary, [])
    message = dict(typed_data.get("message", {}))

    for field in fields:
        value = message.get(field["name"])
        if isinstance(value, str) and field["type"].startswith(("uint", "int")):
            message[field["name"]] = int(value, 16) if value.startswith("0x") else int(value)

    return {**typed_data, "message": message}


class Wallet:
    """
    Local signing wallet.

    Handles:
    - EIP-712 typed data signing (Fusion orders)
    - EIP-191 personal message signing and verification
    """

    def __init__(self, private_key_hex: str, expected_address: str, chain_id: int):
        """
        Initialize wallet.

        Args:
            private_key_hex: Private key, with or without 0x prefix
            expected_address: Address the key must derive to
            chain_id: Chain the wallet signs for

        Raises:
            WalletError: if the key does not derive to expected_address
        """
        key = private_key_hex if private_key_hex.startswith("0x") else f"0x{private_key_hex}"
        try:
            self._account = Account.from_key(key)
        except Exception as e:
            raise WalletError(f"Invalid private key: {e}") from e

        if self._account.address.lower() != expected_address.lower():
            raise WalletError("provided private key does not match the expected address")

        self.chain_id = chain_id

    @property
    def address(self) -> str:
        """Checksummed wallet address."""
        return self._account.address

    def sign_typed_data(self, typed_data: dict) -> str:
        """
        Sign an EIP-712 typed data document.

        Args:
            typed_data: Full document with types, primaryType, domain, message

        Returns:
            0x-prefixed 65-byte signature
        """
        signable = encode_typed_data(full_message=normalize_typed_data(typed_data))
        signed = self._account.sign_message(signable)
        return _to_hex(signed.signature)

    def sign_message(self, message: str) -> str:
        """Sign a personal message. Returns 0x-prefixed signature."""
        signed = self._account.sign_message(encode_defunct(text=message))
        return _to_hex(signed.signature)

    def verify_signature(self, signature: str, message: str) -> None:
        """
        Check that `signature` over `message` was made by this wallet.

        Raises:
            WalletError: if the recovered signer differs
        """
        try:
            signer = Account.recover_message(encode_defunct(text=message), signature=signature)
        except Exception as e:
            raise WalletError(f"Could not recover signer: {e}") from e

        if signer.lower() != self.address.lower():
            raise WalletError("signature does not match the public key")
