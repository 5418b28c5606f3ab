"""
1inch Fusion API client.
Handles auth tokens, balance/allowance queries, quotes and order submission.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp

from ..utils.logger import get_logger

logger = get_logger("oneinch")


# Unknown upstream meaning; the quoter rejects requests without it
QUOTE_SOURCE = "0xe26b9977"

# Refresh the access token this long before it expires
TOKEN_REFRESH_BUFFER_SECONDS = 10 * 60


class OneInchAPIError(Exception):
    """Unexpected HTTP status from the 1inch API."""

    def __init__(self, status: int, endpoint: str, body: str = ""):
        self.status = status
        self.endpoint = endpoint
        self.body = body
        super().__init__(f"1inch request to {endpoint} failed with status {status}")


@dataclass
class TokenHolding:
    """Wallet balance and router allowance for one token, in raw units."""
    balance: str
    allowance: str

    @property
    def is_empty(self) -> bool:
        return self.balance == "0"

    @property
    def is_approved(self) -> bool:
        return self.allowance != "0"


@dataclass
class Quote:
    """Fusion swap quote."""
    quote_id: str
    from_token_amount: str
    to_token_amount: str
    recommended_preset: str
    raw: str  # Body posted back when building the order


@dataclass
class FusionOrder:
    """Order built by the quoter, ready for EIP-712 signing."""
    order_hash: str
    extension: str
    typed_data: dict = field(default_factory=dict)

    @property
    def message(self) -> dict:
        return self.typed_data.get("message", {})


@dataclass
class AuthSession:
    access_token: str = ""
    exp: int = 0


class OneInchClient:
    """
    Async client for the 1inch Fusion proxy API.

    The API authenticates with a short-lived bearer token obtained from an
    unauthenticated endpoint; `refresh_access_token` must run before any
    other call.
    """

    BASE_URL = "https://proxy-app.1inch.io/v2.0"

    # Fields of the typed order message accepted by the relayer
    ORDER_FIELDS = (
        "maker", "makerAsset", "takerAsset", "makerTraits",
        "salt", "makingAmount", "takingAmount", "receiver",
    )

    def __init__(
        self,
        router_contract_address: str,
        chain_id: int,
        timeout_seconds: float = 15.0
    ):
        """
        Initialize 1inch client.

        Args:
            router_contract_address: Router contract the allowances refer to
            chain_id: Chain ID (1 for Ethereum mainnet)
            timeout_seconds: Total timeout per HTTP request
        """
        self.router_contract_address = router_contract_address
        self.chain_id = chain_id
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None
        self._auth = AuthSession()

    @property
    def access_token(self) -> str:
        return self._auth.access_token

    @property
    def expiration(self) -> int:
        return self._auth.exp

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if not self._session:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        logger.info("1inch client initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        expected_status: int = 200,
        params: Optional[dict] = None,
        data: Optional[str] = None,
        authenticated: bool = True
    ) -> Any:
        """Make HTTP request to the 1inch API and decode the JSON body."""
        if not self._session:
            await self.initialize()

        headers = {}
        if authenticated:
            if not self._auth.access_token:
                raise RuntimeError("1inch client not initialized: no access token")
            headers["Authorization"] = f"Bearer {self._auth.access_token}"
        if data is not None:
            headers["Content-Type"] = "application/json; charset=utf-8"

        url = f"{self.BASE_URL}{endpoint}"

        try:
            async with self._session.request(
                method, url, params=params, data=data, headers=headers
            ) as response:
                text = await response.text()
                if response.status != expected_status:
                    raise OneInchAPIError(response.status, endpoint, text)
                return json.loads(text) if text else None
        except aiohttp.ClientError as e:
            logger.error(f"1inch API request failed: {e}")
            raise

    def token_needs_refresh(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return self._auth.exp - now - TOKEN_REFRESH_BUFFER_SECONDS <= 0

    async def refresh_access_token(self) -> bool:
        """
        Fetch a new access token unless the current one is still fresh.

        Returns:
            True if a new token was fetched
        """
        if not self.token_needs_refresh():
            return False

        data = await self._request("GET", "/auth/token", authenticated=False)
        self._auth = AuthSession(
            access_token=data.get("access_token", ""),
            exp=int(data.get("exp", 0))
        )
        logger.debug("Refreshed 1inch access token", extra={"exp": self._auth.exp})
        return True

    async def get_balances_and_allowances(
        self,
        wallet_address: str
    ) -> dict[str, TokenHolding]:
        """
        Get token balances of a wallet and its allowances for the router.

        Returns:
            Map of token address to TokenHolding
        """
        data = await self._request(
            "GET",
            f"/balance/v1.2/{self.chain_id}/allowancesAndBalances/"
            f"{self.router_contract_address}/{wallet_address}"
        )

        return {
            address: TokenHolding(
                balance=str(entry.get("balance", "0")),
                allowance=str(entry.get("allowance", "0"))
            )
            for address, entry in (data or {}).items()
        }

    def _swap_params(
        self,
        wallet_address: str,
        from_token_address: str,
        to_token_address: str,
        from_token_amount: str
    ) -> dict:
        return {
            "walletAddress": wallet_address,
            "amount": from_token_amount,
            "fromTokenAddress": from_token_address,
            "toTokenAddress": to_token_address,
        }

    async def get_quote(
        self,
        wallet_address: str,
        from_token_address: str,
        to_token_address: str,
        from_token_amount: str
    ) -> Quote:
        """
        Get a Fusion quote for swapping `from_token_amount` raw units.

        Returns:
            Quote, with the raw body kept for building the order
        """
        params = self._swap_params(
            wallet_address, from_token_address, to_token_address, from_token_amount
        )
        params.update({
            "enableEstimate": "true",
            "showDestAmountMinusFee": "true",
            "source": QUOTE_SOURCE,
        })

        data = await self._request(
            "GET",
            f"/fusion/quoter/v2.0/{self.chain_id}/quote/receive",
            params=params
        )

        # The build endpoint expects these under different names
        raw = dict(data)
        raw["slippage"] = data.get("k")
        raw["autoSlippage"] = data.get("autoK")

        return Quote(
            quote_id=str(data.get("quoteId", "")),
            from_token_amount=str(data.get("fromTokenAmount", "0")),
            to_token_amount=str(data.get("toTokenAmount", "0")),
            recommended_preset=str(data.get("recommended_preset", "")),
            raw=json.dumps(raw)
        )

    async def create_order(
        self,
        wallet_address: str,
        from_token_address: str,
        to_token_address: str,
        from_token_amount: str,
        quote: Quote
    ) -> FusionOrder:
        """Build an order from a quote."""
        if quote is None:
            raise ValueError("invalid quote, cannot be None")

        params = self._swap_params(
            wallet_address, from_token_address, to_token_address, from_token_amount
        )
        params.update({
            "preset": quote.recommended_preset,
            "source": QUOTE_SOURCE,
        })

        data = await self._request(
            "POST",
            f"/fusion/quoter/v2.0/{self.chain_id}/quote/build",
            expected_status=201,
            params=params,
            data=quote.raw
        )

        return FusionOrder(
            order_hash=str(data.get("orderHash", "")),
            extension=str(data.get("extension", "")),
            typed_data=data.get("typedData", {})
        )

    async def submit_order(
        self,
        signature: str,
        order: FusionOrder,
        quote: Quote
    ) -> None:
        """
        Submit a signed order to the relayer.

        Raises:
            OneInchAPIError: if the relayer does not accept the order
        """
        if order is None:
            raise ValueError("invalid order, cannot be None")
        if quote is None:
            raise ValueError("invalid quote, cannot be None")

        message = order.message
        payload = {
            "extension": order.extension,
            "quoteId": quote.quote_id,
            "signature": signature,
            "order": {name: message.get(name, "") for name in self.ORDER_FIELDS},
        }

        await self._request(
            "POST",
            f"/fusion/relayer/v2.0/{self.chain_id}/order/submit",
            expected_status=201,
            data=json.dumps(payload)
        )

        logger.info(
            "Order submitted",
            extra={"order_hash": order.order_hash, "quote_id": quote.quote_id}
        )
