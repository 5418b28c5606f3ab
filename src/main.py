"""
Main entry point for the Fusion swap bot.
Polls a 1inch Fusion quote for the target/stable pair, feeds the exchange
rate to the trigger monitor and swaps sides when it fires.
"""

import asyncio
import signal
import sys
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .config import load_config, Config, TokenConfig
from .clients.oneinch_client import OneInchClient, OneInchAPIError, Quote, TokenHolding
from .clients.wallet import Wallet, WalletError
from .database import BalanceStore
from .monitor.trigger import TriggerMonitor, Stance
from .utils.logger import setup_logging, get_logger, SwapLogger

logger = get_logger("main")
swap_logger = SwapLogger()


class BotError(Exception):
    """Wallet or API state the bot cannot trade from."""


@dataclass
class SwapPlan:
    """Direction and size of the swap the bot is waiting to make."""
    stance: Stance
    from_token: TokenConfig
    to_token: TokenConfig
    from_amount: str  # Raw units


@dataclass
class CycleResult:
    """Outcome of one polling cycle."""
    stance: Stance
    price: float
    triggered: bool
    submitted: bool
    sleep_seconds: float


def to_units(raw_amount: str, decimals: int) -> float:
    """Convert a raw integer token amount to whole units."""
    return float(raw_amount) / (10 ** decimals)


def exchange_rate(stance: Stance, from_qty: float, to_qty: float) -> float:
    """
    Price of one target token in stable tokens.

    ACCUMULATE swaps stable into target, DISTRIBUTE swaps target into stable.
    """
    if from_qty <= 0 or to_qty <= 0:
        raise BotError(f"Quote has a zero amount: {from_qty} -> {to_qty}")
    if stance is Stance.ACCUMULATE:
        return from_qty / to_qty
    return to_qty / from_qty


class SwapBot:
    """
    Main bot orchestrator.

    Coordinates:
    - 1inch auth, balances, quotes and order submission
    - Trigger monitor updates
    - Order signing
    - Balance and seed bookkeeping in Redis
    """

    def __init__(
        self,
        config: Config,
        oneinch_client: Optional[OneInchClient] = None,
        wallet: Optional[Wallet] = None,
        store: Optional[BalanceStore] = None
    ):
        """Initialize bot with configuration and optional collaborators."""
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.oneinch_client = oneinch_client or OneInchClient(
            router_contract_address=config.router.contract_address,
            chain_id=config.wallet.chain_id,
            timeout_seconds=config.router.request_timeout_seconds
        )
        self.wallet = wallet or Wallet(
            private_key_hex=config.wallet.private_key_hex,
            expected_address=config.wallet.wallet_address,
            chain_id=config.wallet.chain_id
        )
        self.store = store or BalanceStore.connect(
            host=config.redis.host,
            port=config.redis.port,
            password=config.redis.password,
            db=config.redis.db
        )

        self.monitor: Optional[TriggerMonitor] = None

        # Set once the monitor stance has been aligned with the wallet
        self._stance_seeded = False
        self._closed = False

        # Stats
        self._cycles = 0
        self._triggers_seen = 0
        self._orders_submitted = 0

    async def initialize(self) -> None:
        """Initialize all components."""
        logger.info("Initializing Fusion swap bot")

        if self.config.risk.kill_switch:
            logger.warning("Kill switch is enabled - bot will not trade")

        logger.info("Connecting to redis...")
        await self.store.ping()
        logger.info("Connected to redis successfully")

        await self.oneinch_client.initialize()

        target = self.config.target_token
        stable = self.config.stable_token
        logger.info(f"Wallet Address: {self.wallet.address}")
        logger.info(f"Chain ID: {self.config.wallet.chain_id}")
        logger.info(
            f"Target Token: {target.symbol}, Name: {target.name}, "
            f"Decimals: {target.decimals}, Address: {target.address}"
        )
        logger.info(
            f"Stable Token: {stable.symbol}, Name: {stable.name}, "
            f"Decimals: {stable.decimals}, Address: {stable.address}"
        )
        logger.info(f"Router Contract Address: {self.oneinch_client.router_contract_address}")

        self.monitor = await self._build_monitor()
        logger.info("Bot initialized successfully", extra=self.monitor.snapshot().to_dict())

    async def _build_monitor(self) -> TriggerMonitor:
        """Create the monitor from the persisted seed, or from config."""
        settings = self.config.monitor
        seed = await self.store.load_seed()

        if seed:
            stance, reference_price = seed
            logger.info(
                "Restoring monitor seed",
                extra={"stance": stance.label, "reference_price": reference_price}
            )
        else:
            stance, reference_price = settings.initial_stance, 0.0

        monitor = TriggerMonitor.create(
            stance=stance,
            initial_price=0.0,
            reference_price=reference_price,
            limit_percent=settings.limit_percent,
            stop_loss_percent=settings.stop_loss_percent
        )

        # No anchor price yet: open the bands so the first quote seeds them
        if stance is Stance.ACCUMULATE or reference_price == 0:
            monitor.switch_stance(stance)

        return monitor

    async def run(self) -> None:
        """Run the main polling loop until shutdown is requested."""
        self._running = True
        logger.info("Starting Fusion swap bot")

        while self._running and not self._shutdown_event.is_set():
            result = await self.run_cycle()
            logger.info(f"Sleeping for {result.sleep_seconds}s before next request...")
            await self._sleep(result.sleep_seconds)

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run_cycle(self) -> CycleResult:
        """
        Run one polling cycle.

        Raises:
            BotError: on an allowance or balance state the bot can't trade from
            OneInchAPIError: if a read request to the API fails
        """
        if self.monitor is None:
            raise RuntimeError("Bot not initialized")

        self._cycles += 1

        if await self.oneinch_client.refresh_access_token():
            logger.debug("Generated/Refreshed access token successfully")

        holdings = await self._fetch_holdings()
        await self._record_balances(holdings)

        plan = self._plan_swap(holdings)
        if plan.stance is not self.monitor.stance:
            await self._align_stance(plan.stance)
        self._stance_seeded = True

        logger.debug(
            f"Waiting to swap from {plan.from_token.symbol} to {plan.to_token.symbol}, "
            f"generating quote..."
        )
        quote = await self.oneinch_client.get_quote(
            self.wallet.address,
            plan.from_token.address,
            plan.to_token.address,
            plan.from_amount
        )

        from_qty = to_units(plan.from_amount, plan.from_token.decimals)
        to_qty = to_units(quote.to_token_amount, plan.to_token.decimals)
        logger.info(
            f"Current Exchange Rate: {from_qty:f} {plan.from_token.symbol} => "
            f"{to_qty:f} {plan.to_token.symbol}"
        )

        price = exchange_rate(plan.stance, from_qty, to_qty)
        self.monitor.update(price)
        triggered = self.monitor.is_triggered()

        swap_logger.monitor_update(
            stance=self.monitor.stance.label,
            price=price,
            trigger_up=self.monitor.trigger_up,
            trigger_down=self.monitor.trigger_down,
            triggered=triggered,
            target_symbol=self.config.target_token.symbol,
            stable_symbol=self.config.stable_token.symbol
        )

        submitted = False
        sleep_seconds = self.config.polling.poll_interval_seconds

        if triggered:
            self._triggers_seen += 1
            swap_logger.trigger_fired(self.monitor.stance.label, price)

            stable_units = from_qty if plan.stance is Stance.ACCUMULATE else to_qty
            if self._may_submit(stable_units):
                submitted = await self._execute_swap(plan, quote, from_qty, to_qty)

            if submitted:
                self.monitor.rearm(plan.stance.opposite, price)
                await self.store.save_seed(self.monitor.snapshot())
                sleep_seconds = self.config.polling.post_trade_sleep_seconds

        return CycleResult(
            stance=plan.stance,
            price=price,
            triggered=triggered,
            submitted=submitted,
            sleep_seconds=sleep_seconds
        )

    async def _fetch_holdings(self) -> tuple[TokenHolding, TokenHolding]:
        """Fetch and check (target, stable) holdings."""
        logger.debug("Fetching wallet token balances and router allowances...")
        balances = await self.oneinch_client.get_balances_and_allowances(self.wallet.address)

        target = self.config.target_token
        stable = self.config.stable_token
        holdings = []
        for token in (target, stable):
            holding = balances.get(token.address) or balances.get(token.address.lower())
            if holding is None:
                raise BotError(f"No balance returned for {token.symbol} ({token.address})")
            logger.debug(
                f"{token.symbol} Balance: {holding.balance}, Allowance: {holding.allowance}"
            )
            if not holding.is_approved:
                raise BotError(f"Insufficient router allowance for {token.symbol}")
            holdings.append(holding)

        target_holding, stable_holding = holdings
        if target_holding.is_empty and stable_holding.is_empty:
            raise BotError(
                f"Insufficient wallet balances for {target.symbol} and {stable.symbol}"
            )

        return target_holding, stable_holding

    async def _record_balances(self, holdings: tuple[TokenHolding, TokenHolding]) -> None:
        tokens = (self.config.target_token, self.config.stable_token)
        for token, holding in zip(tokens, holdings):
            if await self.store.record_balance(token.symbol, holding.balance):
                swap_logger.balance_recorded(token.symbol, holding.balance)

    def _plan_swap(self, holdings: tuple[TokenHolding, TokenHolding]) -> SwapPlan:
        """
        Pick the swap direction from what the wallet holds.

        When both sides hold a balance the monitor's stance decides.
        """
        target_holding, stable_holding = holdings
        target = self.config.target_token
        stable = self.config.stable_token

        if target_holding.is_empty:
            stance = Stance.ACCUMULATE
        elif stable_holding.is_empty:
            stance = Stance.DISTRIBUTE
        else:
            stance = self.monitor.stance

        if stance is Stance.ACCUMULATE:
            return SwapPlan(stance, stable, target, stable_holding.balance)
        return SwapPlan(stance, target, stable, target_holding.balance)

    async def _align_stance(self, held: Stance) -> None:
        """Switch the monitor to the side the wallet actually holds."""
        if self._stance_seeded:
            logger.warning(
                f"Wallet holds the {held.label} side but monitor waits to "
                f"{self.monitor.stance.label}, re-arming"
            )
        else:
            logger.info(f"Wallet holds the {held.label} side, arming monitor")

        self.monitor.switch_stance(held)
        await self.store.save_seed(self.monitor.snapshot())

    def _may_submit(self, stable_units: float) -> bool:
        if self.config.risk.kill_switch:
            logger.debug("Kill switch enabled - not executing")
            return False
        # Swap must return strictly more than the minimum
        if stable_units <= self.config.risk.min_stable_output:
            logger.warning(
                f"Swap value {stable_units:f} {self.config.stable_token.symbol} does not "
                f"exceed minimum {self.config.risk.min_stable_output:f}, not executing"
            )
            return False
        return True

    async def _execute_swap(
        self,
        plan: SwapPlan,
        quote: Quote,
        from_qty: float,
        to_qty: float
    ) -> bool:
        """
        Build, sign and submit the order for a triggered swap.

        Returns:
            True if the relayer accepted the order
        """
        order_hash = ""
        try:
            logger.debug("Creating order data...")
            order = await self.oneinch_client.create_order(
                self.wallet.address,
                plan.from_token.address,
                plan.to_token.address,
                plan.from_amount,
                quote
            )
            order_hash = order.order_hash
            logger.debug(f"Created order with hash: {order_hash} successfully")

            signature = self.wallet.sign_typed_data(order.typed_data)
            logger.debug("Signed order successfully", extra={"signature": signature})

            if self.config.risk.simulation_mode:
                logger.info(
                    "[SIMULATION] Would submit order",
                    extra={
                        "order_hash": order_hash,
                        "from": plan.from_token.symbol,
                        "to": plan.to_token.symbol,
                        "from_amount": from_qty,
                        "to_amount": to_qty
                    }
                )
                return False

            logger.info("Submitting order...")
            await self.oneinch_client.submit_order(signature, order, quote)

        except (OneInchAPIError, aiohttp.ClientError, WalletError) as e:
            swap_logger.order_failed(order_hash, "Submission error", str(e))
            return False

        self._orders_submitted += 1
        swap_logger.order_submitted(
            order_hash,
            plan.from_token.symbol,
            plan.to_token.symbol,
            from_qty,
            to_qty
        )
        return True

    def _log_stats(self) -> None:
        """Log current statistics."""
        logger.info(
            "Bot statistics",
            extra={
                "cycles": self._cycles,
                "triggers_seen": self._triggers_seen,
                "orders_submitted": self._orders_submitted
            }
        )

    async def shutdown(self) -> None:
        """Gracefully shutdown the bot."""
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down bot")
        self._running = False
        self._shutdown_event.set()

        await self.oneinch_client.close()
        self.store.close()

        self._log_stats()
        logger.info("Bot shutdown complete")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._running = False
        self._shutdown_event.set()


def setup_signal_handlers(bot: SwapBot) -> None:
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        bot.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def main() -> None:
    """Main entry point."""
    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(
        level=config.logging.log_level,
        json_format=config.logging.json_logging
    )

    logger.info("Starting service...")

    try:
        bot = SwapBot(config)
    except WalletError as e:
        logger.error(f"Error occurred while creating wallet: {e}, exiting...")
        sys.exit(1)

    setup_signal_handlers(bot)

    try:
        await bot.initialize()
        await bot.run()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        await bot.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
