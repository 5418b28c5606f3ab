"""
Trailing trigger-band monitor.

Decides from a stream of noisy price observations when the bot should flip
between accumulating the target asset and distributing it. The monitor holds
two price bands around the current observation and ratchets them with the
trend; a price that reaches either band fires the trigger.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Union


# Open sentinels: unreachable by any finite non-negative price
SENTINEL_UP = math.inf
SENTINEL_DOWN = -1.0


class MonitorError(Exception):
    """Base error for the trigger monitor."""


class StanceError(MonitorError):
    """Unrecognized stance. Invariant violation, never recovered."""


class InvalidInputError(MonitorError, ValueError):
    """Non-finite or negative price, or a non-positive band width."""


class Stance(Enum):
    """Which side of the pair the bot is waiting to trade."""
    ACCUMULATE = "accumulate"  # holding stable, waiting to buy target
    DISTRIBUTE = "distribute"  # holding target, waiting to sell it

    @property
    def label(self) -> str:
        """Order label shown in logs."""
        return "BUY" if self is Stance.ACCUMULATE else "SELL"

    @property
    def opposite(self) -> "Stance":
        return Stance.DISTRIBUTE if self is Stance.ACCUMULATE else Stance.ACCUMULATE

    @classmethod
    def parse(cls, value: Union[str, "Stance"]) -> "Stance":
        """
        Parse a stance from its value or order label.

        Accepts "accumulate"/"BUY" and "distribute"/"SELL" in any case.

        Raises:
            StanceError: for anything else
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for stance in cls:
                if key in (stance.value, stance.label.lower()):
                    return stance
        raise StanceError(f"Unknown stance: {value!r}")


@dataclass(frozen=True)
class MonitorState:
    """Point-in-time view of a TriggerMonitor."""
    stance: Stance
    limit_percent: float
    stop_loss_percent: float
    trigger_up: float
    trigger_down: float
    reference_price: float
    triggered: bool

    def to_dict(self) -> dict:
        return {
            "stance": self.stance.label,
            "limit_percent": self.limit_percent,
            "stop_loss_percent": self.stop_loss_percent,
            "trigger_up": self.trigger_up,
            "trigger_down": self.trigger_down,
            "reference_price": self.reference_price,
            "triggered": self.triggered,
        }


def _require_stance(stance) -> Stance:
    if not isinstance(stance, Stance):
        raise StanceError(f"Unknown stance: {stance!r}")
    return stance


def _require_price(name: str, value: float) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(price) or price < 0:
        raise InvalidInputError(f"{name} must be finite and non-negative, got {value!r}")
    return price


def _require_bound(name: str, value: float) -> float:
    # Non-positive bounds are legal and mean "open sentinel"
    try:
        bound = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(bound):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return bound


def _require_percent(name: str, value: float) -> float:
    try:
        percent = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(percent) or percent <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value!r}")
    return percent


class TriggerMonitor:
    """
    Hysteresis state machine over two trading stances.

    While ACCUMULATE, both bands trail a falling price downward; while
    DISTRIBUTE, both trail a rising price upward. Bands never widen back out.
    `update` fires the trigger when a price reaches either band; the driver
    then acts and re-arms the monitor with `switch_stance` or `rearm`.

    Once both bands are seeded, trigger_down < trigger_up. A zero anchor, or
    seeding open bands from a price of 0, leaves both bands at 0 and every
    later update fires until the monitor is re-armed.

    Not thread-safe. One driver owns one instance.
    """

    def __init__(
        self,
        stance: Stance,
        limit_percent: float,
        stop_loss_percent: float,
        trigger_up: float = SENTINEL_UP,
        trigger_down: float = SENTINEL_DOWN,
        reference_price: float = 0.0
    ):
        """
        Initialize with explicit bands. Prefer `TriggerMonitor.create`.

        Args:
            stance: Initial stance
            limit_percent: Width of the take-action band, in percent
            stop_loss_percent: Width of the abandon band, in percent
            trigger_up: Upper band (defaults to the open sentinel)
            trigger_down: Lower band (defaults to the open sentinel)
            reference_price: Anchor price for a DISTRIBUTE stance
        """
        self._stance = _require_stance(stance)
        self._limit_percent = _require_percent("limit_percent", limit_percent)
        self._stop_loss_percent = _require_percent("stop_loss_percent", stop_loss_percent)
        self._trigger_up = trigger_up
        self._trigger_down = trigger_down
        self._reference_price = reference_price
        self._triggered = False

    @classmethod
    def create(
        cls,
        stance: Stance,
        initial_price: float,
        reference_price: float,
        limit_percent: float,
        stop_loss_percent: float
    ) -> "TriggerMonitor":
        """
        Build a monitor with bands derived from an anchor price.

        ACCUMULATE anchors on `initial_price`; DISTRIBUTE anchors on
        `reference_price` (the price the target asset was bought at). A zero
        anchor gives zero bands, so the first update with any price fires;
        callers without an anchor follow up with `switch_stance` to open
        the bands instead.

        Args:
            stance: Initial stance
            initial_price: Current price, used when accumulating
            reference_price: Last buy price, used when distributing
            limit_percent: Width of the take-action band, in percent
            stop_loss_percent: Width of the abandon band, in percent

        Returns:
            A new, untriggered TriggerMonitor

        Raises:
            StanceError: if stance is not a Stance
            InvalidInputError: on a bad price or percent
        """
        stance = _require_stance(stance)
        initial_price = _require_price("initial_price", initial_price)
        reference_price = _require_price("reference_price", reference_price)

        monitor = cls(stance, limit_percent, stop_loss_percent)
        anchor = initial_price if stance is Stance.ACCUMULATE else reference_price
        monitor._install_from_anchor(stance, anchor)
        return monitor

    # Read-only state

    @property
    def stance(self) -> Stance:
        return self._stance

    @property
    def limit_percent(self) -> float:
        return self._limit_percent

    @property
    def stop_loss_percent(self) -> float:
        return self._stop_loss_percent

    @property
    def trigger_up(self) -> float:
        return self._trigger_up

    @property
    def trigger_down(self) -> float:
        return self._trigger_down

    @property
    def reference_price(self) -> float:
        return self._reference_price

    @property
    def triggered(self) -> bool:
        return self._triggered

    @property
    def is_seeded(self) -> bool:
        """True once neither band sits at its open sentinel."""
        return self._trigger_up != SENTINEL_UP and self._trigger_down != SENTINEL_DOWN

    def is_triggered(self) -> bool:
        """Result of the most recent update."""
        return self._triggered

    def snapshot(self) -> MonitorState:
        return MonitorState(
            stance=self._stance,
            limit_percent=self._limit_percent,
            stop_loss_percent=self._stop_loss_percent,
            trigger_up=self._trigger_up,
            trigger_down=self._trigger_down,
            reference_price=self._reference_price,
            triggered=self._triggered,
        )

    # Transitions

    def update(self, current_price: float) -> None:
        """
        Feed one price observation.

        Fires the trigger if the price reaches either band as they stood
        before this call; otherwise ratchets the bands with the trend.

        Raises:
            StanceError: if the stance was corrupted
            InvalidInputError: if the price is negative or not finite
        """
        stance = _require_stance(self._stance)
        price = _require_price("current_price", current_price)

        crossed = price >= self._trigger_up or price <= self._trigger_down

        if not crossed:
            if stance is Stance.ACCUMULATE:
                self._ratchet_down(price)
            else:
                self._ratchet_up(price)

        self._triggered = crossed

    def switch_stance(
        self,
        new_stance: Stance,
        new_trigger_up: float = 0.0,
        new_trigger_down: float = 0.0
    ) -> None:
        """
        Re-arm for a new stance with caller-supplied bands.

        Any non-positive bound is replaced with its open sentinel so the next
        update seeds that band from the observed price. State is untouched
        when validation fails.

        Raises:
            StanceError: if new_stance is not a Stance
            InvalidInputError: on a non-finite bound, or when both bounds are
                positive and the lower one is not below the upper one
        """
        new_stance = _require_stance(new_stance)
        up = _require_bound("new_trigger_up", new_trigger_up)
        down = _require_bound("new_trigger_down", new_trigger_down)
        if up > 0 and down > 0 and down >= up:
            raise InvalidInputError(
                f"new_trigger_down ({down}) must be below new_trigger_up ({up})"
            )

        self._stance = new_stance
        self._reference_price = 0.0
        self._triggered = False
        self._trigger_up = up if up > 0 else SENTINEL_UP
        self._trigger_down = down if down > 0 else SENTINEL_DOWN

    def rearm(self, new_stance: Stance, price: float) -> None:
        """
        Re-arm for a new stance with bands derived from an execution price.

        Entering DISTRIBUTE records `price` as the reference price; entering
        ACCUMULATE clears it. Uses the same formulas as `create`, so a zero
        price gives zero bands.

        Raises:
            StanceError: if new_stance is not a Stance
            InvalidInputError: if the price is negative or not finite
        """
        new_stance = _require_stance(new_stance)
        price = _require_price("price", price)

        self._stance = new_stance
        self._triggered = False
        self._install_from_anchor(new_stance, price)

    # Internals

    def _install_from_anchor(self, stance: Stance, anchor: float) -> None:
        limit = self._limit_percent / 100
        stop_loss = self._stop_loss_percent / 100

        if stance is Stance.ACCUMULATE:
            self._reference_price = 0.0
            self._trigger_up = anchor * (1 + stop_loss)
            self._trigger_down = anchor * (1 - limit)
        else:
            self._reference_price = anchor
            self._trigger_up = anchor * (1 + limit)
            self._trigger_down = anchor * (1 - stop_loss)

    def _ratchet_down(self, price: float) -> None:
        # ACCUMULATE: both bands only move down
        candidate_down = price * (1 - self._limit_percent / 100)
        if self._trigger_down == SENTINEL_DOWN or candidate_down < self._trigger_down:
            self._trigger_down = candidate_down

        candidate_up = price * (1 + self._stop_loss_percent / 100)
        if candidate_up < self._trigger_up:
            self._trigger_up = candidate_up

    def _ratchet_up(self, price: float) -> None:
        # DISTRIBUTE: both bands only move up
        candidate_up = price * (1 + self._limit_percent / 100)
        if self._trigger_up == SENTINEL_UP or candidate_up > self._trigger_up:
            self._trigger_up = candidate_up

        candidate_down = price * (1 - self._stop_loss_percent / 100)
        if candidate_down > self._trigger_down:
            self._trigger_down = candidate_down

    def __repr__(self) -> str:
        return (
            f"TriggerMonitor(stance={self._stance.label}, up={self._trigger_up:.6f}, "
            f"down={self._trigger_down:.6f}, triggered={self._triggered})"
        )
