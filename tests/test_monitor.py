"""
Tests for the trailing trigger-band monitor.
"""

import math

import pytest

from src.monitor.trigger import (
    TriggerMonitor,
    MonitorState,
    Stance,
    StanceError,
    InvalidInputError,
    MonitorError,
    SENTINEL_UP,
    SENTINEL_DOWN,
)


@pytest.fixture
def accumulating():
    """Monitor waiting to buy, anchored at 100 with 1% limit / 2% stop-loss."""
    return TriggerMonitor.create(
        stance=Stance.ACCUMULATE,
        initial_price=100.0,
        reference_price=0.0,
        limit_percent=1.0,
        stop_loss_percent=2.0
    )


@pytest.fixture
def distributing():
    """Monitor waiting to sell, bought at 50 with 5% limit / 3% stop-loss."""
    return TriggerMonitor.create(
        stance=Stance.DISTRIBUTE,
        initial_price=0.0,
        reference_price=50.0,
        limit_percent=5.0,
        stop_loss_percent=3.0
    )


class TestStance:
    """Tests for the stance enum."""

    def test_labels(self):
        assert Stance.ACCUMULATE.label == "BUY"
        assert Stance.DISTRIBUTE.label == "SELL"

    def test_opposite(self):
        assert Stance.ACCUMULATE.opposite is Stance.DISTRIBUTE
        assert Stance.DISTRIBUTE.opposite is Stance.ACCUMULATE

    @pytest.mark.parametrize("value,expected", [
        ("accumulate", Stance.ACCUMULATE),
        ("BUY", Stance.ACCUMULATE),
        (" buy ", Stance.ACCUMULATE),
        ("Distribute", Stance.DISTRIBUTE),
        ("sell", Stance.DISTRIBUTE),
        (Stance.DISTRIBUTE, Stance.DISTRIBUTE),
    ])
    def test_parse(self, value, expected):
        assert Stance.parse(value) is expected

    @pytest.mark.parametrize("value", ["hold", "", None, 0, 1])
    def test_parse_rejects_unknown(self, value):
        with pytest.raises(StanceError):
            Stance.parse(value)


class TestCreate:
    """Tests for construction."""

    def test_accumulate_bands(self, accumulating):
        """Should put the abandon band above and the limit band below the price."""
        assert accumulating.stance is Stance.ACCUMULATE
        assert accumulating.trigger_up == pytest.approx(102.0)
        assert accumulating.trigger_down == pytest.approx(99.0)
        assert accumulating.reference_price == 0.0
        assert not accumulating.is_triggered()

    def test_accumulate_ignores_reference_price(self):
        monitor = TriggerMonitor.create(Stance.ACCUMULATE, 100.0, 80.0, 1.0, 2.0)

        assert monitor.reference_price == 0.0
        assert monitor.trigger_up == pytest.approx(102.0)

    def test_distribute_bands(self, distributing):
        """Should anchor on the reference price."""
        assert distributing.stance is Stance.DISTRIBUTE
        assert distributing.trigger_up == pytest.approx(52.5)
        assert distributing.trigger_down == pytest.approx(48.5)
        assert distributing.reference_price == 50.0
        assert not distributing.is_triggered()

    @pytest.mark.parametrize("stance", [Stance.ACCUMULATE, Stance.DISTRIBUTE])
    def test_zero_anchor_gives_zero_bands(self, stance):
        """A zero anchor applies the formulas literally, so any price fires."""
        monitor = TriggerMonitor.create(stance, 0.0, 0.0, 5.0, 3.0)

        assert monitor.trigger_up == 0.0
        assert monitor.trigger_down == 0.0
        assert not monitor.is_triggered()

        monitor.update(100.0)

        assert monitor.is_triggered()
        assert monitor.trigger_up == 0.0
        assert monitor.trigger_down == 0.0

    @pytest.mark.parametrize("stance", [Stance.ACCUMULATE, Stance.DISTRIBUTE])
    def test_zero_anchor_then_switch_opens_bands(self, stance):
        monitor = TriggerMonitor.create(stance, 0.0, 0.0, 0.5, 1.0)
        monitor.switch_stance(stance)

        assert not monitor.is_seeded

        monitor.update(2000.0)

        assert not monitor.is_triggered()
        assert monitor.is_seeded
        assert monitor.trigger_down < 2000.0 < monitor.trigger_up

    @pytest.mark.parametrize("stance", ["BUY", None, 0, "accumulate"])
    def test_unknown_stance_is_fatal(self, stance):
        with pytest.raises(StanceError):
            TriggerMonitor.create(stance, 100.0, 0.0, 1.0, 2.0)

    @pytest.mark.parametrize("limit,stop_loss", [
        (0.0, 1.0),
        (1.0, 0.0),
        (-1.0, 1.0),
        (1.0, math.nan),
        (math.inf, 1.0),
    ])
    def test_rejects_non_positive_percent(self, limit, stop_loss):
        with pytest.raises(InvalidInputError):
            TriggerMonitor.create(Stance.ACCUMULATE, 100.0, 0.0, limit, stop_loss)

    @pytest.mark.parametrize("initial,reference", [
        (-1.0, 0.0),
        (0.0, -5.0),
        (math.nan, 0.0),
        (0.0, math.inf),
    ])
    def test_rejects_bad_prices(self, initial, reference):
        with pytest.raises(InvalidInputError):
            TriggerMonitor.create(Stance.DISTRIBUTE, initial, reference, 1.0, 2.0)

    def test_errors_are_distinguishable(self):
        """Input errors are ValueErrors, stance errors are not."""
        assert issubclass(InvalidInputError, ValueError)
        assert issubclass(InvalidInputError, MonitorError)
        assert issubclass(StanceError, MonitorError)
        assert not issubclass(StanceError, ValueError)


class TestUpdate:
    """Tests for observation handling."""

    def test_accumulate_example_scenario(self, accumulating):
        """Bands should ratchet down, then a bounce should fire the trigger."""
        accumulating.update(99.5)

        assert not accumulating.is_triggered()
        assert accumulating.trigger_down == pytest.approx(98.505)
        assert accumulating.trigger_up == pytest.approx(101.49)

        accumulating.update(101.5)

        assert accumulating.is_triggered()

    def test_distribute_example_scenario(self, distributing):
        """Touching the stop-loss band should fire the trigger."""
        distributing.update(48.5)

        assert distributing.is_triggered()

    def test_trigger_leaves_bands_untouched(self, accumulating):
        accumulating.update(150.0)

        assert accumulating.is_triggered()
        assert accumulating.trigger_up == pytest.approx(102.0)
        assert accumulating.trigger_down == pytest.approx(99.0)

    def test_crossing_lower_band_triggers_accumulate(self, accumulating):
        accumulating.update(98.0)

        assert accumulating.is_triggered()

    def test_crossing_upper_band_triggers_distribute(self, distributing):
        distributing.update(53.0)

        assert distributing.is_triggered()

    def test_touching_a_band_triggers(self, accumulating):
        accumulating.update(accumulating.trigger_up)

        assert accumulating.is_triggered()

    def test_trigger_compares_against_bands_before_call(self, accumulating):
        """The bands a price ratchets are not the ones it is checked against."""
        accumulating.update(99.5)
        assert not accumulating.is_triggered()

        # Inside the pre-call bands, although 99.2 * 0.99 would be a new low band
        accumulating.update(99.2)

        assert not accumulating.is_triggered()
        assert accumulating.trigger_down == pytest.approx(99.2 * 0.99)

    def test_flag_is_recomputed_every_call(self, distributing):
        distributing.update(48.0)
        assert distributing.is_triggered()

        distributing.update(50.0)
        assert not distributing.is_triggered()

    def test_is_triggered_is_idempotent(self, accumulating):
        accumulating.update(103.0)

        results = [accumulating.is_triggered() for _ in range(5)]

        assert results == [True] * 5
        assert accumulating.triggered is True

    def test_accumulate_bands_never_widen(self, accumulating):
        """A rise that stays inside the bands must not lift them."""
        accumulating.update(99.5)
        up, down = accumulating.trigger_up, accumulating.trigger_down

        accumulating.update(100.5)

        assert not accumulating.is_triggered()
        assert accumulating.trigger_up == pytest.approx(up)
        assert accumulating.trigger_down == pytest.approx(down)

    def test_distribute_bands_never_widen(self, distributing):
        """A dip that stays inside the bands must not lower them."""
        distributing.update(51.0)
        up, down = distributing.trigger_up, distributing.trigger_down

        distributing.update(50.5)

        assert not distributing.is_triggered()
        assert distributing.trigger_up == pytest.approx(up)
        assert distributing.trigger_down == pytest.approx(down)

    def test_accumulate_ratchet_is_monotonic(self):
        """Falling prices should give non-increasing bands."""
        monitor = TriggerMonitor.create(Stance.ACCUMULATE, 100.0, 0.0, 5.0, 5.0)
        ups, downs = [monitor.trigger_up], [monitor.trigger_down]

        for price in (99.0, 98.0, 97.5, 96.0, 95.9):
            monitor.update(price)
            assert not monitor.is_triggered()
            ups.append(monitor.trigger_up)
            downs.append(monitor.trigger_down)

        assert ups == sorted(ups, reverse=True)
        assert downs == sorted(downs, reverse=True)
        assert all(d < u for d, u in zip(downs, ups))

    def test_distribute_ratchet_is_monotonic(self):
        """Rising prices should give non-decreasing bands."""
        monitor = TriggerMonitor.create(Stance.DISTRIBUTE, 0.0, 100.0, 5.0, 5.0)
        ups, downs = [monitor.trigger_up], [monitor.trigger_down]

        for price in (101.0, 102.0, 102.5, 104.0, 104.1):
            monitor.update(price)
            assert not monitor.is_triggered()
            ups.append(monitor.trigger_up)
            downs.append(monitor.trigger_down)

        assert ups == sorted(ups)
        assert downs == sorted(downs)
        assert all(d < u for d, u in zip(downs, ups))

    def test_trailing_stop_fires_after_rally(self):
        """Selling side should trail a rally and fire on the pullback."""
        monitor = TriggerMonitor.create(Stance.DISTRIBUTE, 0.0, 100.0, 5.0, 2.0)

        for price in (101.0, 103.0, 104.0):
            monitor.update(price)
        assert monitor.trigger_down == pytest.approx(104.0 * 0.98)

        monitor.update(101.5)

        assert monitor.is_triggered()

    @pytest.mark.parametrize("price", [-0.01, math.nan, math.inf, "abc", None])
    def test_rejects_bad_price(self, accumulating, price):
        with pytest.raises(InvalidInputError):
            accumulating.update(price)

    def test_bad_price_leaves_state_unchanged(self, accumulating):
        before = accumulating.snapshot()

        with pytest.raises(InvalidInputError):
            accumulating.update(math.nan)

        assert accumulating.snapshot() == before

    @pytest.mark.parametrize("stance", [Stance.ACCUMULATE, Stance.DISTRIBUTE])
    def test_seeding_from_zero_price_fires_until_rearmed(self, accumulating, stance):
        """Open bands seeded at 0 collapse to 0, so every later price fires."""
        accumulating.switch_stance(stance)

        accumulating.update(0.0)

        assert not accumulating.is_triggered()
        assert accumulating.trigger_up == 0.0
        assert accumulating.trigger_down == 0.0

        accumulating.update(100.0)

        assert accumulating.is_triggered()

        accumulating.switch_stance(stance)
        accumulating.update(100.0)

        assert not accumulating.is_triggered()

    def test_corrupted_stance_is_fatal(self, accumulating):
        accumulating._stance = "HOLD"

        with pytest.raises(StanceError):
            accumulating.update(100.0)


class TestSwitchStance:
    """Tests for driver-initiated re-arming."""

    def test_resets_state_and_installs_sentinels(self, accumulating):
        accumulating.update(110.0)
        assert accumulating.is_triggered()

        accumulating.switch_stance(Stance.DISTRIBUTE)

        assert accumulating.stance is Stance.DISTRIBUTE
        assert not accumulating.is_triggered()
        assert accumulating.reference_price == 0.0
        assert accumulating.trigger_up == SENTINEL_UP
        assert accumulating.trigger_down == SENTINEL_DOWN

    def test_next_update_seeds_fresh_bands(self, accumulating):
        """First update after a flip seeds from the price, not stale bands."""
        accumulating.update(110.0)
        accumulating.switch_stance(Stance.DISTRIBUTE)

        accumulating.update(110.0)

        assert not accumulating.is_triggered()
        assert accumulating.trigger_up == pytest.approx(110.0 * 1.01)
        assert accumulating.trigger_down == pytest.approx(110.0 * 0.98)

    def test_flip_to_accumulate_seeds_fresh_bands(self, distributing):
        distributing.update(48.0)
        distributing.switch_stance(Stance.ACCUMULATE)

        distributing.update(40.0)

        assert not distributing.is_triggered()
        assert distributing.trigger_up == pytest.approx(40.0 * 1.03)
        assert distributing.trigger_down == pytest.approx(40.0 * 0.95)

    def test_keeps_positive_bounds(self, accumulating):
        accumulating.switch_stance(Stance.DISTRIBUTE, 120.0, 0.0)

        assert accumulating.trigger_up == 120.0
        assert accumulating.trigger_down == SENTINEL_DOWN

        accumulating.update(110.0)

        assert accumulating.trigger_up == pytest.approx(120.0)
        assert accumulating.trigger_down == pytest.approx(110.0 * 0.98)

    def test_negative_bounds_become_sentinels(self, accumulating):
        accumulating.switch_stance(Stance.ACCUMULATE, -5.0, -5.0)

        assert accumulating.trigger_up == SENTINEL_UP
        assert accumulating.trigger_down == SENTINEL_DOWN

    @pytest.mark.parametrize("stance", ["SELL", None, 3])
    def test_unknown_stance_is_fatal(self, accumulating, stance):
        before = accumulating.snapshot()

        with pytest.raises(StanceError):
            accumulating.switch_stance(stance)

        assert accumulating.snapshot() == before

    @pytest.mark.parametrize("up,down", [
        (0.0, math.inf),
        (math.inf, 0.0),
        (math.nan, 50.0),
        (120.0, math.nan),
        ("high", 0.0),
        (0.0, None),
    ])
    def test_rejects_bad_bounds(self, accumulating, up, down):
        before = accumulating.snapshot()

        with pytest.raises(InvalidInputError):
            accumulating.switch_stance(Stance.DISTRIBUTE, up, down)

        assert accumulating.snapshot() == before

    @pytest.mark.parametrize("up,down", [(90.0, 110.0), (100.0, 100.0)])
    def test_rejects_inverted_bounds(self, accumulating, up, down):
        before = accumulating.snapshot()

        with pytest.raises(InvalidInputError):
            accumulating.switch_stance(Stance.DISTRIBUTE, up, down)

        assert accumulating.snapshot() == before

    def test_accepts_ordered_bounds(self, accumulating):
        accumulating.switch_stance(Stance.DISTRIBUTE, 110.0, 90.0)

        accumulating.update(100.0)

        assert not accumulating.is_triggered()
        assert accumulating.trigger_down < accumulating.trigger_up


class TestRearm:
    """Tests for percent-driven re-arming."""

    def test_rearm_to_distribute_records_reference(self, accumulating):
        accumulating.update(103.0)

        accumulating.rearm(Stance.DISTRIBUTE, 103.0)

        assert accumulating.stance is Stance.DISTRIBUTE
        assert not accumulating.is_triggered()
        assert accumulating.reference_price == 103.0
        assert accumulating.trigger_up == pytest.approx(103.0 * 1.01)
        assert accumulating.trigger_down == pytest.approx(103.0 * 0.98)

    def test_rearm_to_accumulate_clears_reference(self, distributing):
        distributing.update(53.0)

        distributing.rearm(Stance.ACCUMULATE, 53.0)

        assert distributing.stance is Stance.ACCUMULATE
        assert distributing.reference_price == 0.0
        assert distributing.trigger_up == pytest.approx(53.0 * 1.03)
        assert distributing.trigger_down == pytest.approx(53.0 * 0.95)

    def test_rearm_at_zero_gives_zero_bands(self, accumulating):
        accumulating.rearm(Stance.DISTRIBUTE, 0.0)

        assert accumulating.trigger_up == 0.0
        assert accumulating.trigger_down == 0.0

    def test_rearm_rejects_unknown_stance(self, accumulating):
        with pytest.raises(StanceError):
            accumulating.rearm("SELL", 100.0)


class TestSnapshot:
    """Tests for state snapshots."""

    def test_snapshot_reflects_state(self, distributing):
        state = distributing.snapshot()

        assert isinstance(state, MonitorState)
        assert state.stance is Stance.DISTRIBUTE
        assert state.reference_price == 50.0
        assert state.limit_percent == 5.0
        assert state.stop_loss_percent == 3.0

    def test_to_dict_uses_labels(self, distributing):
        data = distributing.snapshot().to_dict()

        assert data["stance"] == "SELL"
        assert data["triggered"] is False
        assert data["trigger_up"] == pytest.approx(52.5)
