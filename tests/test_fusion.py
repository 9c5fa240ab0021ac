"""
Unit tests for scanner/fusion.py -- time-decayed signal fusion.
"""

import pytest

from scanner.fusion import (
    DEFAULT_FUSION_PARAMS,
    FusionParams,
    band_for,
    fuse,
    price_position_score,
)
from scanner.models import Side, SignalBundle

REF = 78771.37
STRIKE = 78749.99


class TestBands:
    @pytest.mark.parametrize("minutes,expected", [
        (0.0, (0.95, 0.05)),
        (5.0, (0.95, 0.05)),
        (5.01, (0.85, 0.15)),
        (15.0, (0.85, 0.15)),
        (30.0, (0.70, 0.30)),
        (30.5, (0.60, 0.40)),
        (59.0, (0.60, 0.40)),
    ])
    def test_boundaries_fall_in_lower_band(self, minutes, expected):
        band = band_for(minutes)
        assert (band.price_weight, band.signal_weight) == expected

    def test_unknown_time_uses_widest_band(self):
        assert band_for(None).price_weight == 0.60

    def test_weights_sum_to_one(self):
        for band in DEFAULT_FUSION_PARAMS.time_bands:
            assert band.price_weight + band.signal_weight == pytest.approx(1.0)


class TestPricePositionScore:
    @pytest.mark.parametrize("pct,score", [
        (2.0, 97.0), (1.0, 97.0), (0.6, 95.0), (0.25, 92.0), (0.15, 90.0),
        (0.07, 88.0), (0.027, 85.0), (0.015, 75.0), (0.006, 62.0), (0.001, 50.0), (0.0, 50.0),
    ])
    def test_step_table(self, pct, score):
        assert price_position_score(pct) == score


class TestFuse:
    def test_above_strike_far_from_settlement(self):
        d = fuse(REF, STRIKE, SignalBundle.neutral(), 44.0)
        assert d.side is Side.ABOVE
        assert d.is_above
        assert d.confidence == pytest.approx(71.0)
        assert 70.0 <= d.confidence < 90.0
        assert d.price_distance_pct == pytest.approx(0.02715, abs=1e-4)

    def test_below_strike(self):
        d = fuse(78700.0, STRIKE, None, 10.0)
        assert d.side is Side.BELOW
        assert not d.is_above

    def test_exactly_at_strike_is_neutral_below(self):
        d = fuse(STRIKE, STRIKE, None, 10.0)
        assert d.side is Side.BELOW
        assert d.confidence == pytest.approx(50.0)

    @pytest.mark.parametrize("ref", [78700.0, 78749.0, 78751.0, 79500.0, 70000.0])
    @pytest.mark.parametrize("minutes", [2.0, 10.0, 25.0, 50.0])
    def test_side_follows_price_without_signals(self, ref, minutes):
        d = fuse(ref, STRIKE, SignalBundle.neutral(), minutes)
        expected = Side.ABOVE if ref > STRIKE else Side.BELOW
        assert d.side is expected

    @pytest.mark.parametrize("minutes,expected", [
        (5.0, 88.0),
        (15.0, 84.0),
        (30.0, 78.0),
        (31.0, 74.0),
    ])
    def test_band_boundary_confidence(self, minutes, expected):
        # 0.15% above strike -> price score 90
        d = fuse(100150.0, 100000.0, None, minutes)
        assert d.confidence == pytest.approx(expected)

    def test_price_sensitivity_increases_toward_settlement(self):
        spreads = []
        for minutes in (31.0, 30.0, 15.0, 5.0):
            near = fuse(100006.0, 100000.0, None, minutes).confidence   # score 62
            far = fuse(100150.0, 100000.0, None, minutes).confidence    # score 90
            spreads.append(far - near)
        assert spreads == sorted(spreads)
        assert len(set(spreads)) == len(spreads)

    def test_technical_signal_can_override_weak_price_side(self):
        signals = SignalBundle(directional_probability=30.0)
        d = fuse(100006.0, 100000.0, signals, 60.0)
        # 0.6 * 62 + 0.4 * 30 = 49.2 for ABOVE -> BELOW at 50.8
        assert d.side is Side.BELOW
        assert d.confidence == pytest.approx(50.8)

    def test_technical_signal_cannot_override_near_settlement(self):
        signals = SignalBundle(directional_probability=30.0)
        d = fuse(100006.0, 100000.0, signals, 3.0)
        assert d.side is Side.ABOVE

    def test_momentum_away_from_strike_adds(self):
        d = fuse(REF, STRIKE, SignalBundle(momentum_1m=12.0), 44.0)
        assert d.confidence == pytest.approx(74.0)

    def test_momentum_toward_strike_subtracts_but_never_flips(self):
        d = fuse(REF, STRIKE, SignalBundle(momentum_1m=-500.0), 44.0)
        assert d.side is Side.ABOVE
        assert d.confidence == pytest.approx(66.0)

    def test_momentum_oriented_for_below_side(self):
        d = fuse(78700.0, STRIKE, SignalBundle(momentum_1m=-10.0), 44.0)
        base = fuse(78700.0, STRIKE, None, 44.0)
        assert d.confidence == pytest.approx(base.confidence + 3.0)

    def test_imbalance_nudge_oriented_to_side(self):
        base = fuse(REF, STRIKE, None, 44.0).confidence
        assert fuse(REF, STRIKE, SignalBundle(order_book_imbalance=1.0), 44.0).confidence == pytest.approx(base + 3.0)
        assert fuse(REF, STRIKE, SignalBundle(order_book_imbalance=-0.5), 44.0).confidence == pytest.approx(base - 1.5)

    def test_volatility_penalty(self):
        # 0.25%..0.5% of price in 5m -> -10, above 0.5% -> -20
        assert fuse(REF, STRIKE, SignalBundle(momentum_5m=250.0), 44.0).confidence == pytest.approx(61.0)
        assert fuse(REF, STRIKE, SignalBundle(momentum_5m=-500.0), 44.0).confidence == pytest.approx(51.0)
        assert fuse(REF, STRIKE, SignalBundle(momentum_5m=100.0), 44.0).confidence == pytest.approx(71.0)

    def test_confidence_clamped_high(self):
        signals = SignalBundle(directional_probability=100.0, momentum_1m=50.0, order_book_imbalance=1.0)
        d = fuse(90000.0, 80000.0, signals, 60.0)
        assert d.confidence == 95.0

    def test_confidence_clamped_low(self):
        params = FusionParams(volatility_penalties=((0.1, 90.0),))
        d = fuse(REF, STRIKE, SignalBundle(momentum_5m=200.0), 44.0, params)
        assert d.confidence == 5.0

    @pytest.mark.parametrize("ref", [None, 0.0])
    def test_missing_reference_price(self, ref):
        d = fuse(ref, STRIKE, None, 44.0)
        assert d.side is None

    def test_missing_strike(self):
        assert fuse(REF, None, None, 44.0).side is None

    def test_deterministic(self):
        signals = SignalBundle(directional_probability=58.0, momentum_1m=-3.0, momentum_5m=40.0, order_book_imbalance=0.2)
        assert fuse(REF, STRIKE, signals, 12.0) == fuse(REF, STRIKE, signals, 12.0)

    def test_components_reported(self):
        d = fuse(REF, STRIKE, None, 44.0)
        assert d.components["price_score"] == 85.0
        assert d.components["signal_score"] == 50.0
        assert d.components["price_weight"] == 0.60
        assert not d.vetoed
