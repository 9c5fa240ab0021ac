"""
Unit tests for scanner/selector.py -- market instance selection.
"""

from datetime import datetime, timedelta, timezone

import pytest

from scanner.selector import (
    STRIKE_SANITY_FLOOR,
    parse_market,
    parse_settlement_time,
    parse_strike,
    select_market,
)

NOW = datetime(2026, 1, 31, 21, 16, 0, tzinfo=timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _raw(strike: float, event: str = "KXBTCD-26JAN3122", close: datetime | None = None, **extra) -> dict:
    close = close or NOW + timedelta(minutes=44)
    raw = {
        "ticker": f"{event}-T{strike}",
        "event_ticker": event,
        "close_time": _iso(close),
        "yes_ask": 62,
        "no_ask": 40,
    }
    raw.update(extra)
    return raw


class TestParseStrike:
    def test_ticker_suffix(self):
        assert parse_strike({"ticker": "KXBTCD-26JAN3122-T78749.99"}) == pytest.approx(78749.99)

    def test_dollar_amount_in_subtitle(self):
        raw = {"ticker": "X", "subtitle": "$78,750 or above"}
        assert parse_strike(raw) == pytest.approx(78750.0)

    def test_dollar_amount_beats_year_in_title(self):
        raw = {"ticker": "X", "title": "Bitcoin price on Jan 31, 2026 at 10pm EST? $78,750 or above"}
        assert parse_strike(raw) == pytest.approx(78750.0)

    def test_floor_strike_field(self):
        raw = {"ticker": "X", "title": "Bitcoin price today", "floor_strike": 78500}
        assert parse_strike(raw) == pytest.approx(78500.0)

    def test_bare_number_last_resort(self):
        raw = {"ticker": "X", "subtitle": "78750 or above"}
        assert parse_strike(raw) == pytest.approx(78750.0)

    def test_small_numbers_rejected(self):
        raw = {"ticker": "X-T5", "title": "Up at 10pm? $12"}
        assert parse_strike(raw) is None

    def test_floor_constant(self):
        assert STRIKE_SANITY_FLOOR == 1000.0


class TestParseSettlementTime:
    def test_prefers_close_time(self):
        raw = {
            "close_time": "2026-01-31T22:00:00Z",
            "expiration_time": "2026-02-07T22:00:00Z",
        }
        assert parse_settlement_time(raw) == datetime(2026, 1, 31, 22, tzinfo=timezone.utc)

    def test_falls_back_to_expected_expiration(self):
        raw = {"close_time": "garbage", "expected_expiration_time": "2026-01-31T22:05:00Z"}
        assert parse_settlement_time(raw) == datetime(2026, 1, 31, 22, 5, tzinfo=timezone.utc)

    def test_none_when_nothing_parses(self):
        assert parse_settlement_time({"close_time": ""}) is None


class TestParseMarket:
    def test_full_market(self):
        inst = parse_market(_raw(78749.99))
        assert inst.ticker == "KXBTCD-26JAN3122-T78749.99"
        assert inst.event_id == "KXBTCD-26JAN3122"
        assert inst.yes_ask == 62
        assert inst.no_ask == 40

    def test_missing_strike_skipped(self):
        assert parse_market({"ticker": "X", "event_ticker": "E", "close_time": _iso(NOW)}) is None

    def test_missing_time_skipped(self):
        assert parse_market({"ticker": "X-T78000", "event_ticker": "E"}) is None

    def test_out_of_range_ask_is_absent(self):
        inst = parse_market(_raw(78000, yes_ask=0, no_ask=100))
        assert inst.yes_ask is None
        assert inst.no_ask is None


class TestSelectMarket:
    def test_picks_closest_strike_in_next_event(self):
        markets = [_raw(78500), _raw(78749.99), _raw(79000)]
        result = select_market(markets, 78771.37, NOW)
        assert result.market.strike == pytest.approx(78749.99)
        assert result.minutes_to_settlement == pytest.approx(44.0)
        assert result.distance_usd == pytest.approx(21.38)
        assert result.is_above

    def test_prefers_earliest_settling_event(self):
        later = NOW + timedelta(minutes=104)
        markets = [
            _raw(78770, event="KXBTCD-26JAN3123", close=later),
            _raw(78000),
        ]
        result = select_market(markets, 78771.37, NOW)
        assert result.market.event_id == "KXBTCD-26JAN3122"

    def test_never_returns_settled_instance(self):
        past = NOW - timedelta(minutes=1)
        markets = [
            _raw(78771, event="KXBTCD-26JAN3121", close=past),
            _raw(78771, event="KXBTCD-26JAN3121", close=NOW),
            _raw(70000),
        ]
        result = select_market(markets, 78771.37, NOW)
        assert result.market.settlement_time > NOW
        assert result.market.strike == pytest.approx(70000.0)

    def test_none_when_all_settled(self):
        markets = [_raw(78771, close=NOW - timedelta(minutes=5))]
        assert select_market(markets, 78771.37, NOW) is None

    def test_none_without_reference_price(self):
        assert select_market([_raw(78771)], None, NOW) is None
        assert select_market([_raw(78771)], 0.0, NOW) is None

    def test_none_for_empty_listing(self):
        assert select_market([], 78771.37, NOW) is None

    def test_instances_without_event_dropped(self):
        raw = _raw(78771)
        raw["event_ticker"] = ""
        assert select_market([raw], 78771.37, NOW) is None
