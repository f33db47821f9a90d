"""Tests for poly_lock_bot.trend.detector."""
from __future__ import annotations

import math

import pytest

from poly_lock_bot.errors import InvalidPrice
from poly_lock_bot.trend import TrendDetector, classify
from poly_lock_bot.types import Side, TrendState

MID = "0xmarket"


class TestClassify:
    def test_fewer_than_three_samples_is_no_progress(self):
        assert classify([]) is TrendState.NO_PROGRESS
        assert classify([0.50, 0.60]) is TrendState.NO_PROGRESS

    def test_monotonic_rise(self):
        assert classify([0.50, 0.51, 0.52]) is TrendState.RISING

    def test_rise_with_flat_step(self):
        assert classify([0.50, 0.50, 0.51, 0.53]) is TrendState.RISING

    def test_monotonic_fall(self):
        assert classify([0.52, 0.51, 0.50]) is TrendState.FALLING

    def test_zigzag_is_no_progress(self):
        assert classify([0.50, 0.52, 0.51, 0.53]) is TrendState.NO_PROGRESS

    def test_flat_window_is_no_progress(self):
        assert classify([0.50, 0.50, 0.50, 0.50, 0.50]) is TrendState.NO_PROGRESS

    def test_movement_below_threshold_is_no_progress(self):
        assert classify([0.500, 0.501, 0.502], threshold=0.005) is TrendState.NO_PROGRESS

    def test_threshold_is_tunable(self):
        assert classify([0.500, 0.501, 0.502], threshold=0.001) is TrendState.RISING

    def test_min_samples_is_tunable(self):
        assert classify([0.50, 0.52], min_samples=2) is TrendState.RISING


class TestTrendDetector:
    def test_observe_returns_classification(self):
        det = TrendDetector()
        assert det.observe(MID, Side.UP, 0.50) is TrendState.NO_PROGRESS
        assert det.observe(MID, Side.UP, 0.51) is TrendState.NO_PROGRESS
        assert det.observe(MID, Side.UP, 0.52) is TrendState.RISING

    def test_window_is_bounded_ring_buffer(self):
        det = TrendDetector(window=5)
        for p in (0.40, 0.41, 0.42, 0.43, 0.44, 0.45):
            det.observe(MID, Side.UP, p)
        assert det.window(MID, Side.UP) == [0.41, 0.42, 0.43, 0.44, 0.45]

    def test_old_dip_evicted_restores_trend(self):
        det = TrendDetector(window=3)
        for p in (0.50, 0.45, 0.46, 0.47):
            det.observe(MID, Side.DOWN, p)
        assert det.state(MID, Side.DOWN) is TrendState.RISING

    @pytest.mark.parametrize("bad", [0.0, 1.0, -0.1, 1.5, math.nan, math.inf])
    def test_invalid_price_rejected_without_mutation(self, bad):
        det = TrendDetector()
        det.observe(MID, Side.UP, 0.50)
        with pytest.raises(InvalidPrice) as exc:
            det.observe(MID, Side.UP, bad)
        assert exc.value.market_id == MID
        assert det.window(MID, Side.UP) == [0.50]

    def test_sides_and_markets_are_independent(self):
        det = TrendDetector()
        for p in (0.50, 0.51, 0.52):
            det.observe(MID, Side.UP, p)
        for p in (0.50, 0.49, 0.48):
            det.observe(MID, Side.DOWN, p)
        assert det.state(MID, Side.UP) is TrendState.RISING
        assert det.state(MID, Side.DOWN) is TrendState.FALLING
        assert det.window("0xother", Side.UP) == []

    def test_reset_drops_both_windows(self):
        det = TrendDetector()
        det.observe(MID, Side.UP, 0.50)
        det.observe(MID, Side.DOWN, 0.50)
        det.reset(MID)
        assert det.window(MID, Side.UP) == []
        assert det.window(MID, Side.DOWN) == []
