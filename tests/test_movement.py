"""Tests for movement analysis."""

from __future__ import annotations

from datetime import timedelta

import pytest
from custom_components.herdtrack.const import INSUFFICIENT_DATA_NOTE
from custom_components.herdtrack.movement import (
    MovementAccumulator,
    MovementAnalyzer,
)
from custom_components.herdtrack.types import MovementPattern

from tests.helpers import BASE_TIME


@pytest.fixture
def analyzer() -> MovementAnalyzer:
    """Create an analyzer with default thresholds."""
    return MovementAnalyzer()


class TestStep:
    """Test single-interval analysis."""

    def test_speed_and_heading(self, analyzer, make_report):
        """Test 1000 m north in 60 s is 60 km/h due north."""
        step = analyzer.step(make_report(), make_report(north_m=1000, seconds=60))

        assert step is not None
        assert step.distance_m == pytest.approx(1000, abs=0.01)
        assert step.speed_kmh == pytest.approx(60.0, abs=0.01)
        assert step.heading == pytest.approx(0.0, abs=1e-6)
        assert step.is_moving
        assert step.is_high_speed
        assert step.anomaly == "High speed detected: 60.0 km/h"

    def test_resting_step(self, analyzer, make_report):
        """Test standing still is resting, not anomalous."""
        step = analyzer.step(make_report(), make_report(seconds=600))

        assert step.speed_kmh == 0.0
        assert not step.is_moving
        assert step.anomaly is None

    @pytest.mark.parametrize("seconds", [0, -60])
    def test_non_positive_interval_is_skipped(self, analyzer, make_report, seconds):
        """Test out-of-order pairs produce no step."""
        assert analyzer.step(
            make_report(seconds=60), make_report(north_m=50, seconds=60 + seconds)
        ) is None


class TestClassify:
    """Test movement pattern classification."""

    @pytest.mark.parametrize(
        ("moving", "resting", "speed", "pattern"),
        [
            (80, 20, 4.0, MovementPattern.WALKING),
            (60, 40, 2.0, MovementPattern.GRAZING),
            (10, 90, 0.1, MovementPattern.RESTING),
            (30, 70, 9.0, MovementPattern.RUNNING),
            (30, 70, 2.0, MovementPattern.GRAZING),
            (80, 20, 2.0, MovementPattern.GRAZING),
            (0, 0, 0.0, MovementPattern.RESTING),
        ],
    )
    def test_rules(self, moving, resting, speed, pattern):
        """Test each classification rule in priority order."""
        assert MovementAnalyzer.classify(moving, resting, speed) is pattern


class TestAnalyze:
    """Test window analysis."""

    def test_same_place_ten_minutes_apart(self, analyzer, make_report):
        """Test an entity that did not move is resting."""
        analysis = analyzer.analyze(
            "cow-1", [make_report(), make_report(seconds=600)]
        )

        assert analysis.pattern is MovementPattern.RESTING
        assert analysis.average_speed_kmh == pytest.approx(0.0)
        assert analysis.total_distance_m == 0.0
        assert analysis.time_resting_minutes == pytest.approx(10.0)
        assert analysis.time_moving_minutes == 0.0
        assert analysis.anomalies == ()

    @pytest.mark.parametrize("count", [0, 1])
    def test_insufficient_data(self, analyzer, make_report, count):
        """Test fewer than two reports yield UNKNOWN with a note."""
        reports = [make_report()][:count]
        analysis = analyzer.analyze("cow-1", reports)

        assert analysis.pattern is MovementPattern.UNKNOWN
        assert analysis.anomalies == (INSUFFICIENT_DATA_NOTE,)
        assert analysis.total_distance_m == 0.0

    def test_only_out_of_order_pairs(self, analyzer, make_report):
        """Test unusable intervals count as insufficient data."""
        analysis = analyzer.analyze(
            "cow-1", [make_report(seconds=60), make_report(north_m=10)]
        )
        assert analysis.pattern is MovementPattern.UNKNOWN

    def test_walking_track(self, analyzer, make_report):
        """Test a steady 4.5 km/h walk."""
        reports = [
            make_report(north_m=75 * index, seconds=60 * index) for index in range(11)
        ]
        analysis = analyzer.analyze("cow-1", reports)

        assert analysis.total_distance_m == pytest.approx(750, abs=0.1)
        assert analysis.average_speed_kmh == pytest.approx(4.5, abs=0.01)
        assert analysis.max_speed_kmh == pytest.approx(4.5, abs=0.01)
        assert analysis.time_moving_minutes == pytest.approx(10.0)
        assert analysis.pattern is MovementPattern.WALKING
        assert analysis.period_start == BASE_TIME
        assert analysis.period_end == BASE_TIME + timedelta(minutes=10)

    def test_high_speed_anomalies(self, analyzer, make_report):
        """Test each fast interval adds an anomaly note."""
        reports = [
            make_report(),
            make_report(north_m=1000, seconds=60),
            make_report(north_m=1000, seconds=660),
        ]
        analysis = analyzer.analyze("cow-1", reports)

        assert analysis.anomalies == ("High speed detected: 60.0 km/h",)
        assert analysis.max_speed_kmh == pytest.approx(60.0, abs=0.01)

    def test_average_over_requested_period(self, analyzer, make_report):
        """Test the average uses the requested period when given."""
        reports = [make_report(), make_report(north_m=1000, seconds=1800)]
        analysis = analyzer.analyze(
            "cow-1", reports, BASE_TIME, BASE_TIME + timedelta(hours=1)
        )

        assert analysis.average_speed_kmh == pytest.approx(1.0, abs=0.001)
        assert analysis.period_end == BASE_TIME + timedelta(hours=1)

    def test_skips_out_of_order_pair(self, analyzer, make_report):
        """Test a backwards interval does not poison the window."""
        reports = [
            make_report(),
            make_report(north_m=100, seconds=600),
            make_report(north_m=50, seconds=300),
            make_report(north_m=150, seconds=900),
        ]
        analysis = analyzer.analyze("cow-1", reports)
        assert analysis.total_distance_m == pytest.approx(200, abs=0.1)


class TestSummarize:
    """Test rolling accumulators."""

    def test_accumulator(self, analyzer, make_report):
        """Test summarising folded steps."""
        accumulator = MovementAccumulator()
        accumulator.reset(BASE_TIME)
        previous = make_report()
        for index in range(1, 4):
            current = make_report(north_m=50 * index, seconds=600 * index)
            accumulator.add(analyzer.step(previous, current), current.timestamp)
            previous = current

        analysis = analyzer.summarize("cow-1", accumulator)
        assert analysis.total_distance_m == pytest.approx(150, abs=0.1)
        assert analysis.average_speed_kmh == pytest.approx(0.3, abs=0.001)
        assert analysis.pattern is MovementPattern.RESTING
        assert analysis.period_end == BASE_TIME + timedelta(minutes=30)

    def test_empty_accumulator(self, analyzer):
        """Test an empty window is insufficient data."""
        analysis = analyzer.summarize("cow-1", MovementAccumulator())
        assert analysis.pattern is MovementPattern.UNKNOWN

    def test_reset_clears_totals(self, analyzer, make_report):
        """Test a window reset starts from zero."""
        accumulator = MovementAccumulator()
        accumulator.reset(BASE_TIME)
        accumulator.add(
            analyzer.step(make_report(), make_report(north_m=1000, seconds=60)),
            BASE_TIME + timedelta(seconds=60),
        )
        accumulator.reset(BASE_TIME + timedelta(hours=2))

        assert accumulator.total_distance_m == 0.0
        assert accumulator.anomalies == []
        assert accumulator.window_start == BASE_TIME + timedelta(hours=2)
