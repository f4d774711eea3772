"""
Tests for payoff aggregation.

[T1] price = exp(-rT) * ΣpayoffT / N
[T1] SD = sqrt(Σpayoff²T/N - mean²), SE = SD / sqrt(N)

Covers:
- Exact statistics from known payoffs
- Degenerate and non-finite path accounting
- Merging partial aggregates, concurrent recording
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from euler_pricing.errors import NumericOverflowError
from euler_pricing.options.simulation.aggregation import (
    AggregateStatistics,
    NonFinitePolicy,
    PayoffAggregator,
)
from euler_pricing.options.simulation.euler import PathBatch, PathOutcome


class TestRecordPath:
    """Single-path recording."""

    def test_call_in_the_money(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100)
        assert aggregator.record_path(150.0, touched_zero=False) == 50.0
        stats = aggregator.statistics
        assert stats.sum_payoff == 50.0
        assert stats.sum_payoff_squared == 2500.0
        assert stats.n_paths == 1
        assert stats.n_degenerate == 0

    def test_put_out_of_the_money(self, put_at_100):
        aggregator = PayoffAggregator(put_at_100)
        assert aggregator.record_path(150.0, touched_zero=False) == 0.0
        assert aggregator.statistics.sum_payoff == 0.0
        assert aggregator.statistics.n_paths == 1

    def test_call_out_of_the_money(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100)
        assert aggregator.record_path(80.0, touched_zero=False) == 0.0

    def test_put_in_the_money(self, put_at_100):
        aggregator = PayoffAggregator(put_at_100)
        assert aggregator.record_path(80.0, touched_zero=False) == 20.0
        assert aggregator.statistics.sum_payoff_squared == 400.0

    def test_degenerate_path_counted(self, put_at_100):
        aggregator = PayoffAggregator(put_at_100)
        aggregator.record_path(-3.0, touched_zero=True)
        aggregator.record_path(90.0, touched_zero=False)
        stats = aggregator.statistics
        assert stats.n_degenerate == 1
        assert stats.n_paths == 2
        assert stats.sum_payoff == 113.0

    def test_record_outcome(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100)
        assert aggregator.record_outcome(PathOutcome(110.0, touched_zero=False)) == 10.0


class TestStatistics:
    """Derived price, variance, SD, SE."""

    def test_price_and_dispersion(self, put_at_100):
        aggregator = PayoffAggregator(put_at_100)
        for terminal in (80.0, 90.0, 100.0, 110.0):
            aggregator.record_path(terminal, touched_zero=False)

        stats = aggregator.statistics
        # payoffs 20, 10, 0, 0: mean 7.5, E[x²] = 125, var = 68.75
        assert stats.mean_payoff == 7.5
        assert stats.variance == pytest.approx(68.75, rel=1e-14)
        assert stats.standard_deviation == pytest.approx(math.sqrt(68.75), rel=1e-14)
        assert stats.standard_error == pytest.approx(math.sqrt(68.75) / 2.0, rel=1e-14)
        df = put_at_100.discount_factor
        assert stats.discounted_price(df) == pytest.approx(df * 7.5, rel=1e-15)

    def test_constant_payoffs_have_zero_variance(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100)
        for _ in range(1_000):
            aggregator.record_path(100.1, touched_zero=False)
        stats = aggregator.statistics
        assert stats.variance >= 0.0
        assert stats.standard_deviation == pytest.approx(0.0, abs=1e-6)

    def test_empty_statistics_are_nan(self):
        stats = AggregateStatistics()
        assert math.isnan(stats.mean_payoff)
        assert math.isnan(stats.variance)
        assert math.isnan(stats.standard_error)
        assert math.isnan(stats.discounted_price(0.98))

    def test_single_path_has_zero_variance(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100)
        aggregator.record_path(130.0, touched_zero=False)
        assert aggregator.statistics.variance == 0.0
        assert aggregator.statistics.standard_error == 0.0


class TestNonFinitePolicy:
    """Non-finite paths are excluded or abort the run, never silently averaged."""

    def test_exclude_counts_and_logs(self, call_at_100, caplog):
        aggregator = PayoffAggregator(call_at_100, NonFinitePolicy.EXCLUDE)
        with caplog.at_level(logging.WARNING):
            result = aggregator.record_path(float("inf"), touched_zero=False)
        assert math.isnan(result)
        assert aggregator.statistics.n_invalid == 1
        assert aggregator.statistics.n_paths == 0
        assert "non-finite" in caplog.text

    def test_exclude_flagged_path(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100)
        aggregator.record_path(120.0, touched_zero=False, finite=False)
        assert aggregator.statistics.n_invalid == 1
        assert aggregator.statistics.sum_payoff == 0.0

    def test_raise_policy(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100, NonFinitePolicy.RAISE)
        with pytest.raises(NumericOverflowError, match="CRITICAL"):
            aggregator.record_path(float("nan"), touched_zero=False)

    def test_overflow_error_is_arithmetic_error(self, call_at_100):
        aggregator = PayoffAggregator(call_at_100, NonFinitePolicy.RAISE)
        with pytest.raises(ArithmeticError):
            aggregator.record_path(float("-inf"), touched_zero=True)


class TestRecordBatch:
    """Batch recording matches path-by-path recording."""

    def _batch(self) -> PathBatch:
        return PathBatch(
            terminal_values=np.array([80.0, 150.0, -5.0, np.inf, 100.0]),
            touched_zero=np.array([False, False, True, False, True]),
            finite=np.array([True, True, True, False, True]),
        )

    def test_matches_record_path(self, put_at_100):
        batch = self._batch()
        by_batch = PayoffAggregator(put_at_100)
        by_path = PayoffAggregator(put_at_100)

        contribution = by_batch.record_batch(batch)
        for i in range(batch.n_paths):
            by_path.record_outcome(batch.outcome(i))

        assert contribution == by_batch.statistics
        assert by_batch.statistics == by_path.statistics
        assert by_batch.statistics.n_paths == 4
        assert by_batch.statistics.n_invalid == 1
        assert by_batch.statistics.n_degenerate == 2

    def test_raise_policy(self, put_at_100):
        aggregator = PayoffAggregator(put_at_100, NonFinitePolicy.RAISE)
        with pytest.raises(NumericOverflowError):
            aggregator.record_batch(self._batch())


class TestMerge:
    """Partial aggregates combine by addition."""

    def test_merge_adds_every_field(self):
        a = AggregateStatistics(10.0, 100.0, 2, 1, 0)
        b = AggregateStatistics(5.0, 25.0, 1, 0, 3)
        assert a + b == AggregateStatistics(15.0, 125.0, 3, 1, 3)
        assert a.merge(b) == b.merge(a)

    def test_add_rejects_other_types(self):
        with pytest.raises(TypeError):
            AggregateStatistics() + 1.0

    def test_partitioned_equals_single_pass(self, put_at_100):
        terminal = np.linspace(50.0, 150.0, 101)
        single = PayoffAggregator(put_at_100)
        for s in terminal:
            single.record_path(float(s), touched_zero=False)

        sink = PayoffAggregator(put_at_100)
        for part in np.array_split(terminal, 3):
            worker = PayoffAggregator(put_at_100)
            for s in part:
                worker.record_path(float(s), touched_zero=False)
            sink.merge(worker.statistics)

        merged, whole = sink.statistics, single.statistics
        assert merged.n_paths == whole.n_paths
        assert merged.sum_payoff == pytest.approx(whole.sum_payoff, rel=1e-12)
        assert merged.sum_payoff_squared == pytest.approx(whole.sum_payoff_squared, rel=1e-12)


class TestConcurrentRecording:
    """The aggregator may be shared by many threads."""

    def test_no_lost_updates(self, put_at_100):
        aggregator = PayoffAggregator(put_at_100)

        def work(worker: int) -> None:
            for i in range(2_000):
                # Integer payoffs keep every partial sum exact
                aggregator.record_path(100.0 - (i % 7), touched_zero=(i % 50 == 0))

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(work, range(8)))

        stats = aggregator.statistics
        assert stats.n_paths == 16_000
        assert stats.n_degenerate == 8 * 40
        expected_sum = 8 * sum(i % 7 for i in range(2_000))
        assert stats.sum_payoff == expected_sum
