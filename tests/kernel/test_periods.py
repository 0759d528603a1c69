"""
Tests for the Period Bucketer.

Covers:
- Monthly, quarterly and yearly bucket keys, labels and months
- Clipping of partial quarters and years at the range boundaries
- Validation of months, ranges and granularity
- Exact coverage and determinism (hypothesis)
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from consolidation_kernel.domain.periods import (
    Granularity,
    PeriodBucket,
    PeriodRange,
    YearMonth,
    build_period_buckets,
    find_bucket,
    month_range,
)
from consolidation_kernel.exceptions import InvalidPeriodRangeError


class TestYearMonth:
    def test_key_and_label(self):
        m = YearMonth(2025, 3)
        assert m.key == "2025-03"
        assert m.label == "Mar-25"
        assert m.quarter == 1

    def test_add_months_crosses_year(self):
        assert YearMonth(2024, 11).add_months(3) == YearMonth(2025, 2)
        assert YearMonth(2025, 1).add_months(-1) == YearMonth(2024, 12)

    def test_ordering_is_chronological(self):
        assert YearMonth(2024, 12) < YearMonth(2025, 1)

    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_month_out_of_range_rejected(self, month):
        with pytest.raises(InvalidPeriodRangeError):
            YearMonth(2025, month)


class TestMonthlyBuckets:
    def test_one_bucket_per_month(self):
        buckets = build_period_buckets(YearMonth(2025, 1), YearMonth(2025, 3), "monthly")

        assert [b.key for b in buckets] == ["2025-01", "2025-02", "2025-03"]
        assert [b.label for b in buckets] == ["Jan-25", "Feb-25", "Mar-25"]
        assert all(len(b.months) == 1 for b in buckets)

    def test_single_month_range(self):
        buckets = build_period_buckets(YearMonth(2025, 6), YearMonth(2025, 6), Granularity.MONTHLY)
        assert len(buckets) == 1
        assert buckets[0].first_month == buckets[0].last_month == YearMonth(2025, 6)


class TestQuarterlyBuckets:
    def test_full_quarters(self):
        buckets = build_period_buckets(YearMonth(2025, 1), YearMonth(2025, 6), "quarterly")

        assert [b.key for b in buckets] == ["2025-Q1", "2025-Q2"]
        assert [b.label for b in buckets] == ["Q1 25", "Q2 25"]
        assert buckets[0].months == month_range(YearMonth(2025, 1), YearMonth(2025, 3))

    def test_partial_quarters_are_clipped(self):
        """Feb..Aug -> Q1 (Feb, Mar), Q2 (full), Q3 (Jul, Aug)."""
        buckets = build_period_buckets(YearMonth(2025, 2), YearMonth(2025, 8), "quarterly")

        assert [b.key for b in buckets] == ["2025-Q1", "2025-Q2", "2025-Q3"]
        assert buckets[0].months == (YearMonth(2025, 2), YearMonth(2025, 3))
        assert buckets[2].months == (YearMonth(2025, 7), YearMonth(2025, 8))

    def test_quarters_across_year_end(self):
        buckets = build_period_buckets(YearMonth(2024, 11), YearMonth(2025, 2), "quarterly")

        assert [b.key for b in buckets] == ["2024-Q4", "2025-Q1"]
        assert buckets[0].last_month == YearMonth(2024, 12)


class TestYearlyBuckets:
    def test_first_and_last_years_are_partial(self):
        buckets = build_period_buckets(YearMonth(2023, 7), YearMonth(2025, 3), "yearly")

        assert [b.key for b in buckets] == ["FY2023", "FY2024", "FY2025"]
        assert [b.label for b in buckets] == ["FY 23", "FY 24", "FY 25"]
        assert buckets[0].first_month == YearMonth(2023, 7)
        assert len(buckets[1].months) == 12
        assert buckets[2].last_month == YearMonth(2025, 3)


class TestValidation:
    def test_start_after_end_rejected(self):
        with pytest.raises(InvalidPeriodRangeError):
            build_period_buckets(YearMonth(2025, 4), YearMonth(2025, 3), "monthly")

    def test_unknown_granularity_rejected(self):
        with pytest.raises(InvalidPeriodRangeError) as exc_info:
            build_period_buckets(YearMonth(2025, 1), YearMonth(2025, 3), "weekly")
        assert exc_info.value.code == "INVALID_PERIOD_RANGE"

    def test_period_range_rejects_inverted_range(self):
        with pytest.raises(InvalidPeriodRangeError):
            PeriodRange.of(2025, 5, 2025, 1)


class TestPeriodRange:
    def test_as_bucket_spans_whole_range(self):
        bucket = PeriodRange.of(2025, 1, 2025, 3).as_bucket()

        assert bucket.key == "total"
        assert bucket.label == "Jan-25 to Mar-25"
        assert len(bucket.months) == 3

    def test_shifted_bucket_keeps_key(self):
        bucket = PeriodBucket("2025-Q1", "Q1 25", month_range(YearMonth(2025, 1), YearMonth(2025, 3)))
        prior = bucket.shifted(-1)

        assert prior.key == "2025-Q1"
        assert prior.months[0] == YearMonth(2024, 1)

    def test_find_bucket(self):
        buckets = build_period_buckets(YearMonth(2025, 1), YearMonth(2025, 3), "monthly")
        assert find_bucket(buckets, "2025-02").label == "Feb-25"
        assert find_bucket(buckets, "2025-Q1") is None


year_months = st.builds(
    YearMonth,
    st.integers(min_value=1990, max_value=2040),
    st.integers(min_value=1, max_value=12),
)


class TestBucketerProperties:
    @given(
        a=year_months,
        b=year_months,
        granularity=st.sampled_from(list(Granularity)),
    )
    @settings(max_examples=200)
    def test_buckets_cover_range_exactly_once_in_order(self, a, b, granularity):
        start, end = min(a, b), max(a, b)
        buckets = build_period_buckets(start, end, granularity)

        flattened = [m for bucket in buckets for m in bucket.months]
        assert flattened == list(month_range(start, end))
        assert len({b.key for b in buckets}) == len(buckets)

    @given(a=year_months, b=year_months, granularity=st.sampled_from(list(Granularity)))
    def test_bucketing_is_deterministic(self, a, b, granularity):
        start, end = min(a, b), max(a, b)
        assert build_period_buckets(start, end, granularity) == build_period_buckets(
            start, end, granularity,
        )

    @given(a=year_months, b=year_months)
    def test_quarterly_buckets_never_span_two_quarters(self, a, b):
        start, end = min(a, b), max(a, b)
        for bucket in build_period_buckets(start, end, Granularity.QUARTERLY):
            assert len({(m.year, m.quarter) for m in bucket.months}) == 1
