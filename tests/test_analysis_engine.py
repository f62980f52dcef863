"""
Tests for FuelAnalysisEngine against an in-memory store
"""
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from app.core.analysis_engine import FuelAnalysisEngine, compute_change, first_day_from, round2
from app.core.exceptions import InvalidProductError
from app.core.record_store import FuelRecordStore
from app.models.fuel_price import FuelProduct, Region

from conftest import FIXED_NOW, make_record

TODAY = FIXED_NOW.date()


def days_ago(n):
    return TODAY - timedelta(days=n)


def decimals(value):
    text = repr(value)
    return len(text.split(".")[1]) if "." in text else 0


@pytest.fixture
def engine(store):
    return FuelAnalysisEngine(store, clock=lambda: FIXED_NOW)


class TestComputeChange:
    def test_rounds_to_two_places(self):
        assert compute_change(620, 600) == (20.0, 3.33)

    def test_negative_change(self):
        assert compute_change(600, 620) == (-20.0, -3.23)

    def test_zero_previous_has_no_percentage(self):
        assert compute_change(50, 0) == (50.0, None)

    def test_round2_passes_none_through(self):
        assert round2(None) is None
        assert round2(613.6666) == 613.67


def test_first_day_from():
    assert first_day_from(datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)) == date(2024, 1, 4)
    assert first_day_from(datetime(2024, 1, 1, tzinfo=timezone.utc)) == date(2024, 1, 1)


class TestSummary:
    async def test_latest_against_previous(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-01", 600.0),
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-02", 620.0),
        )

        result = await engine.summary_with_change("PMS")

        assert result.product == FuelProduct.PMS
        assert result.current_price == 620.0
        assert result.previous_price == 600.0
        assert result.value_change == 20.0
        assert result.percentage_change == 3.33
        assert result.trend_direction == "up"

    async def test_price_drop(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-01", 620.0),
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-02", 600.0),
        )

        result = await engine.summary_with_change(FuelProduct.PMS)

        assert result.value_change == -20.0
        assert result.percentage_change == -3.23
        assert result.trend_direction == "down"

    async def test_unchanged_price(self, engine, seed):
        await seed(
            make_record("Kano", Region.NORTH_WEST, "2024-01-01", 610.0),
            make_record("Kano", Region.NORTH_WEST, "2024-01-02", 610.0),
        )

        result = await engine.summary_with_change("PMS")

        assert result.trend_direction == "no-change"
        assert result.value_change == 0.0
        assert result.percentage_change == 0.0

    async def test_zero_previous_price(self, engine, seed):
        await seed(
            make_record("Kano", Region.NORTH_WEST, "2024-01-01", 610.0, lpg=0.0),
            make_record("Kano", Region.NORTH_WEST, "2024-01-02", 610.0, lpg=450.0),
        )

        result = await engine.summary_with_change("LPG")

        assert result.value_change == 450.0
        assert result.percentage_change is None
        assert result.trend_direction == "up"

    async def test_single_record_gives_none(self, engine, seed):
        await seed(make_record("Lagos", Region.SOUTH_WEST, "2024-01-01", 600.0))

        assert await engine.summary_with_change("PMS") is None

    async def test_invalid_product_gives_none(self, engine, seed, sample_records):
        await seed(*sample_records)

        assert await engine.summary_with_change("GASOLINE") is None

    async def test_product_is_case_insensitive(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-01", 600.0, ago=700.0),
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-02", 620.0, ago=710.0),
        )

        result = await engine.summary_with_change("ago")

        assert result.product == FuelProduct.AGO
        assert result.current_price == 710.0

    async def test_summary_covers_every_product(self, engine, seed, sample_records):
        await seed(*sample_records)

        results = await engine.summary()

        assert [result.product for result in results] == [
            FuelProduct.PMS, FuelProduct.AGO, FuelProduct.DPK, FuelProduct.LPG
        ]

    async def test_summary_of_empty_store(self, engine):
        assert await engine.summary() == []


class TestAverages:
    async def test_national_average_of_empty_store(self, engine):
        result = await engine.national_average()

        assert result.avg_pms is None
        assert result.avg_ago is None
        assert result.avg_dpk is None
        assert result.avg_lpg is None

    async def test_national_average(self, engine, seed, sample_records):
        await seed(*sample_records)

        result = await engine.national_average()

        assert result.avg_pms == 613.67
        assert result.avg_ago == 746.75
        assert result.avg_dpk == 646.54
        assert result.avg_lpg == pytest.approx(446.625, abs=0.01)
        for value in result.model_dump().values():
            assert decimals(value) <= 2

    async def test_average_by_region(self, engine, seed, sample_records):
        await seed(*sample_records)

        rows = await engine.average_by_region()
        by_region = {row.region: row for row in rows}

        assert set(by_region) == {Region.SOUTH_WEST, Region.NORTH_WEST, Region.NORTH_CENTRAL}
        assert by_region[Region.SOUTH_WEST].avg_pms == 618.5
        assert by_region[Region.NORTH_WEST].avg_pms == 613.5
        assert by_region[Region.NORTH_CENTRAL].avg_pms == 609.0
        assert by_region[Region.NORTH_CENTRAL].avg_ago == 741.0

    async def test_average_by_region_of_empty_store(self, engine):
        assert await engine.average_by_region() == []


class TestTopStates:
    async def test_invalid_product_raises(self, engine):
        with pytest.raises(InvalidProductError):
            await engine.top_states("INVALID", "desc")

    async def test_invalid_product_is_a_value_error(self, engine):
        with pytest.raises(ValueError, match="Invalid product type"):
            await engine.top_states("", "asc")

    async def test_descending_order(self, engine, seed, sample_records):
        await seed(*sample_records)

        result = await engine.top_states("PMS", "desc")

        assert [(row.state, row.value) for row in result] == [
            ("Lagos", 618.5), ("Kano", 613.5), ("Abuja", 609.0)
        ]

    async def test_ascending_order(self, engine, seed, sample_records):
        await seed(*sample_records)

        result = await engine.top_states("PMS", "asc")

        assert [row.state for row in result] == ["Abuja", "Kano", "Lagos"]

    async def test_never_more_than_five(self, engine, seed):
        states = ["Lagos", "Kano", "Abuja", "Rivers", "Enugu", "Oyo", "Kaduna"]
        await seed(*[
            make_record(state, Region.SOUTH_WEST, "2024-01-01", 600.0 + index * 3.5)
            for index, state in enumerate(states)
        ])

        result = await engine.top_states("PMS", "desc")

        assert len(result) == 5
        values = [row.value for row in result]
        assert values == sorted(values, reverse=True)
        assert result[0].state == "Kaduna"

    async def test_ties_break_by_state_name(self, engine, seed):
        await seed(
            make_record("Oyo", Region.SOUTH_WEST, "2024-01-01", 600.0),
            make_record("Ekiti", Region.SOUTH_WEST, "2024-01-01", 600.0),
        )

        result = await engine.top_states("PMS", "desc")

        assert [row.state for row in result] == ["Ekiti", "Oyo"]


class TestTrend:
    @pytest.fixture
    async def trend_records(self, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(40), 500.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(1), 620.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(3), 600.0),
            make_record("Kano", Region.NORTH_WEST, days_ago(1), 610.0),
        )

    async def test_no_recent_records(self, engine, seed):
        await seed(make_record("Lagos", Region.SOUTH_WEST, days_ago(45), 600.0))

        assert await engine.trend("PMS", "Lagos", None, "30d") == []

    async def test_state_trend_is_chronological(self, engine, trend_records):
        points = await engine.trend("PMS", state="Lagos")

        assert [(point.date, point.price) for point in points] == [
            (days_ago(3).isoformat(), 600.0),
            (days_ago(1).isoformat(), 620.0),
        ]

    async def test_national_trend_averages_each_period(self, engine, trend_records):
        points = await engine.trend("PMS")

        assert points[-1].date == days_ago(1).isoformat()
        assert points[-1].price == 615.0

    async def test_region_filter(self, engine, trend_records):
        points = await engine.trend("PMS", region="North West")

        assert [point.price for point in points] == [610.0]

    async def test_region_accepts_member_name(self, engine, trend_records):
        points = await engine.trend("PMS", region="north_west")

        assert [point.price for point in points] == [610.0]

    async def test_state_wins_over_region(self, engine, trend_records):
        points = await engine.trend("PMS", state="Lagos", region="North West")

        assert [point.price for point in points] == [600.0, 620.0]

    async def test_unknown_region_gives_empty(self, engine, trend_records):
        assert await engine.trend("PMS", region="Atlantis") == []

    async def test_invalid_product_gives_empty(self, engine, trend_records):
        assert await engine.trend("KEROSENE", state="Lagos") == []

    async def test_all_range_includes_old_records(self, engine, trend_records):
        points = await engine.trend("PMS", state="Lagos", range_token="all")

        assert [point.price for point in points] == [500.0, 600.0, 620.0]

    async def test_dates_never_decrease(self, engine, seed):
        await seed(*[
            make_record(state, Region.SOUTH_WEST, days_ago(age), 600.0 + age)
            for age in (5, 1, 9, 3, 7)
            for state in ("Lagos", "Oyo")
        ])

        points = await engine.trend("PMS", range_token="90d")
        dates = [point.date for point in points]

        assert dates == sorted(dates)
        assert len(dates) == 5

    async def test_window_starts_on_first_full_day(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(7), 600.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(6), 605.0),
        )

        points = await engine.trend("PMS", "Lagos", None, "7d")

        assert [(point.date, point.price) for point in points] == [(days_ago(6).isoformat(), 605.0)]

    async def test_ytd_includes_new_year(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, "2023-12-31", 590.0),
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-01", 600.0),
        )

        points = await engine.trend("PMS", "Lagos", None, "ytd")

        assert [point.date for point in points] == ["2024-01-01"]

    async def test_means_are_rounded(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(2), 600.0),
            make_record("Oyo", Region.SOUTH_WEST, days_ago(2), 600.0),
            make_record("Ogun", Region.SOUTH_WEST, days_ago(2), 601.0),
        )

        points = await engine.trend("PMS", region=Region.SOUTH_WEST, range_token="7d")

        assert points[0].price == 600.33


class TestMiniTrend:
    async def test_latest_seven_oldest_first(self, engine, seed):
        await seed(*[
            make_record("Lagos", Region.SOUTH_WEST, days_ago(age), 700.0 - age)
            for age in range(10)
        ])

        points = await engine.mini_trend("Lagos", "PMS")

        assert len(points) == 7
        assert [point.period for point in points] == [days_ago(age).isoformat() for age in range(6, -1, -1)]
        assert [point.price for point in points] == [694.0, 695.0, 696.0, 697.0, 698.0, 699.0, 700.0]

    async def test_fewer_than_seven_records(self, engine, seed, sample_records):
        await seed(*sample_records)

        points = await engine.mini_trend("Kano", "DPK")

        assert [(point.period, point.price) for point in points] == [
            ("2024-01-01", 645.0), ("2024-01-02", 648.0)
        ]

    async def test_unknown_state(self, engine, seed, sample_records):
        await seed(*sample_records)

        assert await engine.mini_trend("Atlantis", "PMS") == []

    async def test_invalid_product(self, engine, seed, sample_records):
        await seed(*sample_records)

        assert await engine.mini_trend("Lagos", "XYZ") == []


class TestPriceChange:
    async def test_change_over_window(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(9), 600.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(1), 630.0),
        )

        result = await engine.price_change("Lagos", "PMS", 7)

        assert result.current_price == 630.0
        assert result.previous_price == 600.0
        assert result.change == 30.0
        assert result.percentage_change == 5.0

    async def test_previous_is_latest_at_or_before_cutoff(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(9), 600.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(7), 610.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(5), 615.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(1), 630.0),
        )

        result = await engine.price_change("Lagos", "PMS", 7)

        assert result.previous_price == 610.0
        assert result.change == 20.0
        assert result.percentage_change == 3.28

    async def test_nothing_before_cutoff(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(3), 600.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(1), 630.0),
        )

        assert await engine.price_change("Lagos", "PMS", 7) is None

    async def test_unknown_state(self, engine, seed, sample_records):
        await seed(*sample_records)

        assert await engine.price_change("Atlantis", "PMS", 7) is None

    async def test_zero_previous_price(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(10), 600.0, dpk=0.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(1), 600.0, dpk=650.0),
        )

        result = await engine.price_change("Lagos", "DPK", 7)

        assert result.change == 650.0
        assert result.percentage_change is None

    async def test_window_beyond_calendar(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(10), 600.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(1), 630.0),
        )

        assert await engine.price_change("Lagos", "PMS", 1000000) is None
        assert await engine.price_change("Lagos", "PMS", -1000000) is None

    async def test_invalid_product(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, days_ago(10), 600.0),
            make_record("Lagos", Region.SOUTH_WEST, days_ago(1), 630.0),
        )

        assert await engine.price_change("Lagos", "DIESEL", 7) is None


class TestWeeklyReport:
    async def test_skips_states_with_one_record(self, engine, seed):
        await seed(
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-01", 600.0),
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-02", 610.0),
            make_record("Lagos", Region.SOUTH_WEST, "2024-01-03", 630.0),
            make_record("Kano", Region.NORTH_WEST, "2024-01-03", 612.0),
            make_record("Abuja", Region.NORTH_CENTRAL, "2024-01-01", 610.0),
            make_record("Abuja", Region.NORTH_CENTRAL, "2024-01-03", 605.0),
        )

        report = await engine.weekly_report("PMS")

        assert [row.state for row in report] == ["Abuja", "Lagos"]

        lagos = report[1]
        assert lagos.current_price == 630.0
        assert lagos.previous_price == 600.0
        assert lagos.change == 30.0
        assert lagos.percentage_change == 5.0
        assert lagos.trend == [600.0, 610.0, 630.0]

        abuja = report[0]
        assert abuja.change == -5.0
        assert abuja.percentage_change == -0.82

    async def test_window_is_last_seven_observations(self, engine, seed):
        await seed(*[
            make_record("Lagos", Region.SOUTH_WEST, days_ago(age), 700.0 - age)
            for age in range(9)
        ])

        report = await engine.weekly_report("PMS")

        assert len(report) == 1
        assert report[0].previous_price == 694.0
        assert report[0].current_price == 700.0
        assert len(report[0].trend) == 7

    async def test_zero_previous_price(self, engine, seed):
        await seed(
            make_record("Kano", Region.NORTH_WEST, "2024-01-01", 610.0, lpg=0.0),
            make_record("Kano", Region.NORTH_WEST, "2024-01-02", 610.0, lpg=300.0),
            make_record("Kano", Region.NORTH_WEST, "2024-01-03", 610.0, lpg=450.0),
        )

        report = await engine.weekly_report("LPG")

        assert report[0].previous_price == 0.0
        assert report[0].change == 450.0
        assert report[0].percentage_change is None
        assert report[0].trend == [0.0, 300.0, 450.0]

    async def test_invalid_product_gives_empty_report(self, engine, seed, sample_records):
        await seed(*sample_records)

        assert await engine.weekly_report("UNKNOWN") == []

    async def test_empty_store(self, engine):
        assert await engine.weekly_report("PMS") == []


class TestStoreFailures:
    @pytest.fixture
    def failing_store(self):
        store = AsyncMock(spec=FuelRecordStore)
        error = ConnectionError("database unavailable")
        store.find_top_n.side_effect = error
        store.aggregate_group_mean.side_effect = error
        store.distinct_values.side_effect = error
        return store

    async def test_summary_propagates_store_errors(self, failing_store):
        engine = FuelAnalysisEngine(failing_store, clock=lambda: FIXED_NOW)

        with pytest.raises(ConnectionError):
            await engine.summary()

    async def test_averages_propagate_store_errors(self, failing_store):
        engine = FuelAnalysisEngine(failing_store, clock=lambda: FIXED_NOW)

        with pytest.raises(ConnectionError):
            await engine.national_average()
        with pytest.raises(ConnectionError):
            await engine.top_states("PMS")

    async def test_weekly_report_propagates_store_errors(self, failing_store):
        engine = FuelAnalysisEngine(failing_store, clock=lambda: FIXED_NOW)

        with pytest.raises(ConnectionError):
            await engine.weekly_report("PMS")

    async def test_engine_works_with_any_store(self):
        store = AsyncMock(spec=FuelRecordStore)
        store.aggregate_group_mean.return_value = [
            {"key": "Lagos", "PMS": 612.456},
            {"key": "Kano", "PMS": None},
        ]
        engine = FuelAnalysisEngine(store, clock=lambda: FIXED_NOW)

        result = await engine.top_states("pms")

        assert [(row.state, row.value) for row in result] == [("Lagos", 612.46)]
        store.aggregate_group_mean.assert_awaited_once_with("state", None, [FuelProduct.PMS])
