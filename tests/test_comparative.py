"""Tests for comparative reports."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.domain.comparative import (
    ComparisonPeriod,
    ComparisonPreset,
    DateRange,
    Direction,
    change_percent,
    compare_values,
    fiscal_year_start_for,
    generate_balance_sheet_comparison,
    generate_profit_and_loss_comparison,
    generate_trial_balance_comparison,
)
from ledgerkit.domain.errors import ValidationError


@pytest.fixture
def two_month_entries(chart, feb_entries, make_entry):
    """January opening, sales and advertising followed by the February books."""
    cash = chart.resolve("1002")
    return [
        make_entry("open", date(2026, 1, 1), cash, chart.resolve("3001"), 50000),
        make_entry("jan-sales", date(2026, 1, 20), cash, chart.resolve("4001"), 10000),
        make_entry("jan-ads", date(2026, 1, 25), chart.resolve("6001"), cash, 500),
        *feb_entries,
    ]


@pytest.fixture
def feb_vs_jan():
    return ComparisonPeriod.custom(
        date(2026, 2, 1), date(2026, 2, 28), date(2026, 1, 1), date(2026, 1, 31)
    )


class TestChangePercent:
    """Tests for change_percent."""

    def test_increase(self):
        assert change_percent(Decimal("150"), Decimal("100")) == Decimal("50.00")

    def test_rounded_to_two_places(self):
        assert change_percent(Decimal("1"), Decimal("3")) == Decimal("-66.67")

    def test_both_zero(self):
        assert change_percent(Decimal("0"), Decimal("0")) == Decimal("0.00")

    def test_undefined_when_previous_is_zero(self):
        assert change_percent(Decimal("5"), Decimal("0")) is None

    def test_negative_previous_follows_direction(self):
        """Test that a smaller loss is a positive change."""
        assert change_percent(Decimal("-50"), Decimal("-100")) == Decimal("50.00")
        assert change_percent(Decimal("-150"), Decimal("-100")) == Decimal("-50.00")
        rise = compare_values(Decimal("-50"), Decimal("-100"))
        assert rise.direction == Direction.UP
        assert rise.change_percent > 0

    def test_compare_values_direction(self):
        assert compare_values(Decimal("10"), Decimal("5")).direction == Direction.UP
        assert compare_values(Decimal("5"), Decimal("10")).direction == Direction.DOWN
        flat = compare_values(Decimal("5.001"), Decimal("5"))
        assert flat.direction == Direction.FLAT
        assert flat.change == Decimal("0.00")


class TestComparisonPeriod:
    """Tests for preset and custom comparison periods."""

    def test_month_over_month(self):
        period = ComparisonPeriod.from_preset("month-over-month", today=date(2026, 3, 15))
        assert period.current == DateRange(date(2026, 3, 1), date(2026, 3, 15))
        assert period.previous == DateRange(date(2026, 2, 1), date(2026, 2, 15))
        assert period.preset == ComparisonPreset.MONTH_OVER_MONTH

    def test_month_over_month_clamps_month_end(self):
        period = ComparisonPeriod.from_preset(
            ComparisonPreset.MONTH_OVER_MONTH, today=date(2026, 3, 31)
        )
        assert period.previous == DateRange(date(2026, 2, 1), date(2026, 2, 28))

    def test_quarter_over_quarter(self):
        period = ComparisonPeriod.from_preset("quarter-over-quarter", today=date(2026, 5, 20))
        assert period.current == DateRange(date(2026, 4, 1), date(2026, 5, 20))
        assert period.previous == DateRange(date(2026, 1, 1), date(2026, 2, 20))

    def test_year_over_year(self):
        period = ComparisonPeriod.from_preset("year-over-year", today=date(2026, 2, 28))
        assert period.current == DateRange(date(2026, 1, 1), date(2026, 2, 28))
        assert period.previous == DateRange(date(2025, 1, 1), date(2025, 2, 28))

    def test_unknown_preset(self):
        with pytest.raises(ValidationError, match="Unknown comparison preset"):
            ComparisonPeriod.from_preset("week-over-week")

    def test_custom_range_must_be_ordered(self):
        with pytest.raises(ValidationError):
            ComparisonPeriod.custom(
                date(2026, 2, 28), date(2026, 2, 1), date(2026, 1, 1), date(2026, 1, 31)
            )


class TestProfitAndLossComparison:
    """Tests for generate_profit_and_loss_comparison."""

    def test_revenue_accounts(self, chart, two_month_entries, feb_vs_jan):
        comparison = generate_profit_and_loss_comparison(chart, two_month_entries, feb_vs_jan)
        revenue = {c.account.code: c for c in comparison.revenue.accounts}

        assert revenue["4001"].current_value == Decimal("15000.00")
        assert revenue["4001"].previous_value == Decimal("10000.00")
        assert revenue["4001"].change == Decimal("5000.00")
        assert revenue["4001"].change_percent == Decimal("50.00")
        assert revenue["4001"].direction == Direction.UP

        assert revenue["4002"].previous_value == Decimal("0.00")
        assert revenue["4002"].change_percent is None
        assert revenue["4002"].direction == Direction.UP

    def test_account_only_in_previous_period(self, chart, two_month_entries, feb_vs_jan):
        comparison = generate_profit_and_loss_comparison(chart, two_month_entries, feb_vs_jan)
        codes = [c.account.code for c in comparison.operating_expenses.accounts]
        assert codes == ["6001", "6003", "6005", "6010"]
        ads = comparison.operating_expenses.accounts[0]
        assert ads.current_value == Decimal("0.00")
        assert ads.change_percent == Decimal("-100.00")
        assert ads.direction == Direction.DOWN

    def test_headline_figures(self, chart, two_month_entries, feb_vs_jan):
        comparison = generate_profit_and_loss_comparison(chart, two_month_entries, feb_vs_jan)
        assert comparison.net_income.current_value == Decimal("14800.00")
        assert comparison.net_income.previous_value == Decimal("9500.00")
        assert comparison.net_income.change == Decimal("5300.00")
        assert comparison.net_income.change_percent == Decimal("55.79")
        assert comparison.current.net_income == comparison.net_income.current_value

    def test_booked_income_tax_accounts(self, chart, make_entry, two_month_entries, feb_vs_jan):
        tax = make_entry(
            "tax", date(2026, 2, 28), chart.resolve("6300"), chart.resolve("2501"), 1000
        )
        comparison = generate_profit_and_loss_comparison(
            chart, [*two_month_entries, tax], feb_vs_jan
        )

        [item] = comparison.income_tax_accounts.accounts
        assert item.account.code == "6300"
        assert item.current_value == Decimal("1000.00")
        assert item.previous_value == Decimal("0.00")
        assert comparison.income_tax_accounts.total.current_value == Decimal("1000.00")
        assert comparison.income_tax.current_value == Decimal("1000.00")

    def test_income_tax_rate_applies_to_both_periods(self, chart, two_month_entries, feb_vs_jan):
        comparison = generate_profit_and_loss_comparison(
            chart, two_month_entries, feb_vs_jan, income_tax_rate=Decimal("0.1")
        )
        assert comparison.income_tax.current_value == Decimal("1480.00")
        assert comparison.income_tax.previous_value == Decimal("950.00")


class TestPointInTimeComparisons:
    """Tests for trial balance and balance sheet comparisons."""

    def test_trial_balance_at_range_ends(self, chart, two_month_entries, feb_vs_jan):
        comparison = generate_trial_balance_comparison(chart, two_month_entries, feb_vs_jan)
        accounts = {c.account.code: c for c in comparison.accounts}

        assert comparison.current.report_date == date(2026, 2, 28)
        assert comparison.previous.report_date == date(2026, 1, 31)
        assert accounts["1002"].previous_value == Decimal("59500.00")
        assert accounts["1002"].current_value == Decimal("74300.00")
        assert accounts["4001"].current_value == Decimal("25000.00")
        assert accounts["4002"].change_percent is None
        assert comparison.total_debit.current_value == comparison.total_credit.current_value

    def test_balance_sheet_at_range_ends(self, chart, two_month_entries, feb_vs_jan):
        comparison = generate_balance_sheet_comparison(chart, two_month_entries, feb_vs_jan)

        assert comparison.total_assets.previous_value == Decimal("59500.00")
        assert comparison.total_assets.current_value == Decimal("74300.00")
        assert comparison.total_assets.change_percent == Decimal("24.87")
        assert comparison.equity.total.direction == Direction.FLAT
        assert comparison.current.is_balanced
        assert comparison.previous.is_balanced

    def test_preset_comparison(self, chart, two_month_entries):
        period = ComparisonPeriod.from_preset("month-over-month", today=date(2026, 2, 28))
        comparison = generate_balance_sheet_comparison(chart, two_month_entries, period)
        assert comparison.previous.report_date == date(2026, 1, 28)
        assert comparison.current_period_net_income.previous_value == Decimal("9500.00")

    def test_balance_sheet_splits_earnings_by_calendar_year(
        self, chart, two_month_entries, feb_vs_jan
    ):
        comparison = generate_balance_sheet_comparison(chart, two_month_entries, feb_vs_jan)

        assert comparison.retained_earnings.current_value == Decimal("0.00")
        assert comparison.current_period_net_income.current_value == Decimal("24300.00")
        assert comparison.current_period_net_income.previous_value == Decimal("9500.00")

    def test_balance_sheet_with_fiscal_year_start(self, chart, two_month_entries, feb_vs_jan):
        """Test a February fiscal year retains January earnings in the current range only."""
        comparison = generate_balance_sheet_comparison(
            chart, two_month_entries, feb_vs_jan, fiscal_year_start=date(2025, 2, 1)
        )

        assert comparison.retained_earnings.current_value == Decimal("9500.00")
        assert comparison.retained_earnings.previous_value == Decimal("0.00")
        assert comparison.current_period_net_income.current_value == Decimal("14800.00")
        assert comparison.current_period_net_income.previous_value == Decimal("9500.00")
        assert comparison.total_equity.current_value == comparison.current.total_equity
        assert comparison.current.is_balanced


class TestFiscalYearStart:
    """Tests for fiscal_year_start_for."""

    def test_defaults_to_calendar_year(self):
        assert fiscal_year_start_for(date(2026, 2, 28)) == date(2026, 1, 1)

    def test_uses_month_and_day_only(self):
        assert fiscal_year_start_for(date(2026, 8, 15), date(2020, 7, 1)) == date(2026, 7, 1)

    def test_rolls_back_before_anniversary(self):
        assert fiscal_year_start_for(date(2026, 2, 28), date(2026, 4, 1)) == date(2025, 4, 1)

    def test_start_on_as_of_date(self):
        assert fiscal_year_start_for(date(2026, 4, 1), date(2026, 4, 1)) == date(2026, 4, 1)
