"""Comparative report engine.

Generates a report for two date ranges and derives the variance of every
account, section total and headline figure between them.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from ledgerkit.domain.chart import ChartOfAccounts, as_chart
from ledgerkit.domain.entities import Account, JournalEntry
from ledgerkit.domain.errors import ValidationError, invalid_date_range
from ledgerkit.domain.reports import (
    BalanceSheet,
    ProfitAndLoss,
    StatementSection,
    TrialBalance,
    generate_balance_sheet,
    generate_profit_and_loss,
    generate_trial_balance,
)
from ledgerkit.utils.date_parser import quarter_start
from ledgerkit.utils.money import ZERO, quantize

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class ComparisonPreset(str, Enum):
    """Named comparison periods."""

    MONTH_OVER_MONTH = "month-over-month"
    QUARTER_OVER_QUARTER = "quarter-over-quarter"
    YEAR_OVER_YEAR = "year-over-year"


_PRESET_SHIFTS = {
    ComparisonPreset.MONTH_OVER_MONTH: relativedelta(months=1),
    ComparisonPreset.QUARTER_OVER_QUARTER: relativedelta(months=3),
    ComparisonPreset.YEAR_OVER_YEAR: relativedelta(years=1),
}


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValidationError(invalid_date_range(self.start, self.end))


@dataclass(frozen=True)
class ComparisonPeriod:
    """Current and previous date ranges to compare."""

    current: DateRange
    previous: DateRange
    preset: Optional[ComparisonPreset] = None

    @classmethod
    def custom(
        cls,
        current_start: date,
        current_end: date,
        previous_start: date,
        previous_end: date,
    ) -> "ComparisonPeriod":
        """Build a period from four explicit dates.

        Raises:
            ValidationError: If either range ends before it starts
        """
        return cls(
            current=DateRange(current_start, current_end),
            previous=DateRange(previous_start, previous_end),
        )

    @classmethod
    def shifted(
        cls, current: DateRange, preset: ComparisonPreset | str
    ) -> "ComparisonPeriod":
        """Compare a range with the same range one preset step earlier."""
        preset = ComparisonPreset(preset)
        shift = _PRESET_SHIFTS[preset]
        previous = DateRange(current.start - shift, current.end - shift)
        return cls(current=current, previous=previous, preset=preset)

    @classmethod
    def from_preset(
        cls, preset: ComparisonPreset | str, today: Optional[date] = None
    ) -> "ComparisonPeriod":
        """Resolve a preset relative to ``today``.

        The current range runs from the start of the month, quarter or year
        containing ``today`` up to ``today``; the previous range is the same
        span one month, quarter or year earlier.

        Args:
            preset: Comparison preset (enum member or its value)
            today: Reference date (defaults to the current date)

        Returns:
            ComparisonPeriod

        Raises:
            ValidationError: If the preset is unknown
        """
        try:
            preset = ComparisonPreset(preset)
        except ValueError as e:
            choices = ", ".join(p.value for p in ComparisonPreset)
            raise ValidationError(
                f"Unknown comparison preset '{preset}'. Choose from: {choices}"
            ) from e
        today = today or date.today()
        if preset == ComparisonPreset.MONTH_OVER_MONTH:
            start = today.replace(day=1)
        elif preset == ComparisonPreset.QUARTER_OVER_QUARTER:
            start = quarter_start(today)
        else:
            start = today.replace(month=1, day=1)
        period = cls.shifted(DateRange(start, today), preset)
        logger.debug(
            "Resolved %s at %s: current %s..%s, previous %s..%s",
            preset.value,
            today,
            period.current.start,
            period.current.end,
            period.previous.start,
            period.previous.end,
        )
        return period


@dataclass(frozen=True)
class ValueComparison:
    current_value: Decimal
    previous_value: Decimal
    change: Decimal
    change_percent: Optional[Decimal]
    direction: Direction


@dataclass(frozen=True)
class AccountComparison:
    """Variance of one account.

    ``change_percent`` is None when the previous value is zero and the current
    value is not: the percentage is undefined there.
    """

    account: Account
    current_value: Decimal
    previous_value: Decimal
    change: Decimal
    change_percent: Optional[Decimal]
    direction: Direction


@dataclass(frozen=True)
class SectionComparison:
    accounts: tuple[AccountComparison, ...]
    total: ValueComparison


@dataclass(frozen=True)
class TrialBalanceComparison:
    period: ComparisonPeriod
    current: TrialBalance
    previous: TrialBalance
    accounts: tuple[AccountComparison, ...]
    total_debit: ValueComparison
    total_credit: ValueComparison


@dataclass(frozen=True)
class BalanceSheetComparison:
    period: ComparisonPeriod
    current: BalanceSheet
    previous: BalanceSheet
    current_assets: SectionComparison
    non_current_assets: SectionComparison
    total_assets: ValueComparison
    current_liabilities: SectionComparison
    non_current_liabilities: SectionComparison
    total_liabilities: ValueComparison
    equity: SectionComparison
    retained_earnings: ValueComparison
    current_period_net_income: ValueComparison
    total_equity: ValueComparison
    total_liabilities_and_equity: ValueComparison


@dataclass(frozen=True)
class ProfitAndLossComparison:
    period: ComparisonPeriod
    current: ProfitAndLoss
    previous: ProfitAndLoss
    revenue: SectionComparison
    cost_of_goods_sold: SectionComparison
    gross_profit: ValueComparison
    operating_expenses: SectionComparison
    operating_income: ValueComparison
    other_income: SectionComparison
    other_expenses: SectionComparison
    income_before_tax: ValueComparison
    income_tax_accounts: SectionComparison
    income_tax: ValueComparison
    net_income: ValueComparison


def change_percent(current: Decimal, previous: Decimal) -> Optional[Decimal]:
    """Percentage change from ``previous`` to ``current``, rounded to 2 places.

    Returns:
        Decimal("0.00") when both values are zero, None when only the previous
        value is zero, otherwise (current - previous) / |previous| * 100 so the
        sign follows the direction of the change
    """
    current = quantize(current)
    previous = quantize(previous)
    if previous == ZERO:
        return ZERO if current == ZERO else None
    return quantize((current - previous) / abs(previous) * HUNDRED)


def compare_values(current, previous) -> ValueComparison:
    """Compare two money figures."""
    current = quantize(current)
    previous = quantize(previous)
    change = quantize(current - previous)
    if change > 0:
        direction = Direction.UP
    elif change < 0:
        direction = Direction.DOWN
    else:
        direction = Direction.FLAT
    return ValueComparison(
        current_value=current,
        previous_value=previous,
        change=change,
        change_percent=change_percent(current, previous),
        direction=direction,
    )


def compare_accounts(
    current: dict[str, tuple[Account, Decimal]],
    previous: dict[str, tuple[Account, Decimal]],
) -> tuple[AccountComparison, ...]:
    """Compare per-account values over the union of both sides.

    Args:
        current: Map of account id to (account, value) for the current period
        previous: Same for the previous period

    Returns:
        One comparison per account present on either side, ordered by code;
        a missing side counts as zero
    """
    comparisons = []
    for account_id in current.keys() | previous.keys():
        account = (current.get(account_id) or previous[account_id])[0]
        values = compare_values(
            current[account_id][1] if account_id in current else ZERO,
            previous[account_id][1] if account_id in previous else ZERO,
        )
        comparisons.append(
            AccountComparison(
                account=account,
                current_value=values.current_value,
                previous_value=values.previous_value,
                change=values.change,
                change_percent=values.change_percent,
                direction=values.direction,
            )
        )
    return tuple(sorted(comparisons, key=lambda c: (c.account.code, c.account.id)))


def _section_values(section: StatementSection) -> dict[str, tuple[Account, Decimal]]:
    return {line.account.id: (line.account, line.balance) for line in section.items}


def compare_sections(
    current: StatementSection, previous: StatementSection
) -> SectionComparison:
    return SectionComparison(
        accounts=compare_accounts(_section_values(current), _section_values(previous)),
        total=compare_values(current.total, previous.total),
    )


def generate_trial_balance_comparison(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    period: ComparisonPeriod,
) -> TrialBalanceComparison:
    """Compare trial balances as of the end of each range.

    Account values are balances on the account's normal side.
    """
    chart = as_chart(accounts)
    journal_entries = list(journal_entries)
    current = generate_trial_balance(chart, journal_entries, as_of_date=period.current.end)
    previous = generate_trial_balance(
        chart, journal_entries, as_of_date=period.previous.end
    )

    def values(tb: TrialBalance):
        return {line.account.id: (line.account, line.account.balance) for line in tb.accounts}

    return TrialBalanceComparison(
        period=period,
        current=current,
        previous=previous,
        accounts=compare_accounts(values(current), values(previous)),
        total_debit=compare_values(current.totals.total_debit, previous.totals.total_debit),
        total_credit=compare_values(
            current.totals.total_credit, previous.totals.total_credit
        ),
    )


def fiscal_year_start_for(as_of: date, fiscal_year_start: Optional[date] = None) -> date:
    """Start of the fiscal year containing ``as_of``.

    Only the month and day of ``fiscal_year_start`` are used; the default
    fiscal year is the calendar year.
    """
    if fiscal_year_start is None:
        return date(as_of.year, 1, 1)
    start = date(as_of.year, 1, 1) + relativedelta(
        month=fiscal_year_start.month, day=fiscal_year_start.day
    )
    if start > as_of:
        start -= relativedelta(years=1)
    return start


def generate_balance_sheet_comparison(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    period: ComparisonPeriod,
    fiscal_year_start: Optional[date] = None,
) -> BalanceSheetComparison:
    """Compare balance sheets as of the end of each range.

    Earnings are split into retained earnings and current period net income
    at the start of the fiscal year containing each range's end.
    """
    chart = as_chart(accounts)
    journal_entries = list(journal_entries)
    current = generate_balance_sheet(
        chart,
        journal_entries,
        as_of_date=period.current.end,
        fiscal_year_start=fiscal_year_start_for(period.current.end, fiscal_year_start),
    )
    previous = generate_balance_sheet(
        chart,
        journal_entries,
        as_of_date=period.previous.end,
        fiscal_year_start=fiscal_year_start_for(period.previous.end, fiscal_year_start),
    )

    return BalanceSheetComparison(
        period=period,
        current=current,
        previous=previous,
        current_assets=compare_sections(current.current_assets, previous.current_assets),
        non_current_assets=compare_sections(
            current.non_current_assets, previous.non_current_assets
        ),
        total_assets=compare_values(current.total_assets, previous.total_assets),
        current_liabilities=compare_sections(
            current.current_liabilities, previous.current_liabilities
        ),
        non_current_liabilities=compare_sections(
            current.non_current_liabilities, previous.non_current_liabilities
        ),
        total_liabilities=compare_values(
            current.total_liabilities, previous.total_liabilities
        ),
        equity=compare_sections(current.equity, previous.equity),
        retained_earnings=compare_values(
            current.retained_earnings, previous.retained_earnings
        ),
        current_period_net_income=compare_values(
            current.current_period_net_income, previous.current_period_net_income
        ),
        total_equity=compare_values(current.total_equity, previous.total_equity),
        total_liabilities_and_equity=compare_values(
            current.total_liabilities_and_equity, previous.total_liabilities_and_equity
        ),
    )


def generate_profit_and_loss_comparison(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    period: ComparisonPeriod,
    income_tax_rate: Optional[Decimal] = None,
) -> ProfitAndLossComparison:
    """Compare profit and loss statements over both ranges."""
    chart = as_chart(accounts)
    journal_entries = list(journal_entries)
    current = generate_profit_and_loss(
        chart,
        journal_entries,
        period.current.start,
        period.current.end,
        income_tax_rate=income_tax_rate,
    )
    previous = generate_profit_and_loss(
        chart,
        journal_entries,
        period.previous.start,
        period.previous.end,
        income_tax_rate=income_tax_rate,
    )
    return ProfitAndLossComparison(
        period=period,
        current=current,
        previous=previous,
        revenue=compare_sections(current.revenue, previous.revenue),
        cost_of_goods_sold=compare_sections(
            current.cost_of_goods_sold, previous.cost_of_goods_sold
        ),
        gross_profit=compare_values(current.gross_profit, previous.gross_profit),
        operating_expenses=compare_sections(
            current.operating_expenses, previous.operating_expenses
        ),
        operating_income=compare_values(current.operating_income, previous.operating_income),
        other_income=compare_sections(current.other_income, previous.other_income),
        other_expenses=compare_sections(current.other_expenses, previous.other_expenses),
        income_before_tax=compare_values(
            current.income_before_tax, previous.income_before_tax
        ),
        income_tax_accounts=compare_sections(
            current.income_tax_accounts, previous.income_tax_accounts
        ),
        income_tax=compare_values(current.income_tax, previous.income_tax),
        net_income=compare_values(current.net_income, previous.net_income),
    )
