"""Financial report generators.

Pure functions building trial balance, balance sheet, profit & loss and
general ledger snapshots from accounts and journal entries. Inputs are never
mutated; the same inputs (including an explicit as-of date) always produce
equal reports.

Entries count toward the ledger when they are posted or reversed. A reversed
entry stays in the books next to the posted offsetting entry that cancels it,
so dropping it would leave the offset counted alone.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence

from ledgerkit.domain.chart import (
    CURRENT_ASSET_CATEGORIES,
    CURRENT_LIABILITY_CATEGORIES,
    ChartOfAccounts,
    as_chart,
)
from ledgerkit.domain.entities import (
    Account,
    AccountCategory,
    AccountType,
    JournalEntry,
    JournalEntryLine,
    NormalBalance,
)
from ledgerkit.domain.errors import (
    UnbalancedEntryError,
    UnknownAccountError,
    ValidationError,
    invalid_date_range,
    unbalanced_entry,
)
from ledgerkit.domain.journal import LEDGER_STATUSES
from ledgerkit.utils.money import ZERO, amounts_equal, money_sum, quantize

REVENUE_CATEGORIES = frozenset({AccountCategory.SALES, AccountCategory.SERVICES})
OTHER_EXPENSE_CATEGORIES = frozenset(
    {AccountCategory.DEPRECIATION, AccountCategory.INTEREST}
)


@dataclass(frozen=True)
class TrialBalanceLine:
    """Net balance of one account, on the side where it actually falls."""

    account: Account
    debit_balance: Decimal
    credit_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal


@dataclass(frozen=True)
class TrialBalanceTotals:
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class TrialBalance:
    report_date: date
    currency: str
    accounts: tuple[TrialBalanceLine, ...]
    totals: TrialBalanceTotals


@dataclass(frozen=True)
class ReportLine:
    """Account line of a statement.

    ``balance`` is the account's own balance on its normal side; ``subtotal``
    adds the balances of its sub-accounts.
    """

    account: Account
    balance: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class StatementSection:
    items: tuple[ReportLine, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    report_date: date
    currency: str
    current_assets: StatementSection
    non_current_assets: StatementSection
    total_assets: Decimal
    current_liabilities: StatementSection
    non_current_liabilities: StatementSection
    total_liabilities: Decimal
    equity: StatementSection
    retained_earnings: Decimal
    current_period_net_income: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class ProfitAndLoss:
    start_date: date
    end_date: date
    currency: str
    revenue: StatementSection
    cost_of_goods_sold: StatementSection
    gross_profit: Decimal
    operating_expenses: StatementSection
    operating_income: Decimal
    other_income: StatementSection
    other_expenses: StatementSection
    income_before_tax: Decimal
    income_tax_accounts: StatementSection
    income_tax: Decimal
    net_income: Decimal


@dataclass(frozen=True)
class LedgerPosting:
    date: date
    entry_number: str
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    reference: Optional[str] = None


@dataclass(frozen=True)
class GeneralLedger:
    account: Account
    postings: tuple[LedgerPosting, ...]
    opening_balance: Decimal
    closing_balance: Decimal

    @property
    def total_debit(self) -> Decimal:
        return money_sum(p.debit for p in self.postings)

    @property
    def total_credit(self) -> Decimal:
        return money_sum(p.credit for p in self.postings)


@dataclass
class _Activity:
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    """Fail fast when an end date precedes its start date."""
    if start_date is not None and end_date is not None and end_date < start_date:
        raise ValidationError(invalid_date_range(start_date, end_date))


def ledger_entries(
    journal_entries: Iterable[JournalEntry],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[JournalEntry]:
    """Select entries that count toward the ledger within inclusive bounds."""
    return [
        entry
        for entry in journal_entries
        if entry.status in LEDGER_STATUSES
        and (start_date is None or entry.date >= start_date)
        and (end_date is None or entry.date <= end_date)
    ]


def resolve_line_account(chart: ChartOfAccounts, line: JournalEntryLine) -> Account:
    """Find the account a journal line posts to, by id then by code.

    Raises:
        UnknownAccountError: If the line references no account of the chart
    """
    account = chart.get(line.account_id) or chart.find_by_code(line.account_code)
    if account is None:
        raise UnknownAccountError(
            f"Journal line references unknown account '{line.account_code}'"
        )
    return account


def signed_amount(account: Account, debit: Decimal, credit: Decimal) -> Decimal:
    """Express a movement on the account's normal balance side."""
    if account.normal_balance == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


def _compute_activity(
    chart: ChartOfAccounts, entries: Sequence[JournalEntry]
) -> dict[str, _Activity]:
    activity: dict[str, _Activity] = {}
    for entry in entries:
        if not entry.is_balanced:
            raise UnbalancedEntryError(
                unbalanced_entry(entry.entry_number, entry.total_debit, entry.total_credit)
            )
        for line in entry.lines:
            account = resolve_line_account(chart, line)
            totals = activity.setdefault(account.id, _Activity())
            totals.debit += line.debit
            totals.credit += line.credit
    return activity


def _balances(
    chart: ChartOfAccounts, activity: dict[str, _Activity]
) -> dict[str, Decimal]:
    return {
        account_id: quantize(signed_amount(chart.get(account_id), act.debit, act.credit))
        for account_id, act in activity.items()
    }


def _report_currency(chart: ChartOfAccounts, currency: Optional[str]) -> str:
    return currency or chart.currency()


def _has_activity(chart: ChartOfAccounts, account: Account, activity: dict) -> bool:
    if account.id in activity:
        return True
    return any(d in activity for d in chart.descendants(account.id))


def _section(
    chart: ChartOfAccounts,
    activity: dict[str, _Activity],
    balances: dict[str, Decimal],
    subtotals: dict[str, Decimal],
    predicate: Callable[[Account], bool],
) -> StatementSection:
    items = tuple(
        ReportLine(
            account=replace(account, balance=balances.get(account.id, ZERO)),
            balance=balances.get(account.id, ZERO),
            subtotal=quantize(subtotals.get(account.id, ZERO)),
        )
        for account in chart.ordered()
        if predicate(account) and _has_activity(chart, account, activity)
    )
    return StatementSection(items=items, total=money_sum(i.balance for i in items))


def _earnings(chart: ChartOfAccounts, balances: dict[str, Decimal]) -> Decimal:
    revenue = money_sum(
        b for i, b in balances.items() if chart.get(i).type == AccountType.REVENUE
    )
    expense = money_sum(
        b for i, b in balances.items() if chart.get(i).type == AccountType.EXPENSE
    )
    return quantize(revenue - expense)


def generate_trial_balance(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    as_of_date: Optional[date] = None,
    include_zero_balances: bool = False,
    currency: Optional[str] = None,
) -> TrialBalance:
    """Generate a trial balance.

    Args:
        accounts: Chart of accounts
        journal_entries: Journal entries (non-ledger statuses are ignored)
        as_of_date: Last date included (defaults to today)
        include_zero_balances: Also list accounts without activity
        currency: Report currency (defaults to the chart's currency)

    Returns:
        TrialBalance with one line per account with activity

    Raises:
        ValidationError: If the account set is empty
        IntegrityError: If an entry is unbalanced or references an unknown account
    """
    chart = as_chart(accounts)
    as_of = as_of_date or date.today()
    activity = _compute_activity(chart, ledger_entries(journal_entries, end_date=as_of))

    lines = []
    for account in chart.ordered():
        act = activity.get(account.id)
        if act is None and not include_zero_balances:
            continue
        act = act or _Activity()
        net = quantize(act.debit - act.credit)
        lines.append(
            TrialBalanceLine(
                account=replace(
                    account, balance=quantize(signed_amount(account, act.debit, act.credit))
                ),
                debit_balance=net if net > 0 else ZERO,
                credit_balance=-net if net < 0 else ZERO,
                total_debit=quantize(act.debit),
                total_credit=quantize(act.credit),
            )
        )

    total_debit = money_sum(line.debit_balance for line in lines)
    total_credit = money_sum(line.credit_balance for line in lines)
    return TrialBalance(
        report_date=as_of,
        currency=_report_currency(chart, currency),
        accounts=tuple(lines),
        totals=TrialBalanceTotals(
            total_debit=total_debit,
            total_credit=total_credit,
            is_balanced=amounts_equal(total_debit, total_credit),
        ),
    )


def generate_balance_sheet(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    as_of_date: Optional[date] = None,
    fiscal_year_start: Optional[date] = None,
    currency: Optional[str] = None,
) -> BalanceSheet:
    """Generate a balance sheet.

    Revenue and expense accounts are never closed by this engine, so their
    cumulative result up to the as-of date is folded into equity: the part
    before ``fiscal_year_start`` as retained earnings, the rest as current
    period net income.

    Args:
        accounts: Chart of accounts
        journal_entries: Journal entries
        as_of_date: Balance sheet date (defaults to today)
        fiscal_year_start: First day of the current fiscal year, if any
        currency: Report currency (defaults to the chart's currency)

    Returns:
        BalanceSheet whose is_balanced flag checks assets = liabilities + equity

    Raises:
        ValidationError: If fiscal_year_start is after as_of_date
        IntegrityError: If an entry is unbalanced or references an unknown account
    """
    chart = as_chart(accounts)
    as_of = as_of_date or date.today()
    validate_date_range(fiscal_year_start, as_of)

    entries = ledger_entries(journal_entries, end_date=as_of)
    activity = _compute_activity(chart, entries)
    balances = _balances(chart, activity)
    subtotals = chart.rollup(balances)

    def section(predicate):
        return _section(chart, activity, balances, subtotals, predicate)

    current_assets = section(
        lambda a: a.type == AccountType.ASSET and a.category in CURRENT_ASSET_CATEGORIES
    )
    non_current_assets = section(
        lambda a: a.type == AccountType.ASSET
        and a.category not in CURRENT_ASSET_CATEGORIES
    )
    current_liabilities = section(
        lambda a: a.type == AccountType.LIABILITY
        and a.category in CURRENT_LIABILITY_CATEGORIES
    )
    non_current_liabilities = section(
        lambda a: a.type == AccountType.LIABILITY
        and a.category not in CURRENT_LIABILITY_CATEGORIES
    )
    equity = section(lambda a: a.type == AccountType.EQUITY)

    total_earnings = _earnings(chart, balances)
    if fiscal_year_start is not None:
        prior_entries = [e for e in entries if e.date < fiscal_year_start]
        retained_earnings = _earnings(
            chart, _balances(chart, _compute_activity(chart, prior_entries))
        )
    else:
        retained_earnings = ZERO
    current_period_net_income = quantize(total_earnings - retained_earnings)

    total_assets = quantize(current_assets.total + non_current_assets.total)
    total_liabilities = quantize(current_liabilities.total + non_current_liabilities.total)
    total_equity = money_sum([equity.total, retained_earnings, current_period_net_income])
    total_liabilities_and_equity = quantize(total_liabilities + total_equity)

    return BalanceSheet(
        report_date=as_of,
        currency=_report_currency(chart, currency),
        current_assets=current_assets,
        non_current_assets=non_current_assets,
        total_assets=total_assets,
        current_liabilities=current_liabilities,
        non_current_liabilities=non_current_liabilities,
        total_liabilities=total_liabilities,
        equity=equity,
        retained_earnings=retained_earnings,
        current_period_net_income=current_period_net_income,
        total_equity=total_equity,
        total_liabilities_and_equity=total_liabilities_and_equity,
        is_balanced=amounts_equal(total_assets, total_liabilities_and_equity),
    )


def generate_profit_and_loss(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    start_date: date,
    end_date: date,
    income_tax_rate: Optional[Decimal] = None,
    currency: Optional[str] = None,
) -> ProfitAndLoss:
    """Generate a profit and loss statement for an inclusive date range.

    Each stage is derived from the previous stage and rounded once:
    gross profit, operating income, income before tax, net income.

    Args:
        accounts: Chart of accounts
        journal_entries: Journal entries
        start_date: First day of the period
        end_date: Last day of the period
        income_tax_rate: When given, income tax is this rate applied to a
            positive income before tax instead of the booked tax expense
        currency: Report currency (defaults to the chart's currency)

    Returns:
        ProfitAndLoss statement

    Raises:
        ValidationError: If end_date is before start_date or the rate is negative
        IntegrityError: If an entry is unbalanced or references an unknown account
    """
    validate_date_range(start_date, end_date)
    if income_tax_rate is not None and Decimal(str(income_tax_rate)) < 0:
        raise ValidationError("Income tax rate cannot be negative")
    chart = as_chart(accounts)

    activity = _compute_activity(chart, ledger_entries(journal_entries, start_date, end_date))
    balances = _balances(chart, activity)
    subtotals = chart.rollup(balances)

    def section(account_type, categories):
        return _section(
            chart,
            activity,
            balances,
            subtotals,
            lambda a: a.type == account_type and a.category in categories,
        )

    revenue = section(AccountType.REVENUE, REVENUE_CATEGORIES)
    cost_of_goods_sold = section(
        AccountType.EXPENSE, {AccountCategory.COST_OF_GOODS_SOLD}
    )
    gross_profit = quantize(revenue.total - cost_of_goods_sold.total)

    # With a flat rate, booked tax expense is an ordinary operating expense.
    operating_categories = {AccountCategory.OPERATING_EXPENSES}
    tax_categories = {AccountCategory.TAXES}
    if income_tax_rate is not None:
        operating_categories |= tax_categories
        tax_categories = set()

    operating_expenses = section(AccountType.EXPENSE, operating_categories)
    operating_income = quantize(gross_profit - operating_expenses.total)

    other_income = section(AccountType.REVENUE, {AccountCategory.OTHER_INCOME})
    other_expenses = section(AccountType.EXPENSE, OTHER_EXPENSE_CATEGORIES)
    income_before_tax = quantize(
        operating_income + other_income.total - other_expenses.total
    )

    income_tax_accounts = section(AccountType.EXPENSE, tax_categories)
    if income_tax_rate is not None:
        income_tax = quantize(
            max(ZERO, income_before_tax * Decimal(str(income_tax_rate)))
        )
    else:
        income_tax = income_tax_accounts.total
    net_income = quantize(income_before_tax - income_tax)

    return ProfitAndLoss(
        start_date=start_date,
        end_date=end_date,
        currency=_report_currency(chart, currency),
        revenue=revenue,
        cost_of_goods_sold=cost_of_goods_sold,
        gross_profit=gross_profit,
        operating_expenses=operating_expenses,
        operating_income=operating_income,
        other_income=other_income,
        other_expenses=other_expenses,
        income_before_tax=income_before_tax,
        income_tax_accounts=income_tax_accounts,
        income_tax=income_tax,
        net_income=net_income,
    )


def _build_ledgers(
    chart: ChartOfAccounts,
    journal_entries: Iterable[JournalEntry],
    start_date: Optional[date],
    end_date: Optional[date],
) -> tuple[dict[str, list[LedgerPosting]], dict[str, Decimal]]:
    validate_date_range(start_date, end_date)
    entries = ledger_entries(journal_entries, end_date=end_date)
    # Validates balance and account references for every entry used.
    _compute_activity(chart, entries)

    postings: dict[str, list[LedgerPosting]] = {}
    running: dict[str, Decimal] = {}
    openings: dict[str, Decimal] = {}
    ordered = sorted(entries, key=lambda e: (e.date, e.entry_number, e.id))
    for entry in ordered:
        for line in entry.lines:
            account = resolve_line_account(chart, line)
            change = signed_amount(account, line.debit, line.credit)
            if start_date is not None and entry.date < start_date:
                openings[account.id] = openings.get(account.id, ZERO) + change
                continue
            balance = quantize(
                running.get(account.id, openings.get(account.id, ZERO)) + change
            )
            running[account.id] = balance
            postings.setdefault(account.id, []).append(
                LedgerPosting(
                    date=entry.date,
                    entry_number=entry.entry_number,
                    description=line.description or entry.description,
                    debit=quantize(line.debit),
                    credit=quantize(line.credit),
                    balance=balance,
                    reference=entry.reference,
                )
            )
    return postings, {k: quantize(v) for k, v in openings.items()}


def _ledger_for(
    account: Account,
    postings: dict[str, list[LedgerPosting]],
    openings: dict[str, Decimal],
) -> GeneralLedger:
    account_postings = tuple(postings.get(account.id, ()))
    opening = openings.get(account.id, ZERO)
    closing = account_postings[-1].balance if account_postings else opening
    return GeneralLedger(
        account=replace(account, balance=closing),
        postings=account_postings,
        opening_balance=opening,
        closing_balance=closing,
    )


def generate_general_ledger(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    account: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> GeneralLedger:
    """Generate the general ledger of one account.

    Args:
        accounts: Chart of accounts
        journal_entries: Journal entries
        account: Account id or code
        start_date: First posting date shown; earlier activity forms the
            opening balance
        end_date: Last posting date shown

    Returns:
        GeneralLedger with postings ordered by date then entry number

    Raises:
        UnknownAccountError: If the account is not in the chart
        ValidationError: If end_date is before start_date
    """
    chart = as_chart(accounts)
    target = chart.resolve(account)
    postings, openings = _build_ledgers(chart, journal_entries, start_date, end_date)
    return _ledger_for(target, postings, openings)


def generate_all_general_ledgers(
    accounts: ChartOfAccounts | Iterable[Account],
    journal_entries: Iterable[JournalEntry],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[GeneralLedger]:
    """Generate one general ledger per account with postings in range.

    Returns:
        Ledgers ordered by account code
    """
    chart = as_chart(accounts)
    postings, openings = _build_ledgers(chart, journal_entries, start_date, end_date)
    return [
        _ledger_for(account, postings, openings)
        for account in chart.ordered()
        if postings.get(account.id)
    ]
