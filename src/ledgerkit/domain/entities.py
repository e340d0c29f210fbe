"""Domain model entities for ledgerkit.

These are pure data classes representing accounting concepts, independent of
any storage schema. Money fields are Decimal; constructors coerce ints, floats
and strings so callers can hand over plain numbers.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from ledgerkit.domain.errors import InvalidLineError, ValidationError, ConflictError
from ledgerkit.utils.money import amounts_equal, money_sum, to_decimal


class AccountType(str, Enum):
    """Top-level account classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which an account type customarily carries a positive balance."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountCategory(str, Enum):
    """Account category, constrained by account type."""

    CASH = "cash"
    BANK = "bank"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    INVENTORY = "inventory"
    PREPAID = "prepaid"
    FIXED_ASSETS = "fixed_assets"
    ACCOUNTS_PAYABLE = "accounts_payable"
    ACCRUED_EXPENSES = "accrued_expenses"
    SHORT_TERM_DEBT = "short_term_debt"
    LONG_TERM_DEBT = "long_term_debt"
    OWNER_EQUITY = "owner_equity"
    RETAINED_EARNINGS = "retained_earnings"
    COMMON_STOCK = "common_stock"
    SALES = "sales"
    SERVICES = "services"
    OTHER_INCOME = "other_income"
    COST_OF_GOODS_SOLD = "cost_of_goods_sold"
    OPERATING_EXPENSES = "operating_expenses"
    DEPRECIATION = "depreciation"
    INTEREST = "interest"
    TAXES = "taxes"


CATEGORY_TYPES: dict[AccountCategory, frozenset[AccountType]] = {
    AccountCategory.CASH: frozenset({AccountType.ASSET}),
    AccountCategory.BANK: frozenset({AccountType.ASSET}),
    AccountCategory.ACCOUNTS_RECEIVABLE: frozenset({AccountType.ASSET}),
    AccountCategory.INVENTORY: frozenset({AccountType.ASSET}),
    AccountCategory.PREPAID: frozenset({AccountType.ASSET}),
    AccountCategory.FIXED_ASSETS: frozenset({AccountType.ASSET}),
    AccountCategory.ACCOUNTS_PAYABLE: frozenset({AccountType.LIABILITY}),
    AccountCategory.ACCRUED_EXPENSES: frozenset({AccountType.LIABILITY}),
    AccountCategory.SHORT_TERM_DEBT: frozenset({AccountType.LIABILITY}),
    AccountCategory.LONG_TERM_DEBT: frozenset({AccountType.LIABILITY}),
    # Income tax payable (liability) and income tax expense share a category.
    AccountCategory.TAXES: frozenset({AccountType.LIABILITY, AccountType.EXPENSE}),
    AccountCategory.OWNER_EQUITY: frozenset({AccountType.EQUITY}),
    AccountCategory.RETAINED_EARNINGS: frozenset({AccountType.EQUITY}),
    AccountCategory.COMMON_STOCK: frozenset({AccountType.EQUITY}),
    AccountCategory.SALES: frozenset({AccountType.REVENUE}),
    AccountCategory.SERVICES: frozenset({AccountType.REVENUE}),
    AccountCategory.OTHER_INCOME: frozenset({AccountType.REVENUE}),
    AccountCategory.COST_OF_GOODS_SOLD: frozenset({AccountType.EXPENSE}),
    AccountCategory.OPERATING_EXPENSES: frozenset({AccountType.EXPENSE}),
    AccountCategory.DEPRECIATION: frozenset({AccountType.EXPENSE}),
    AccountCategory.INTEREST: frozenset({AccountType.EXPENSE}),
}


def normal_balance(account_type: AccountType) -> NormalBalance:
    """Return the normal balance side for an account type."""
    if AccountType(account_type) in (AccountType.ASSET, AccountType.EXPENSE):
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class EntryStatus(str, Enum):
    """Journal entry lifecycle status."""

    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


ALLOWED_STATUS_TRANSITIONS: dict[EntryStatus, frozenset[EntryStatus]] = {
    EntryStatus.DRAFT: frozenset({EntryStatus.POSTED}),
    EntryStatus.POSTED: frozenset({EntryStatus.REVERSED}),
    EntryStatus.REVERSED: frozenset(),
}


class TransactionType(str, Enum):
    """Business transaction direction."""

    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    """Business transaction status."""

    COMPLETED = "completed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class BankTransactionType(str, Enum):
    """Bank-side direction: credit is money in, debit is money out."""

    CREDIT = "credit"
    DEBIT = "debit"


@dataclass(frozen=True)
class Account:
    """Chart of accounts entry.

    ``balance`` is informational only: report generators compute balances
    from journal entries and return copies carrying the computed figure.
    Parent and child balances are never summed by the model.
    """

    id: str
    code: str
    name: str
    type: AccountType
    category: AccountCategory
    balance: Decimal = Decimal("0")
    currency: str = "CNY"
    parent_account_id: Optional[str] = None
    is_sub_account: bool = False

    def __post_init__(self):
        try:
            account_type = AccountType(self.type)
            category = AccountCategory(self.category)
        except ValueError as e:
            raise ValidationError(f"Account {self.code}: {e}") from e
        if account_type not in CATEGORY_TYPES[category]:
            raise ValidationError(
                f"Account {self.code}: category '{category.value}' is not valid "
                f"for account type '{account_type.value}'"
            )
        if self.is_sub_account and not self.parent_account_id:
            raise ValidationError(
                f"Account {self.code}: sub-account must reference a parent account"
            )
        object.__setattr__(self, "type", account_type)
        object.__setattr__(self, "category", category)
        object.__setattr__(self, "balance", to_decimal(self.balance))

    @property
    def normal_balance(self) -> NormalBalance:
        """Normal balance side of this account."""
        return normal_balance(self.type)


@dataclass(frozen=True)
class JournalEntryLine:
    """Single debit or credit line of a journal entry."""

    account_id: str
    account_code: str
    account_name: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        debit = to_decimal(self.debit)
        credit = to_decimal(self.credit)
        if debit < 0 or credit < 0:
            raise InvalidLineError(
                f"Line on account {self.account_code}: debit and credit must be non-negative"
            )
        if (debit != 0) == (credit != 0):
            raise InvalidLineError(
                f"Line on account {self.account_code}: exactly one of debit or credit "
                "must be non-zero"
            )
        object.__setattr__(self, "debit", debit)
        object.__setattr__(self, "credit", credit)

    @property
    def is_debit(self) -> bool:
        return self.debit != 0

    @property
    def amount(self) -> Decimal:
        """Non-zero side of the line."""
        return self.debit if self.is_debit else self.credit


@dataclass(frozen=True)
class JournalEntry:
    """Journal entry made of debit and credit lines.

    Totals are derived from the lines, so they can never drift from them.
    Entries are immutable; status changes produce a new instance through
    ``with_status``.
    """

    id: str
    entry_number: str
    date: date
    description: str
    lines: tuple[JournalEntryLine, ...]
    reference: Optional[str] = None
    status: EntryStatus = EntryStatus.POSTED
    source_transaction_id: Optional[str] = None
    reverses_entry_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "status", EntryStatus(self.status))

    @property
    def total_debit(self) -> Decimal:
        return money_sum(line.debit for line in self.lines)

    @property
    def total_credit(self) -> Decimal:
        return money_sum(line.credit for line in self.lines)

    @property
    def is_balanced(self) -> bool:
        return amounts_equal(self.total_debit, self.total_credit)

    def with_status(self, status: EntryStatus) -> "JournalEntry":
        """Return a copy with a new status.

        Raises:
            ConflictError: If the transition is not draft -> posted -> reversed
        """
        status = EntryStatus(status)
        if status not in ALLOWED_STATUS_TRANSITIONS[self.status]:
            raise ConflictError(
                f"Journal entry {self.entry_number} cannot move from "
                f"{self.status.value} to {status.value}"
            )
        return replace(self, status=status)


@dataclass(frozen=True)
class Transaction:
    """Raw business transaction used to build journal entries."""

    id: str
    type: TransactionType
    date: date
    amount: Decimal
    category: str
    description: str = ""
    reference: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED

    def __post_init__(self):
        object.__setattr__(self, "type", TransactionType(self.type))
        object.__setattr__(self, "status", TransactionStatus(self.status))
        object.__setattr__(self, "amount", to_decimal(self.amount))


@dataclass(frozen=True)
class Invoice:
    """Customer invoice, a reconciliation candidate for incoming payments."""

    id: str
    invoice_number: str
    customer_name: str
    total: Decimal
    issued_date: date
    due_date: date
    status: str = "pending"
    paid_date: Optional[date] = None

    def __post_init__(self):
        object.__setattr__(self, "total", to_decimal(self.total))


@dataclass(frozen=True)
class BankTransaction:
    """Bank statement line. ``amount`` is always positive; ``type`` gives the sign."""

    id: str
    statement_id: str
    date: date
    description: str
    amount: Decimal
    type: BankTransactionType
    reference: Optional[str] = None

    def __post_init__(self):
        amount = to_decimal(self.amount)
        if amount < 0:
            raise ValidationError(
                f"Bank transaction {self.id}: amount must be positive, use type for direction"
            )
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "type", BankTransactionType(self.type))

    @property
    def signed_amount(self) -> Decimal:
        """Positive for money in, negative for money out."""
        return self.amount if self.type == BankTransactionType.CREDIT else -self.amount


@dataclass(frozen=True)
class BankStatement:
    """Bank statement with its transactions."""

    id: str
    bank_account_id: str
    statement_number: str
    statement_date: date
    opening_balance: Decimal
    closing_balance: Decimal
    transactions: tuple[BankTransaction, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "opening_balance", to_decimal(self.opening_balance))
        object.__setattr__(self, "closing_balance", to_decimal(self.closing_balance))
        object.__setattr__(self, "transactions", tuple(self.transactions))
        for txn in self.transactions:
            if txn.statement_id != self.id:
                raise ValidationError(
                    f"Bank transaction {txn.id} belongs to statement "
                    f"{txn.statement_id}, not {self.id}"
                )

    @property
    def total_credits(self) -> Decimal:
        return money_sum(
            t.amount for t in self.transactions if t.type == BankTransactionType.CREDIT
        )

    @property
    def total_debits(self) -> Decimal:
        return money_sum(
            t.amount for t in self.transactions if t.type == BankTransactionType.DEBIT
        )

    @property
    def computed_closing_balance(self) -> Decimal:
        """Opening balance rolled forward by every statement line."""
        return money_sum([self.opening_balance, self.total_credits, -self.total_debits])
