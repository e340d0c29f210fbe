"""Journal entry domain service.

Turns business transactions into balanced two-line journal entries and
provides the status operations (post, reverse) allowed on existing entries.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ledgerkit.domain.chart import ChartOfAccounts, DEFAULT_CHART_OF_ACCOUNTS, as_chart
from ledgerkit.domain.entities import (
    Account,
    AccountType,
    EntryStatus,
    JournalEntry,
    JournalEntryLine,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledgerkit.domain.errors import (
    DomainError,
    JournalBuildError,
    UnbalancedEntryError,
    UnknownAccountError,
    ValidationError,
    unbalanced_entry,
)
from ledgerkit.utils.money import amounts_equal, money_sum

module_logger = logging.getLogger(__name__)

DEFAULT_CASH_ACCOUNT = "1002"

DEFAULT_INCOME_ACCOUNTS: dict[str, str] = {
    "sales": "4001",
    "product sales": "4001",
    "consulting": "4002",
    "services": "4002",
    "service": "4002",
    "other income": "4100",
    "interest income": "4100",
}

DEFAULT_EXPENSE_ACCOUNTS: dict[str, str] = {
    "cost of goods sold": "5001",
    "cogs": "5001",
    "purchases": "5001",
    "advertising": "6001",
    "marketing": "6001",
    "office supplies": "6002",
    "rent": "6003",
    "salaries": "6004",
    "wages": "6004",
    "payroll": "6004",
    "utilities": "6005",
    "insurance": "6006",
    "telephone": "6007",
    "travel": "6008",
    "professional fees": "6009",
    "legal": "6009",
    "software": "6010",
    "depreciation": "6100",
    "interest": "6200",
    "income tax": "6300",
    "taxes": "6300",
}

LEDGER_STATUSES = frozenset({EntryStatus.POSTED, EntryStatus.REVERSED})


@dataclass(frozen=True)
class TransactionRejection:
    """Transaction that could not be journalized, with the reason."""

    transaction_id: str
    reason: str


@dataclass(frozen=True)
class JournalBuildResult:
    """Outcome of building journal entries from a batch of transactions."""

    entries: tuple[JournalEntry, ...]
    rejected: tuple[TransactionRejection, ...] = ()
    skipped: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.rejected


def _normalize_category(category: str) -> str:
    return " ".join((category or "").strip().lower().split())


class JournalEntryBuilder:
    """Build journal entries from business transactions."""

    def __init__(
        self,
        chart: Optional[ChartOfAccounts | Iterable[Account]] = None,
        income_accounts: Optional[dict[str, str]] = None,
        expense_accounts: Optional[dict[str, str]] = None,
        cash_account: str = DEFAULT_CASH_ACCOUNT,
        number_prefix: str = "JE",
        first_number: int = 1,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the builder.

        Args:
            chart: Chart of accounts (defaults to the SME default chart)
            income_accounts: Category -> revenue account id/code map
            expense_accounts: Category -> expense account id/code map
            cash_account: Account id/code receiving and paying cash
            number_prefix: Prefix of generated entry numbers
            first_number: Sequence number of the first generated entry
            logger: Optional logger compatible with logging.Logger

        Raises:
            UnknownAccountError: If the cash account is not in the chart
            ValidationError: If first_number is lower than 1
        """
        self.chart = as_chart(chart if chart is not None else DEFAULT_CHART_OF_ACCOUNTS)
        self.income_accounts = {
            _normalize_category(k): v
            for k, v in (income_accounts or DEFAULT_INCOME_ACCOUNTS).items()
        }
        self.expense_accounts = {
            _normalize_category(k): v
            for k, v in (expense_accounts or DEFAULT_EXPENSE_ACCOUNTS).items()
        }
        self.cash_account = self.chart.resolve(cash_account)
        if first_number < 1:
            raise ValidationError("Entry numbering must start at 1 or above")
        self.number_prefix = number_prefix
        self.first_number = first_number
        self._logger = logger or module_logger

    def format_entry_number(self, sequence: int) -> str:
        return f"{self.number_prefix}-{sequence:04d}"

    def map_category(self, transaction: Transaction) -> Account:
        """Resolve the revenue or expense account for a transaction.

        Raises:
            UnknownAccountError: If the category has no mapping or maps to an
                account of the wrong type
        """
        category = _normalize_category(transaction.category)
        if transaction.type == TransactionType.INCOME:
            mapping, expected = self.income_accounts, AccountType.REVENUE
        else:
            mapping, expected = self.expense_accounts, AccountType.EXPENSE

        account_ref = mapping.get(category)
        if account_ref is None:
            raise UnknownAccountError(
                f"Category '{transaction.category}' is not mapped to a "
                f"{expected.value} account"
            )
        account = self.chart.resolve(account_ref)
        if account.type != expected:
            raise UnknownAccountError(
                f"Category '{transaction.category}' maps to {account.code}, "
                f"which is not a {expected.value} account"
            )
        return account

    def build_entry(self, transaction: Transaction, entry_number: str) -> JournalEntry:
        """Build the two-line journal entry for one transaction.

        Income debits cash and credits revenue; expense debits the expense
        account and credits cash. The amount is used verbatim.

        Raises:
            ValidationError: If the amount is not positive
            UnknownAccountError: If the category cannot be mapped
        """
        if transaction.amount <= 0:
            raise ValidationError(
                f"Transaction amount must be positive, got {transaction.amount}"
            )
        counter_account = self.map_category(transaction)
        if transaction.type == TransactionType.INCOME:
            debit_account, credit_account = self.cash_account, counter_account
        else:
            debit_account, credit_account = counter_account, self.cash_account

        status = (
            EntryStatus.DRAFT
            if transaction.status == TransactionStatus.PENDING
            else EntryStatus.POSTED
        )
        return JournalEntry(
            id=f"je-{transaction.id}",
            entry_number=entry_number,
            date=transaction.date,
            description=transaction.description or transaction.category,
            reference=transaction.reference,
            status=status,
            source_transaction_id=transaction.id,
            lines=(
                JournalEntryLine(
                    id=f"jel-{transaction.id}-1",
                    account_id=debit_account.id,
                    account_code=debit_account.code,
                    account_name=debit_account.name,
                    debit=transaction.amount,
                    description=transaction.description,
                ),
                JournalEntryLine(
                    id=f"jel-{transaction.id}-2",
                    account_id=credit_account.id,
                    account_code=credit_account.code,
                    account_name=credit_account.name,
                    credit=transaction.amount,
                    description=transaction.description,
                ),
            ),
        )

    def build(self, transactions: Sequence[Transaction]) -> JournalBuildResult:
        """Build entries for a batch of transactions, collecting failures.

        Cancelled transactions are skipped. Every other transaction either
        produces an entry or a rejection; nothing is dropped silently.

        Args:
            transactions: Transactions in the order entries should be numbered

        Returns:
            JournalBuildResult with entries, rejections and skipped ids
        """
        entries: list[JournalEntry] = []
        rejected: list[TransactionRejection] = []
        skipped: list[str] = []
        sequence = self.first_number

        for transaction in transactions:
            if transaction.status == TransactionStatus.CANCELLED:
                self._logger.info("Skipping cancelled transaction %s", transaction.id)
                skipped.append(transaction.id)
                continue
            try:
                entry = self.build_entry(transaction, self.format_entry_number(sequence))
            except DomainError as e:
                self._logger.warning("Rejected transaction %s: %s", transaction.id, e)
                rejected.append(TransactionRejection(transaction.id, str(e)))
                continue
            entries.append(entry)
            sequence += 1

        self._logger.info(
            "Built %d journal entries (%d rejected, %d skipped)",
            len(entries),
            len(rejected),
            len(skipped),
        )
        return JournalBuildResult(
            entries=tuple(entries), rejected=tuple(rejected), skipped=tuple(skipped)
        )


def generate_journal_entries(
    transactions: Sequence[Transaction],
    chart: Optional[ChartOfAccounts | Iterable[Account]] = None,
    **builder_options,
) -> list[JournalEntry]:
    """Generate journal entries for transactions.

    Args:
        transactions: Transactions to journalize
        chart: Chart of accounts (defaults to the SME default chart)
        **builder_options: Extra JournalEntryBuilder options

    Returns:
        List of journal entries numbered in input order

    Raises:
        JournalBuildError: If any transaction could not be journalized
    """
    result = JournalEntryBuilder(chart, **builder_options).build(transactions)
    if not result.ok:
        raise JournalBuildError(result.rejected)
    return list(result.entries)


def create_journal_entry(
    chart: ChartOfAccounts | Iterable[Account],
    entry_id: str,
    entry_number: str,
    entry_date: date,
    description: str,
    lines: Iterable[tuple],
    reference: Optional[str] = None,
    status: EntryStatus = EntryStatus.DRAFT,
    source_transaction_id: Optional[str] = None,
    reverses_entry_id: Optional[str] = None,
) -> JournalEntry:
    """Create a manual journal entry.

    Args:
        chart: Chart of accounts the lines refer to
        entry_id: Entry id
        entry_number: Entry number
        entry_date: Entry date
        description: Entry description
        lines: Tuples of (account id or code, debit, credit[, description])
        reference: Optional reference
        status: Initial status (draft by default)
        source_transaction_id: Transaction the entry records, if any
        reverses_entry_id: Entry this one offsets, if it is a reversal

    Returns:
        Validated JournalEntry

    Raises:
        UnknownAccountError: If a line references an unknown account
        InvalidLineError: If a line is not exactly one of debit or credit
        UnbalancedEntryError: If debits and credits differ
    """
    chart = as_chart(chart)
    built_lines = []
    for index, item in enumerate(lines, start=1):
        account_ref, debit, credit, *rest = item
        account = chart.resolve(account_ref)
        built_lines.append(
            JournalEntryLine(
                id=f"{entry_id}-{index}",
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                debit=debit or Decimal("0"),
                credit=credit or Decimal("0"),
                description=rest[0] if rest else None,
            )
        )
    if len(built_lines) < 2:
        raise UnbalancedEntryError(
            f"Journal entry {entry_number} needs at least one debit and one credit line"
        )
    entry = JournalEntry(
        id=entry_id,
        entry_number=entry_number,
        date=entry_date,
        description=description,
        lines=tuple(built_lines),
        reference=reference,
        status=status,
        source_transaction_id=source_transaction_id,
        reverses_entry_id=reverses_entry_id,
    )
    validate_entry(entry, chart)
    return entry


def validate_entry(entry: JournalEntry, chart: ChartOfAccounts) -> None:
    """Check that an entry balances and only references known accounts.

    Raises:
        UnbalancedEntryError: If the entry does not balance
        UnknownAccountError: If a line references an unknown account
    """
    if not entry.is_balanced:
        raise UnbalancedEntryError(
            unbalanced_entry(entry.entry_number, entry.total_debit, entry.total_credit)
        )
    for line in entry.lines:
        if chart.get(line.account_id) is None and chart.find_by_code(line.account_code) is None:
            raise UnknownAccountError(
                f"Journal entry {entry.entry_number} references unknown account "
                f"'{line.account_code}'"
            )


def post_entry(entry: JournalEntry) -> JournalEntry:
    """Move a draft entry to posted."""
    if not entry.is_balanced:
        raise UnbalancedEntryError(
            unbalanced_entry(entry.entry_number, entry.total_debit, entry.total_credit)
        )
    return entry.with_status(EntryStatus.POSTED)


def reverse_entry(
    entry: JournalEntry,
    entry_number: str,
    reversal_date: Optional[date] = None,
) -> tuple[JournalEntry, JournalEntry]:
    """Reverse a posted entry by adding an offsetting entry.

    The original is kept and marked reversed; the offsetting entry swaps every
    debit and credit and is posted.

    Args:
        entry: Posted entry to reverse
        entry_number: Number for the offsetting entry
        reversal_date: Date of the offsetting entry (defaults to the original date)

    Returns:
        Tuple of (reversed original, offsetting entry)

    Raises:
        ConflictError: If the entry is not posted
    """
    reversed_original = entry.with_status(EntryStatus.REVERSED)
    offset = JournalEntry(
        id=f"{entry.id}-rev",
        entry_number=entry_number,
        date=reversal_date or entry.date,
        description=f"Reversal of {entry.entry_number}: {entry.description}",
        reference=entry.reference,
        status=EntryStatus.POSTED,
        reverses_entry_id=entry.id,
        lines=tuple(
            JournalEntryLine(
                id=f"{line.id}-rev" if line.id else None,
                account_id=line.account_id,
                account_code=line.account_code,
                account_name=line.account_name,
                debit=line.credit,
                credit=line.debit,
                description=line.description,
            )
            for line in entry.lines
        ),
    )
    return reversed_original, offset


def validate_ledger(entries: Iterable[JournalEntry]) -> tuple[Decimal, Decimal]:
    """Check the global double-entry invariant over a set of entries.

    Returns:
        Tuple of (total debit, total credit)

    Raises:
        UnbalancedEntryError: If any entry or the whole set is unbalanced
    """
    entries = list(entries)
    for entry in entries:
        if not entry.is_balanced:
            raise UnbalancedEntryError(
                unbalanced_entry(entry.entry_number, entry.total_debit, entry.total_credit)
            )
    total_debit = money_sum(e.total_debit for e in entries)
    total_credit = money_sum(e.total_credit for e in entries)
    if not amounts_equal(total_debit, total_credit):
        raise UnbalancedEntryError(
            f"Ledger is not balanced: debit {total_debit} != credit {total_credit}"
        )
    return total_debit, total_credit
