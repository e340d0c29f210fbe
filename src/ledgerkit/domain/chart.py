"""Chart of accounts domain service."""

from decimal import Decimal
from typing import Iterable, Optional

from ledgerkit.domain.entities import (
    Account,
    AccountCategory as Cat,
    AccountType as T,
)
from ledgerkit.domain.errors import (
    UnknownAccountError,
    ValidationError,
    account_not_found,
    empty_account_set,
)

CURRENT_ASSET_CATEGORIES = frozenset(
    {Cat.CASH, Cat.BANK, Cat.ACCOUNTS_RECEIVABLE, Cat.INVENTORY, Cat.PREPAID}
)
CURRENT_LIABILITY_CATEGORIES = frozenset(
    {Cat.ACCOUNTS_PAYABLE, Cat.ACCRUED_EXPENSES, Cat.SHORT_TERM_DEBT, Cat.TAXES}
)
CASH_CATEGORIES = frozenset({Cat.CASH, Cat.BANK})

# (code, name, type, category, parent code)
_DEFAULT_ACCOUNTS = (
    ("1001", "Cash on Hand", T.ASSET, Cat.CASH, None),
    ("1002", "Business Checking Account", T.ASSET, Cat.BANK, None),
    ("1003", "Savings Account", T.ASSET, Cat.BANK, None),
    ("1101", "Accounts Receivable", T.ASSET, Cat.ACCOUNTS_RECEIVABLE, None),
    ("1201", "Inventory", T.ASSET, Cat.INVENTORY, None),
    ("1301", "Prepaid Insurance", T.ASSET, Cat.PREPAID, None),
    ("1401", "Office Equipment", T.ASSET, Cat.FIXED_ASSETS, None),
    ("1402", "Accumulated Depreciation - Equipment", T.ASSET, Cat.FIXED_ASSETS, "1401"),
    ("1501", "Furniture and Fixtures", T.ASSET, Cat.FIXED_ASSETS, None),
    ("1502", "Accumulated Depreciation - Furniture", T.ASSET, Cat.FIXED_ASSETS, "1501"),
    ("2001", "Accounts Payable", T.LIABILITY, Cat.ACCOUNTS_PAYABLE, None),
    ("2101", "Accrued Wages", T.LIABILITY, Cat.ACCRUED_EXPENSES, None),
    ("2102", "Accrued Expenses", T.LIABILITY, Cat.ACCRUED_EXPENSES, None),
    ("2201", "Short-term Loan", T.LIABILITY, Cat.SHORT_TERM_DEBT, None),
    ("2301", "Long-term Loan", T.LIABILITY, Cat.LONG_TERM_DEBT, None),
    ("2401", "Sales Tax Payable", T.LIABILITY, Cat.ACCOUNTS_PAYABLE, None),
    ("2501", "Income Tax Payable", T.LIABILITY, Cat.TAXES, None),
    ("3001", "Owner's Capital", T.EQUITY, Cat.OWNER_EQUITY, None),
    ("3002", "Owner's Drawings", T.EQUITY, Cat.OWNER_EQUITY, None),
    ("3101", "Retained Earnings", T.EQUITY, Cat.RETAINED_EARNINGS, None),
    ("3201", "Common Stock", T.EQUITY, Cat.COMMON_STOCK, None),
    ("4001", "Sales Revenue", T.REVENUE, Cat.SALES, None),
    ("4002", "Service Revenue", T.REVENUE, Cat.SERVICES, None),
    ("4100", "Other Income", T.REVENUE, Cat.OTHER_INCOME, None),
    ("5001", "Cost of Goods Sold", T.EXPENSE, Cat.COST_OF_GOODS_SOLD, None),
    ("6001", "Advertising Expense", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6002", "Office Supplies Expense", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6003", "Rent Expense", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6004", "Salaries and Wages", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6005", "Utilities Expense", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6006", "Insurance Expense", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6007", "Telephone Expense", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6008", "Travel Expense", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6009", "Professional Fees", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6010", "Software Subscriptions", T.EXPENSE, Cat.OPERATING_EXPENSES, None),
    ("6100", "Depreciation Expense", T.EXPENSE, Cat.DEPRECIATION, None),
    ("6200", "Interest Expense", T.EXPENSE, Cat.INTEREST, None),
    ("6300", "Income Tax Expense", T.EXPENSE, Cat.TAXES, None),
)


def default_accounts(currency: str = "CNY") -> list[Account]:
    """Build the default SME chart of accounts.

    Account ids equal account codes.

    Args:
        currency: Currency code for every account

    Returns:
        List of Account entities ordered by code
    """
    return [
        Account(
            id=code,
            code=code,
            name=name,
            type=account_type,
            category=category,
            currency=currency,
            parent_account_id=parent,
            is_sub_account=parent is not None,
        )
        for code, name, account_type, category, parent in _DEFAULT_ACCOUNTS
    ]


DEFAULT_CHART_OF_ACCOUNTS: tuple[Account, ...] = tuple(default_accounts())


class ChartOfAccounts:
    """Read-only index over a set of accounts and their hierarchy."""

    def __init__(self, accounts: Iterable[Account]):
        """Initialize the chart.

        Args:
            accounts: Accounts making up the chart

        Raises:
            ValidationError: If the set is empty, ids or codes repeat, or the
                parent hierarchy is inconsistent
        """
        self._accounts: dict[str, Account] = {}
        self._by_code: dict[str, Account] = {}
        for account in accounts:
            if account.id in self._accounts:
                raise ValidationError(f"Duplicate account id '{account.id}'")
            if account.code in self._by_code:
                raise ValidationError(f"Duplicate account code '{account.code}'")
            self._accounts[account.id] = account
            self._by_code[account.code] = account

        if not self._accounts:
            raise ValidationError(empty_account_set())

        self._children: dict[str, list[str]] = {}
        for account in self._accounts.values():
            parent_id = account.parent_account_id
            if parent_id is None:
                continue
            parent = self._accounts.get(parent_id) or self._by_code.get(parent_id)
            if parent is None:
                raise ValidationError(
                    f"Account {account.code} references unknown parent '{parent_id}'"
                )
            if parent.type != account.type:
                raise ValidationError(
                    f"Account {account.code} ({account.type.value}) cannot be a child "
                    f"of {parent.code} ({parent.type.value})"
                )
            self._children.setdefault(parent.id, []).append(account.id)

        self._check_acyclic()

    def _parent_id(self, account: Account) -> Optional[str]:
        parent_ref = account.parent_account_id
        if parent_ref is None:
            return None
        parent = self._accounts.get(parent_ref) or self._by_code[parent_ref]
        return parent.id

    def _check_acyclic(self) -> None:
        for account in self._accounts.values():
            seen = {account.id}
            current = self._parent_id(account)
            while current is not None:
                if current in seen:
                    raise ValidationError(
                        f"Account hierarchy contains a cycle at {account.code}"
                    )
                seen.add(current)
                current = self._parent_id(self._accounts[current])

    def __iter__(self):
        return iter(self.ordered())

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._accounts

    def ordered(self) -> list[Account]:
        """Return accounts sorted by code."""
        return sorted(self._accounts.values(), key=lambda a: (a.code, a.id))

    def get(self, account_id: str) -> Optional[Account]:
        """Get account by id."""
        return self._accounts.get(account_id)

    def find_by_code(self, code: str) -> Optional[Account]:
        """Get account by code."""
        return self._by_code.get(code)

    def resolve(self, account_ref: str) -> Account:
        """Resolve an account id or code.

        Raises:
            UnknownAccountError: If neither an id nor a code matches
        """
        account = self._accounts.get(account_ref) or self._by_code.get(account_ref)
        if account is None:
            raise UnknownAccountError(account_not_found(account_ref))
        return account

    def parent(self, account_id: str) -> Optional[Account]:
        parent_id = self._parent_id(self.resolve(account_id))
        return self._accounts[parent_id] if parent_id else None

    def children(self, account_id: str) -> list[Account]:
        """Return the direct sub-accounts of an account, sorted by code."""
        account = self.resolve(account_id)
        return sorted(
            (self._accounts[i] for i in self._children.get(account.id, [])),
            key=lambda a: a.code,
        )

    def descendants(self, account_id: str) -> set[str]:
        """Return ids of every account below ``account_id`` (excluding itself)."""
        account = self.resolve(account_id)
        result: set[str] = set()
        stack = list(self._children.get(account.id, []))
        while stack:
            current = stack.pop()
            result.add(current)
            stack.extend(self._children.get(current, []))
        return result

    def roots(self) -> list[Account]:
        """Return top-level accounts, sorted by code."""
        return [a for a in self.ordered() if a.parent_account_id is None]

    def of_type(self, account_type) -> list[Account]:
        return [a for a in self.ordered() if a.type == account_type]

    def rollup(self, balances: dict[str, Decimal]) -> dict[str, Decimal]:
        """Aggregate own balances into subtree totals.

        Args:
            balances: Own balance per account id (missing ids count as zero)

        Returns:
            Map of account id to its own balance plus all descendants' balances
        """
        totals: dict[str, Decimal] = {}

        def visit(account_id: str) -> Decimal:
            if account_id in totals:
                return totals[account_id]
            total = balances.get(account_id, Decimal("0"))
            for child_id in self._children.get(account_id, []):
                total += visit(child_id)
            totals[account_id] = total
            return total

        for account_id in self._accounts:
            visit(account_id)
        return totals

    def currency(self) -> str:
        """Return the single currency used by the chart.

        Raises:
            ValidationError: If accounts use more than one currency
        """
        currencies = {a.currency for a in self._accounts.values()}
        if len(currencies) > 1:
            raise ValidationError(
                f"Accounts use more than one currency: {', '.join(sorted(currencies))}"
            )
        return currencies.pop()


def as_chart(accounts) -> ChartOfAccounts:
    """Accept either a ChartOfAccounts or an iterable of accounts."""
    if isinstance(accounts, ChartOfAccounts):
        return accounts
    return ChartOfAccounts(accounts)
