"""Utility for resolving account references typed by a user."""

from ledgerkit.domain.chart import ChartOfAccounts
from ledgerkit.domain.entities import Account
from ledgerkit.domain.errors import UnknownAccountError, account_not_found


def resolve_account(chart: ChartOfAccounts, account: str) -> Account:
    """Resolve an account id, code or name to an account.

    Args:
        chart: Chart of accounts to search
        account: Account id, code, or name (names match case-insensitively)

    Returns:
        Matching account

    Raises:
        UnknownAccountError: If no account matches, or a name matches several
    """
    account = str(account).strip()
    found = chart.get(account) or chart.find_by_code(account)
    if found is not None:
        return found

    by_name = [a for a in chart.ordered() if a.name.lower() == account.lower()]
    if len(by_name) == 1:
        return by_name[0]
    if len(by_name) > 1:
        codes = ", ".join(a.code for a in by_name)
        raise UnknownAccountError(
            f"Account name '{account}' is ambiguous (codes {codes})"
        )
    raise UnknownAccountError(account_not_found(account))
