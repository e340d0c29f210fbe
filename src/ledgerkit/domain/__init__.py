"""Domain layer for ledgerkit."""

from ledgerkit.domain.chart import DEFAULT_CHART_OF_ACCOUNTS, ChartOfAccounts
from ledgerkit.domain.journal import (
    JournalEntryBuilder,
    generate_journal_entries,
    validate_ledger,
)
from ledgerkit.domain.reports import (
    generate_all_general_ledgers,
    generate_balance_sheet,
    generate_general_ledger,
    generate_profit_and_loss,
    generate_trial_balance,
)
from ledgerkit.domain.comparative import (
    ComparisonPeriod,
    generate_balance_sheet_comparison,
    generate_profit_and_loss_comparison,
    generate_trial_balance_comparison,
)

__all__ = [
    "DEFAULT_CHART_OF_ACCOUNTS",
    "ChartOfAccounts",
    "JournalEntryBuilder",
    "generate_journal_entries",
    "validate_ledger",
    "generate_all_general_ledgers",
    "generate_balance_sheet",
    "generate_general_ledger",
    "generate_profit_and_loss",
    "generate_trial_balance",
    "ComparisonPeriod",
    "generate_balance_sheet_comparison",
    "generate_profit_and_loss_comparison",
    "generate_trial_balance_comparison",
]
