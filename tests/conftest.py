"""Shared pytest fixtures for ledgerkit tests."""

import json
from datetime import date
from decimal import Decimal

import pytest
from click.testing import CliRunner

from ledgerkit.domain.chart import ChartOfAccounts, default_accounts
from ledgerkit.domain.entities import (
    Account,
    AccountCategory,
    AccountType,
    BankStatement,
    BankTransaction,
    JournalEntry,
    JournalEntryLine,
    Transaction,
)
from ledgerkit.domain.journal import generate_journal_entries


def _two_line_entry(entry_id, entry_date, debit_account, credit_account, amount, **kwargs):
    """Build a posted two-line entry between two accounts."""
    amount = Decimal(str(amount))
    return JournalEntry(
        id=entry_id,
        entry_number=kwargs.pop("entry_number", entry_id.upper()),
        date=entry_date,
        description=kwargs.pop("description", f"Entry {entry_id}"),
        lines=(
            JournalEntryLine(
                account_id=debit_account.id,
                account_code=debit_account.code,
                account_name=debit_account.name,
                debit=amount,
            ),
            JournalEntryLine(
                account_id=credit_account.id,
                account_code=credit_account.code,
                account_name=credit_account.name,
                credit=amount,
            ),
        ),
        **kwargs,
    )


@pytest.fixture
def make_entry():
    """Factory for posted two-line entries."""
    return _two_line_entry


@pytest.fixture
def chart():
    """Default SME chart of accounts."""
    return ChartOfAccounts(default_accounts())


@pytest.fixture
def simple_accounts():
    """Cash and sales accounts only."""
    return [
        Account(
            id="1001",
            code="1001",
            name="Cash",
            type=AccountType.ASSET,
            category=AccountCategory.CASH,
        ),
        Account(
            id="4001",
            code="4001",
            name="Sales",
            type=AccountType.REVENUE,
            category=AccountCategory.SALES,
        ),
    ]


@pytest.fixture
def feb_transactions():
    """February 2026 business transactions: revenue 23000, expenses 8200."""
    return [
        Transaction(
            id="t1",
            type="income",
            date=date(2026, 2, 5),
            amount=Decimal("15000"),
            category="sales",
            description="Product sales",
        ),
        Transaction(
            id="t2",
            type="income",
            date=date(2026, 2, 10),
            amount=Decimal("8000"),
            category="consulting",
            description="Consulting for Acme",
            reference="INV-2026-001",
        ),
        Transaction(
            id="t3",
            type="expense",
            date=date(2026, 2, 1),
            amount=Decimal("5000"),
            category="rent",
            description="Office rent",
        ),
        Transaction(
            id="t4",
            type="expense",
            date=date(2026, 2, 15),
            amount=Decimal("2000"),
            category="software",
            description="Software subscriptions",
        ),
        Transaction(
            id="t5",
            type="expense",
            date=date(2026, 2, 20),
            amount=Decimal("1200"),
            category="utilities",
            description="Electricity",
        ),
    ]


@pytest.fixture
def feb_entries(chart, feb_transactions):
    """Journal entries built from the February transactions."""
    return generate_journal_entries(feb_transactions, chart)


@pytest.fixture
def bank_statement():
    """February statement of the checking account with one receipt."""
    return BankStatement(
        id="st-feb",
        bank_account_id="1002",
        statement_number="2026-02",
        statement_date=date(2026, 2, 28),
        opening_balance=Decimal("0"),
        closing_balance=Decimal("1000"),
        transactions=(
            BankTransaction(
                id="bt1",
                statement_id="st-feb",
                date=date(2026, 2, 10),
                description="Incoming transfer",
                amount=Decimal("1000"),
                type="credit",
            ),
        ),
    )


@pytest.fixture
def cli_runner():
    """Click CLI runner."""
    return CliRunner()


@pytest.fixture
def book_data():
    """Book document for CLI tests."""
    return {
        "transactions": [
            {"id": "t1", "type": "income", "date": "2026-02-05", "amount": 15000, "category": "sales", "description": "Product sales"},
            {"id": "t2", "type": "income", "date": "2026-02-10", "amount": "8000", "category": "consulting", "description": "Consulting for Acme", "reference": "INV-2026-001"},
            {"id": "t3", "type": "expense", "date": "2026-02-01", "amount": 5000, "category": "rent", "description": "Office rent"},
            {"id": "t4", "type": "expense", "date": "2026-02-15", "amount": 2000, "category": "software", "description": "Software subscriptions"},
            {"id": "t5", "type": "expense", "date": "2026-02-20", "amount": 1200, "category": "utilities", "description": "Electricity"},
        ],
        "journal_entries": [
            {
                "id": "opening",
                "entry_number": "JE-0001",
                "date": "2026-01-01",
                "description": "Owner investment",
                "lines": [
                    {"account": "1002", "debit": 50000},
                    {"account": "3001", "credit": 50000},
                ],
            }
        ],
        "invoices": [
            {"id": "inv1", "invoice_number": "INV-2026-001", "customer_name": "Acme", "total": 8000, "issued_date": "2026-02-01", "due_date": "2026-02-10"}
        ],
        "bank_statements": [
            {
                "id": "st-feb",
                "bank_account_id": "1002",
                "statement_number": "2026-02",
                "statement_date": "2026-02-28",
                "opening_balance": 50000,
                "closing_balance": 64800,
                "transactions": [
                    {"id": "b1", "date": "2026-02-01", "description": "Rent February", "amount": -5000},
                    {"id": "b2", "date": "2026-02-05", "description": "Card settlements", "amount": 15000},
                    {"id": "b3", "date": "2026-02-11", "description": "Acme INV-2026-001", "amount": 8000},
                    {"id": "b4", "date": "2026-02-15", "description": "Software", "amount": -2000},
                    {"id": "b5", "date": "2026-02-21", "description": "Power company", "amount": -1200},
                ],
            }
        ],
    }


@pytest.fixture
def book_file(tmp_path, book_data):
    """Book document written to a temporary file."""
    path = tmp_path / "book.json"
    path.write_text(json.dumps(book_data), encoding="utf-8")
    return path
