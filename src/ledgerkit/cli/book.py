"""Book file loading for the CLI.

A book is a JSON document holding the inputs of the engine:

    {
      "accounts": [...],          # optional, default chart when omitted
      "transactions": [...],
      "journal_entries": [...],   # manual entries, lines use "account"
      "invoices": [...],
      "bank_statements": [...]
    }
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from ledgerkit.domain.chart import ChartOfAccounts, default_accounts
from ledgerkit.domain.entities import (
    Account,
    BankStatement,
    BankTransaction,
    BankTransactionType,
    EntryStatus,
    Invoice,
    JournalEntry,
    Transaction,
)
from ledgerkit.domain.errors import ValidationError
from ledgerkit.domain.journal import create_journal_entry, generate_journal_entries
from ledgerkit.utils.date_parser import parse_date
from ledgerkit.utils.money import to_decimal


@dataclass(frozen=True)
class Book:
    """Inputs loaded from a book file."""

    chart: ChartOfAccounts
    transactions: tuple[Transaction, ...] = ()
    journal_entries: tuple[JournalEntry, ...] = ()
    invoices: tuple[Invoice, ...] = ()
    bank_statements: tuple[BankStatement, ...] = ()

    def ledger(self, **builder_options) -> list[JournalEntry]:
        """Manual journal entries followed by entries built from transactions.

        Generated entries are numbered after the manual ones.

        Raises:
            JournalBuildError: If a transaction cannot be journalized
        """
        builder_options.setdefault("first_number", len(self.journal_entries) + 1)
        generated = generate_journal_entries(
            self.transactions, self.chart, **builder_options
        )
        return [*self.journal_entries, *generated]


def _date(value, field: str):
    if value is None:
        raise ValidationError(f"Missing {field}")
    return parse_date(str(value))


def _optional_date(value):
    return parse_date(str(value)) if value else None


def _optional_str(value):
    return str(value) if value is not None else None


def _account(data: dict[str, Any], currency: str) -> Account:
    code = str(data["code"])
    return Account(
        id=str(data.get("id", code)),
        code=code,
        name=data["name"],
        type=data["type"],
        category=data["category"],
        currency=data.get("currency", currency),
        parent_account_id=data.get("parent_account_id"),
        is_sub_account=bool(data.get("is_sub_account", data.get("parent_account_id"))),
    )


def _transaction(data: dict[str, Any]) -> Transaction:
    return Transaction(
        id=str(data["id"]),
        type=data["type"],
        date=_date(data.get("date"), "transaction date"),
        amount=to_decimal(data["amount"]),
        category=data.get("category", ""),
        description=data.get("description", ""),
        reference=data.get("reference"),
        status=data.get("status", "completed"),
    )


def _journal_entry(data: dict[str, Any], chart: ChartOfAccounts) -> JournalEntry:
    entry_id = str(data["id"])
    return create_journal_entry(
        chart,
        entry_id=entry_id,
        entry_number=data.get("entry_number", entry_id),
        entry_date=_date(data.get("date"), f"date of journal entry {entry_id}"),
        description=data.get("description", ""),
        lines=[
            (
                str(line["account"]),
                line.get("debit"),
                line.get("credit"),
                line.get("description"),
            )
            for line in data.get("lines", [])
        ],
        reference=data.get("reference"),
        status=EntryStatus(data.get("status", EntryStatus.POSTED.value)),
        source_transaction_id=_optional_str(data.get("source_transaction_id")),
        reverses_entry_id=_optional_str(data.get("reverses_entry_id")),
    )


def _invoice(data: dict[str, Any]) -> Invoice:
    issued = _date(data.get("issued_date"), "invoice issued date")
    return Invoice(
        id=str(data["id"]),
        invoice_number=data.get("invoice_number", str(data["id"])),
        customer_name=data.get("customer_name", ""),
        total=to_decimal(data["total"]),
        issued_date=issued,
        due_date=_optional_date(data.get("due_date")) or issued,
        status=data.get("status", "pending"),
        paid_date=_optional_date(data.get("paid_date")),
    )


def _bank_transaction(data: dict[str, Any], statement_id: str) -> BankTransaction:
    amount = to_decimal(data["amount"])
    txn_type = data.get("type")
    if txn_type is None:
        txn_type = BankTransactionType.DEBIT if amount < 0 else BankTransactionType.CREDIT
    return BankTransaction(
        id=str(data["id"]),
        statement_id=str(data.get("statement_id", statement_id)),
        date=_date(data.get("date"), "bank transaction date"),
        description=data.get("description", ""),
        amount=abs(amount),
        type=txn_type,
        reference=data.get("reference"),
    )


def _bank_statement(data: dict[str, Any]) -> BankStatement:
    statement_id = str(data["id"])
    return BankStatement(
        id=statement_id,
        bank_account_id=str(data["bank_account_id"]),
        statement_number=data.get("statement_number", statement_id),
        statement_date=_date(data.get("statement_date"), "statement date"),
        opening_balance=to_decimal(data.get("opening_balance", 0)),
        closing_balance=to_decimal(data.get("closing_balance", 0)),
        transactions=[
            _bank_transaction(t, statement_id) for t in data.get("transactions", [])
        ],
    )


def parse_book(data: dict[str, Any], currency: str = "CNY") -> Book:
    """Build a Book from decoded JSON.

    Raises:
        ValidationError: If a record is missing a required field or holds
            an invalid value
    """
    if not isinstance(data, dict):
        raise ValidationError("Book must be a JSON object")
    try:
        accounts = [_account(a, currency) for a in data.get("accounts", [])]
        chart = ChartOfAccounts(accounts or default_accounts(currency))
        return Book(
            chart=chart,
            transactions=tuple(_transaction(t) for t in data.get("transactions", [])),
            journal_entries=tuple(
                _journal_entry(e, chart) for e in data.get("journal_entries", [])
            ),
            invoices=tuple(_invoice(i) for i in data.get("invoices", [])),
            bank_statements=tuple(
                _bank_statement(s) for s in data.get("bank_statements", [])
            ),
        )
    except KeyError as e:
        raise ValidationError(f"Book record is missing field {e}") from e


def load_book(path: str | Path, currency: str = "CNY") -> Book:
    """Load a book file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the file is not valid JSON or holds invalid records
    """
    book_path = Path(path)
    if not book_path.exists():
        raise FileNotFoundError(f"Book file not found: {path}")
    try:
        data = json.loads(book_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid book file {book_path.name}: {e}") from e
    return parse_book(data, currency=currency)


def get_book(ctx: click.Context) -> Book:
    """Load the book named by --book once per invocation."""
    obj = ctx.find_root().obj
    if "book" not in obj:
        book_path = obj.get("book_path")
        if not book_path:
            click.echo(
                "Error: No book file given. Use --book or set LEDGERKIT_BOOK.", err=True
            )
            ctx.exit(1)
        try:
            obj["book"] = load_book(book_path, currency=obj["report_settings"].currency)
        except (ValueError, FileNotFoundError) as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
    return obj["book"]
