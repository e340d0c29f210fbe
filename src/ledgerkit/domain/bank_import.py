"""Bank statement CSV import."""

import csv
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

from ledgerkit.domain.entities import BankStatement, BankTransaction, BankTransactionType
from ledgerkit.domain.errors import ValidationError
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date
from ledgerkit.utils.money import money_sum, to_decimal

logger = logging.getLogger(__name__)

# Header keywords per field, checked in order against lower-cased headers.
COLUMN_KEYWORDS = {
    "id": ("transaction id", "txn id", "id"),
    "date": ("posting date", "transaction date", "value date", "date"),
    "description": ("description", "memo", "narrative", "details", "payee"),
    "debit": ("debit", "withdrawal", "money out", "paid out"),
    "credit": ("credit", "deposit", "money in", "paid in"),
    "amount": ("amount",),
    "reference": ("reference", "ref", "cheque", "check"),
}


def _header_matches(header: str, keyword: str, exact: bool) -> bool:
    if exact:
        return header == keyword
    if " " in keyword:
        return keyword in header
    return keyword in header.replace("_", " ").split()


@dataclass(frozen=True)
class StatementImportResult:
    """Imported statement plus per-row problems."""

    statement: BankStatement
    errors: tuple[str, ...]
    skipped: int

    @property
    def imported(self) -> int:
        return len(self.statement.transactions)


def detect_columns(fieldnames: list[str]) -> dict[str, str]:
    """Map statement fields to CSV headers.

    An exact header match wins over a keyword contained in a longer header;
    a header is used for one field only.

    Args:
        fieldnames: CSV header row

    Returns:
        Map of field name (id, date, description, amount, debit, credit,
        reference) to the CSV column holding it

    Raises:
        ValidationError: If there is no date column, or neither an amount
            column nor a debit/credit pair
    """
    headers = {name.strip().lower(): name for name in fieldnames if name}
    columns: dict[str, str] = {}
    used: set[str] = set()
    for exact in (True, False):
        for field, keywords in COLUMN_KEYWORDS.items():
            if field in columns:
                continue
            for keyword in keywords:
                match = next(
                    (
                        original
                        for lowered, original in headers.items()
                        if original not in used
                        and _header_matches(lowered, keyword, exact)
                    ),
                    None,
                )
                if match is not None:
                    columns[field] = match
                    used.add(match)
                    break

    if "date" not in columns:
        raise ValidationError("CSV file must have a date column")
    if "amount" not in columns and not ("debit" in columns or "credit" in columns):
        raise ValidationError(
            "CSV file must have an amount column or debit/credit columns"
        )
    return columns


def _row_amount(row: dict, columns: dict[str, str]) -> Decimal:
    def cell(field):
        column = columns.get(field)
        value = row.get(column) if column else None
        return value.strip() if value else ""

    if "amount" in columns and cell("amount"):
        return parse_amount(cell("amount"))
    debit = parse_amount(cell("debit")) if cell("debit") else Decimal("0")
    credit = parse_amount(cell("credit")) if cell("credit") else Decimal("0")
    return abs(credit) - abs(debit)


def import_bank_statement_csv(
    csv_file_path: str | Path,
    bank_account_id: str,
    statement_id: Optional[str] = None,
    statement_number: Optional[str] = None,
    statement_date: Optional[date] = None,
    opening_balance=Decimal("0"),
    closing_balance=None,
) -> StatementImportResult:
    """Import a bank statement from a CSV file.

    Negative amounts (or debit columns) are money out. Rows that cannot be
    parsed are reported in ``errors`` and left out of the statement.

    Args:
        csv_file_path: Path to CSV file
        bank_account_id: Bank account the statement belongs to
        statement_id: Statement id (defaults to account id and statement date)
        statement_number: Statement number (defaults to the statement id)
        statement_date: Statement date (defaults to the latest row date)
        opening_balance: Opening balance
        closing_balance: Stated closing balance (defaults to the opening
            balance rolled forward by the imported rows)

    Returns:
        StatementImportResult

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValidationError: If required columns are missing, or the file has no
            usable row and no statement date
    """
    csv_path = Path(csv_file_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    rows = []
    errors = []
    skipped = 0
    seen_ids: set[str] = set()

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(1024)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            delimiter = ","

        reader = csv.DictReader(f, delimiter=delimiter)
        if reader.fieldnames is None:
            raise ValidationError("CSV file has no columns")
        columns = detect_columns(reader.fieldnames)

        for row_num, row in enumerate(reader, start=2):
            date_str = (row.get(columns["date"]) or "").strip()
            if not date_str:
                errors.append(f"Row {row_num}: Missing date")
                continue
            try:
                txn_date = parse_date(date_str)
                amount = _row_amount(row, columns)
            except ValueError as e:
                errors.append(f"Row {row_num}: {e}")
                continue
            if amount == 0:
                errors.append(f"Row {row_num}: Zero or missing amount")
                continue

            row_id = (row.get(columns["id"]) or "").strip() if "id" in columns else ""
            if row_id and row_id in seen_ids:
                skipped += 1
                continue
            if row_id:
                seen_ids.add(row_id)

            description = (
                (row.get(columns["description"]) or "").strip()
                if "description" in columns
                else ""
            )
            reference = (
                (row.get(columns["reference"]) or "").strip() or None
                if "reference" in columns
                else None
            )
            rows.append((row_num, row_id, txn_date, description, amount, reference))

    if statement_date is None:
        if not rows:
            raise ValidationError(
                f"No transactions imported from {csv_path.name}; a statement date is required"
            )
        statement_date = max(r[2] for r in rows)
    statement_id = statement_id or f"{bank_account_id}-{statement_date:%Y%m%d}"

    transactions = tuple(
        BankTransaction(
            id=row_id or f"{statement_id}-{row_num:04d}",
            statement_id=statement_id,
            date=txn_date,
            description=description or "Unknown",
            amount=abs(amount),
            type=BankTransactionType.DEBIT if amount < 0 else BankTransactionType.CREDIT,
            reference=reference,
        )
        for row_num, row_id, txn_date, description, amount, reference in rows
    )
    opening = to_decimal(opening_balance)
    if closing_balance is None:
        closing_balance = money_sum([opening, *(t.signed_amount for t in transactions)])

    statement = BankStatement(
        id=statement_id,
        bank_account_id=bank_account_id,
        statement_number=statement_number or statement_id,
        statement_date=statement_date,
        opening_balance=opening,
        closing_balance=closing_balance,
        transactions=transactions,
    )
    logger.info(
        "Imported %d bank transaction(s) from %s (%d error(s), %d skipped)",
        len(transactions),
        csv_path.name,
        len(errors),
        skipped,
    )
    return StatementImportResult(statement=statement, errors=tuple(errors), skipped=skipped)
