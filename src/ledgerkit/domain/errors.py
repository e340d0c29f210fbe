"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a candidate already consumed by a match."""


class IntegrityError(DomainError):
    """Accounting data that would break the double-entry invariant.

    Raised instead of producing a partial or unbalanced report.
    """


class InvalidLineError(IntegrityError):
    """Journal line that is not exactly one of debit or credit."""


class UnbalancedEntryError(IntegrityError):
    """Journal entry or ledger whose debits and credits differ."""


class UnknownAccountError(IntegrityError, NotFoundError):
    """Journal line or lookup referencing an account missing from the chart."""


class JournalBuildError(IntegrityError):
    """One or more transactions could not be turned into journal entries."""

    def __init__(self, rejected):
        self.rejected = tuple(rejected)
        details = "; ".join(
            f"{item.transaction_id}: {item.reason}" for item in self.rejected
        )
        super().__init__(
            f"{len(self.rejected)} transaction(s) could not be journalized: {details}"
        )


def account_not_found(account_ref: str) -> str:
    """Return message for missing account."""
    return f"Account '{account_ref}' not found"


def unbalanced_entry(entry_number: str, total_debit, total_credit) -> str:
    """Return message for an entry whose sides differ."""
    return (
        f"Journal entry {entry_number} is not balanced: "
        f"debit {total_debit} != credit {total_credit}"
    )


def invalid_date_range(start_date, end_date) -> str:
    """Return message when an end date precedes its start date."""
    return f"End date {end_date} cannot be before start date {start_date}"


def empty_account_set() -> str:
    """Return message for reports requested without accounts."""
    return "Cannot generate a report from an empty set of accounts"


def bank_transaction_not_found(bank_transaction_id: str) -> str:
    """Return message for missing bank transaction."""
    return f"Bank transaction '{bank_transaction_id}' not found"


def candidate_not_found(candidate_id: str) -> str:
    """Return message for missing reconciliation candidate."""
    return f"Ledger candidate '{candidate_id}' not found"


def candidate_already_matched(candidate_id: str, bank_transaction_id: str) -> str:
    """Return message when a candidate is consumed by another match."""
    return (
        f"Ledger candidate '{candidate_id}' is already matched to "
        f"bank transaction '{bank_transaction_id}'"
    )
