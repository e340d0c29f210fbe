"""Bank reconciliation domain service.

Matches bank statement transactions against ledger candidates (cash movements
of journal entries, customer invoices) in confidence tiers:

* high: exact amount and same date
* medium: exact amount and date within the configured window
* low: amount within the configured tolerance and date within the window

Tiers run as separate passes over all transactions, so a high confidence
match is never pre-empted by a weaker one found earlier in statement order.
A transaction with several candidates at its best tier is left unmatched with
all of them listed, unless exactly one of them shares its reference.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence

from ledgerkit.config import ReconciliationSettings
from ledgerkit.domain.entities import (
    BankStatement,
    BankTransaction,
    EntryStatus,
    Invoice,
    JournalEntry,
)
from ledgerkit.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    bank_transaction_not_found,
    candidate_already_matched,
    candidate_not_found,
)
from ledgerkit.utils.money import ZERO, amounts_equal, money_sum, quantize

module_logger = logging.getLogger(__name__)

INVOICE_SKIP_STATUSES = frozenset({"draft", "cancelled", "void"})
MIN_REFERENCE_LENGTH = 4


class MatchConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MANUAL = "manual"


AUTO_TIERS = (MatchConfidence.HIGH, MatchConfidence.MEDIUM, MatchConfidence.LOW)
_TIER_RANK = {tier: rank for rank, tier in enumerate(AUTO_TIERS)}


class MatchStatus(str, Enum):
    UNMATCHED = "unmatched"
    MATCHED = "matched"
    REJECTED = "rejected"


class CandidateKind(str, Enum):
    JOURNAL_ENTRY = "journal_entry"
    INVOICE = "invoice"


@dataclass(frozen=True)
class LedgerCandidate:
    """Book-side record a bank transaction can be matched to.

    ``amount`` is signed like ``BankTransaction.signed_amount``: positive for
    money coming into the bank account.
    """

    id: str
    kind: CandidateKind
    source_id: str
    date: date
    amount: Decimal
    description: str = ""
    reference: Optional[str] = None


@dataclass(frozen=True)
class MatchCandidate:
    """Candidate scored against one bank transaction."""

    candidate: LedgerCandidate
    confidence: MatchConfidence
    amount_difference: Decimal
    days_apart: int
    reference_match: bool


@dataclass(frozen=True)
class ReconciliationMatch:
    """Match state of one bank transaction within a run."""

    bank_transaction: BankTransaction
    status: MatchStatus = MatchStatus.UNMATCHED
    candidate: Optional[LedgerCandidate] = None
    confidence: Optional[MatchConfidence] = None
    alternatives: tuple[MatchCandidate, ...] = ()
    reason: str = ""

    @property
    def is_ambiguous(self) -> bool:
        return self.status == MatchStatus.UNMATCHED and len(self.alternatives) > 1


@dataclass(frozen=True)
class StatementSummary:
    """Roll-forward check of one statement's own figures."""

    statement_id: str
    statement_number: str
    statement_date: date
    opening_balance: Decimal
    total_credits: Decimal
    total_debits: Decimal
    computed_closing_balance: Decimal
    closing_balance: Decimal
    difference: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.difference == ZERO

    @classmethod
    def from_statement(cls, statement: BankStatement) -> "StatementSummary":
        computed = statement.computed_closing_balance
        closing = quantize(statement.closing_balance)
        return cls(
            statement_id=statement.id,
            statement_number=statement.statement_number,
            statement_date=statement.statement_date,
            opening_balance=quantize(statement.opening_balance),
            total_credits=statement.total_credits,
            total_debits=statement.total_debits,
            computed_closing_balance=computed,
            closing_balance=closing,
            difference=quantize(closing - computed),
        )


@dataclass(frozen=True)
class ReconciliationReport:
    """Outcome of a reconciliation run.

    ``discrepancy`` is closing balance minus opening balance plus the signed
    amounts of matched transactions. It is reported as is, never adjusted.
    """

    bank_account_id: str
    statements: tuple[StatementSummary, ...]
    matches: tuple[ReconciliationMatch, ...]
    matched_count: int
    matched_amount: Decimal
    unmatched_transactions: tuple[BankTransaction, ...]
    rejected_transactions: tuple[BankTransaction, ...]
    ambiguous_matches: tuple[ReconciliationMatch, ...]
    unmatched_candidates: tuple[LedgerCandidate, ...]
    opening_balance: Decimal
    closing_balance: Decimal
    discrepancy: Decimal

    @property
    def is_reconciled(self) -> bool:
        return (
            self.discrepancy == ZERO
            and not self.unmatched_transactions
            and not self.rejected_transactions
        )


def candidates_from_journal_entries(
    entries: Iterable[JournalEntry], cash_account_ids: Iterable[str]
) -> list[LedgerCandidate]:
    """Turn posted journal entries touching cash accounts into candidates.

    Reversed entries and the entries reversing them cancel out and are left
    out, as are drafts.

    Args:
        entries: Journal entries
        cash_account_ids: Ids or codes of the bank/cash accounts being reconciled

    Returns:
        One candidate per entry with a non-zero net cash movement
    """
    cash_refs = set(cash_account_ids)
    entries = list(entries)
    reversed_ids = {e.reverses_entry_id for e in entries if e.reverses_entry_id}
    candidates = []
    for entry in entries:
        if entry.status != EntryStatus.POSTED or entry.reverses_entry_id:
            continue
        if entry.id in reversed_ids:
            continue
        cash_lines = [
            line
            for line in entry.lines
            if line.account_id in cash_refs or line.account_code in cash_refs
        ]
        if not cash_lines:
            continue
        amount = money_sum(line.debit - line.credit for line in cash_lines)
        if amount == ZERO:
            continue
        candidates.append(
            LedgerCandidate(
                id=f"je:{entry.id}",
                kind=CandidateKind.JOURNAL_ENTRY,
                source_id=entry.id,
                date=entry.date,
                amount=amount,
                description=entry.description,
                reference=entry.reference or entry.entry_number,
            )
        )
    return candidates


def candidates_from_invoices(invoices: Iterable[Invoice]) -> list[LedgerCandidate]:
    """Turn customer invoices into incoming-payment candidates.

    The candidate date is the paid date when known, else the due date.
    Draft, cancelled and void invoices are skipped.
    """
    return [
        LedgerCandidate(
            id=f"inv:{invoice.id}",
            kind=CandidateKind.INVOICE,
            source_id=invoice.id,
            date=invoice.paid_date or invoice.due_date or invoice.issued_date,
            amount=quantize(invoice.total),
            description=f"Invoice {invoice.invoice_number} {invoice.customer_name}",
            reference=invoice.invoice_number,
        )
        for invoice in invoices
        if invoice.status.lower() not in INVOICE_SKIP_STATUSES and invoice.total > 0
    ]


def _norm(text: Optional[str]) -> str:
    return " ".join((text or "").lower().split())


def reference_matches(transaction: BankTransaction, candidate: LedgerCandidate) -> bool:
    """Check whether a bank transaction cites the candidate's reference.

    References must be equal, or the candidate reference must appear as a
    whole token in the bank description. Partial tokens never match.
    """
    cand_ref = _norm(candidate.reference)
    if not cand_ref:
        return False
    if _norm(transaction.reference) == cand_ref:
        return True
    if len(cand_ref) < MIN_REFERENCE_LENGTH:
        return False
    pattern = rf"(?<![\w-]){re.escape(cand_ref)}(?![\w-])"
    return re.search(pattern, _norm(transaction.description)) is not None


class ReconciliationRun:
    """Mutable reconciliation state for one bank account.

    A run copies the candidate pool it is given; matching consumes candidates
    from that copy only.
    """

    def __init__(
        self,
        bank_account_id: str,
        statements: Iterable[BankStatement],
        candidates: Iterable[LedgerCandidate],
        settings: Optional[ReconciliationSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the run.

        Args:
            bank_account_id: Bank account being reconciled
            statements: Statements; those of other accounts are ignored
            candidates: Ledger candidates
            settings: Matching thresholds
            logger: Logger to use instead of the module logger

        Raises:
            ValidationError: If no statement belongs to the account, or bank
                transaction or candidate ids repeat
        """
        self.bank_account_id = bank_account_id
        self.settings = settings or ReconciliationSettings()
        self.logger = logger or module_logger

        self.statements: tuple[BankStatement, ...] = tuple(
            sorted(
                (s for s in statements if s.bank_account_id == bank_account_id),
                key=lambda s: (s.statement_date, s.statement_number, s.id),
            )
        )
        if not self.statements:
            raise ValidationError(
                f"No bank statements found for bank account '{bank_account_id}'"
            )

        self._transactions: dict[str, BankTransaction] = {}
        for statement in self.statements:
            for txn in sorted(statement.transactions, key=lambda t: (t.date, t.id)):
                if txn.id in self._transactions:
                    raise ValidationError(f"Duplicate bank transaction id '{txn.id}'")
                self._transactions[txn.id] = txn

        self._candidates: dict[str, LedgerCandidate] = {}
        for candidate in candidates:
            if candidate.id in self._candidates:
                raise ValidationError(f"Duplicate ledger candidate id '{candidate.id}'")
            self._candidates[candidate.id] = candidate

        self._matches: dict[str, ReconciliationMatch] = {
            txn_id: ReconciliationMatch(bank_transaction=txn)
            for txn_id, txn in self._transactions.items()
        }
        # candidate id -> bank transaction id
        self._consumed: dict[str, str] = {}
        self._rejected_pairs: set[tuple[str, str]] = set()

        for summary in self.statement_summaries():
            if not summary.is_balanced:
                self.logger.warning(
                    "Statement %s does not roll forward: computed closing %s, stated %s",
                    summary.statement_number,
                    summary.computed_closing_balance,
                    summary.closing_balance,
                )

    @property
    def matches(self) -> tuple[ReconciliationMatch, ...]:
        return tuple(self._matches.values())

    def get_match(self, bank_transaction_id: str) -> ReconciliationMatch:
        """Get the match state of a bank transaction.

        Raises:
            NotFoundError: If the transaction is not part of the run
        """
        match = self._matches.get(bank_transaction_id)
        if match is None:
            raise NotFoundError(bank_transaction_not_found(bank_transaction_id))
        return match

    def statement_summaries(self) -> list[StatementSummary]:
        return [StatementSummary.from_statement(s) for s in self.statements]

    def score(
        self, transaction: BankTransaction, candidate: LedgerCandidate
    ) -> Optional[MatchCandidate]:
        """Score a candidate against a bank transaction.

        Returns:
            MatchCandidate with its confidence tier, or None if the candidate
            falls outside every tier
        """
        signed = transaction.signed_amount
        if (signed > 0) != (candidate.amount > 0):
            return None
        difference = quantize(abs(signed - candidate.amount))
        days_apart = abs((transaction.date - candidate.date).days)
        if days_apart > self.settings.date_window_days:
            return None
        if difference == ZERO:
            confidence = MatchConfidence.HIGH if days_apart == 0 else MatchConfidence.MEDIUM
        elif difference <= self.settings.amount_tolerance:
            confidence = MatchConfidence.LOW
        else:
            return None
        return MatchCandidate(
            candidate=candidate,
            confidence=confidence,
            amount_difference=difference,
            days_apart=days_apart,
            reference_match=reference_matches(transaction, candidate),
        )

    def _available(self, bank_transaction_id: str) -> list[LedgerCandidate]:
        return [
            c
            for c in self._candidates.values()
            if self._consumed.get(c.id, bank_transaction_id) == bank_transaction_id
            and (bank_transaction_id, c.id) not in self._rejected_pairs
        ]

    def recommendations(
        self, bank_transaction_id: str, limit: Optional[int] = 5
    ) -> list[MatchCandidate]:
        """List the best available candidates for a bank transaction.

        Candidates already consumed by other transactions, and candidates
        rejected for this one, are excluded.

        Args:
            bank_transaction_id: Bank transaction id
            limit: Maximum number of suggestions (None for all)

        Returns:
            Scored candidates, best first

        Raises:
            NotFoundError: If the transaction is not part of the run
        """
        transaction = self.get_match(bank_transaction_id).bank_transaction
        scored = [
            s
            for s in (self.score(transaction, c) for c in self._available(transaction.id))
            if s is not None
        ]
        scored.sort(
            key=lambda s: (
                _TIER_RANK[s.confidence],
                not s.reference_match,
                s.amount_difference,
                s.days_apart,
                s.candidate.id,
            )
        )
        return scored if limit is None else scored[:limit]

    def auto_match(self) -> None:
        """Run the confidence tier passes over every unmatched transaction.

        Transactions already matched, rejected, or found ambiguous at a
        stronger tier are left alone.
        """
        decided = {
            txn_id
            for txn_id, match in self._matches.items()
            if match.status != MatchStatus.UNMATCHED or match.alternatives
        }
        for tier in AUTO_TIERS:
            for txn_id, transaction in self._transactions.items():
                if txn_id in decided:
                    continue
                tied = [
                    s
                    for s in (self.score(transaction, c) for c in self._available(txn_id))
                    if s is not None and s.confidence == tier
                ]
                if not tied:
                    continue
                decided.add(txn_id)
                chosen = self._break_tie(tied)
                if chosen is None:
                    self._matches[txn_id] = ReconciliationMatch(
                        bank_transaction=transaction,
                        alternatives=tuple(sorted(tied, key=lambda s: s.candidate.id)),
                        reason=f"{len(tied)} {tier.value} confidence candidates",
                    )
                    self.logger.info(
                        "Bank transaction %s is ambiguous between %s",
                        txn_id,
                        ", ".join(s.candidate.id for s in tied),
                    )
                    continue
                self._set_matched(
                    transaction,
                    chosen.candidate,
                    tier,
                    reason=_describe(chosen, len(tied)),
                )

        matched = sum(1 for m in self._matches.values() if m.status == MatchStatus.MATCHED)
        ambiguous = sum(1 for m in self._matches.values() if m.is_ambiguous)
        self.logger.info(
            "Reconciled account %s: %d of %d bank transactions matched, %d ambiguous",
            self.bank_account_id,
            matched,
            len(self._matches),
            ambiguous,
        )

    @staticmethod
    def _break_tie(tied: Sequence[MatchCandidate]) -> Optional[MatchCandidate]:
        if len(tied) == 1:
            return tied[0]
        by_reference = [s for s in tied if s.reference_match]
        if len(by_reference) == 1:
            return by_reference[0]
        return None

    def _release(self, bank_transaction_id: str) -> None:
        match = self._matches[bank_transaction_id]
        if match.candidate is not None:
            self._consumed.pop(match.candidate.id, None)

    def _set_matched(
        self,
        transaction: BankTransaction,
        candidate: LedgerCandidate,
        confidence: MatchConfidence,
        reason: str,
    ) -> ReconciliationMatch:
        self._release(transaction.id)
        self._consumed[candidate.id] = transaction.id
        match = ReconciliationMatch(
            bank_transaction=transaction,
            status=MatchStatus.MATCHED,
            candidate=candidate,
            confidence=confidence,
            reason=reason,
        )
        self._matches[transaction.id] = match
        self.logger.debug(
            "Matched bank transaction %s to %s (%s)",
            transaction.id,
            candidate.id,
            confidence.value,
        )
        return match

    def match_transaction(
        self, bank_transaction_id: str, candidate_id: str
    ) -> ReconciliationMatch:
        """Match a bank transaction to a chosen candidate.

        A previous match of the transaction is replaced and its candidate
        returned to the pool. The confidence is the tier the pair scores in,
        or manual when it falls outside every tier.

        Raises:
            NotFoundError: If the transaction or candidate is unknown
            ConflictError: If the candidate is matched to another transaction
        """
        transaction = self.get_match(bank_transaction_id).bank_transaction
        candidate = self._candidates.get(candidate_id)
        if candidate is None:
            raise NotFoundError(candidate_not_found(candidate_id))
        owner = self._consumed.get(candidate_id)
        if owner is not None and owner != bank_transaction_id:
            raise ConflictError(candidate_already_matched(candidate_id, owner))

        self._rejected_pairs.discard((bank_transaction_id, candidate_id))
        scored = self.score(transaction, candidate)
        confidence = scored.confidence if scored else MatchConfidence.MANUAL
        return self._set_matched(transaction, candidate, confidence, reason="manual match")

    def reject_match(self, bank_transaction_id: str) -> ReconciliationMatch:
        """Reject the current match or proposal of a bank transaction.

        The matched candidate returns to the pool and is never proposed for
        this transaction again; the transaction is excluded from automatic
        matching until ``unmatch`` is called.

        Raises:
            NotFoundError: If the transaction is unknown
        """
        match = self.get_match(bank_transaction_id)
        if match.status == MatchStatus.REJECTED:
            return match
        if match.candidate is not None:
            self._rejected_pairs.add((bank_transaction_id, match.candidate.id))
        self._release(bank_transaction_id)
        rejected = replace(
            match,
            status=MatchStatus.REJECTED,
            candidate=None,
            confidence=None,
            reason="rejected",
        )
        self._matches[bank_transaction_id] = rejected
        self.logger.info("Rejected match for bank transaction %s", bank_transaction_id)
        return rejected

    def unmatch(self, bank_transaction_id: str) -> ReconciliationMatch:
        """Return a bank transaction to the unmatched state.

        Raises:
            NotFoundError: If the transaction is unknown
        """
        match = self.get_match(bank_transaction_id)
        self._release(bank_transaction_id)
        cleared = ReconciliationMatch(bank_transaction=match.bank_transaction)
        self._matches[bank_transaction_id] = cleared
        return cleared

    def report(self) -> ReconciliationReport:
        """Build the reconciliation report for the current state."""
        matches = self.matches
        matched = [m for m in matches if m.status == MatchStatus.MATCHED]
        matched_amount = money_sum(m.bank_transaction.signed_amount for m in matched)
        opening = quantize(self.statements[0].opening_balance)
        closing = quantize(self.statements[-1].closing_balance)
        discrepancy = quantize(closing - (opening + matched_amount))

        report = ReconciliationReport(
            bank_account_id=self.bank_account_id,
            statements=tuple(self.statement_summaries()),
            matches=matches,
            matched_count=len(matched),
            matched_amount=matched_amount,
            unmatched_transactions=tuple(
                m.bank_transaction for m in matches if m.status == MatchStatus.UNMATCHED
            ),
            rejected_transactions=tuple(
                m.bank_transaction for m in matches if m.status == MatchStatus.REJECTED
            ),
            ambiguous_matches=tuple(m for m in matches if m.is_ambiguous),
            unmatched_candidates=tuple(
                c for c in self._candidates.values() if c.id not in self._consumed
            ),
            opening_balance=opening,
            closing_balance=closing,
            discrepancy=discrepancy,
        )
        if not amounts_equal(discrepancy, ZERO):
            self.logger.warning(
                "Bank account %s has a discrepancy of %s", self.bank_account_id, discrepancy
            )
        return report


def _describe(scored: MatchCandidate, tied: int) -> str:
    parts = [f"{scored.confidence.value} confidence"]
    if scored.amount_difference != ZERO:
        parts.append(f"amount off by {scored.amount_difference}")
    if scored.days_apart:
        parts.append(f"{scored.days_apart} day(s) apart")
    if tied > 1:
        parts.append("reference breaks tie")
    return ", ".join(parts)


@dataclass
class BankReconciliationService:
    """Entry point for reconciling bank statements against the books."""

    settings: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    logger: Optional[logging.Logger] = None

    def start(
        self,
        bank_account_id: str,
        statements: Iterable[BankStatement],
        candidates: Iterable[LedgerCandidate],
    ) -> ReconciliationRun:
        """Create a run and apply automatic matching.

        Returns:
            ReconciliationRun ready for manual adjustments
        """
        run = ReconciliationRun(
            bank_account_id,
            statements,
            candidates,
            settings=self.settings,
            logger=self.logger,
        )
        run.auto_match()
        return run

    def reconcile(
        self,
        bank_account_id: str,
        statements: Iterable[BankStatement],
        candidates: Iterable[LedgerCandidate],
    ) -> ReconciliationReport:
        """Automatically reconcile and return the report."""
        return self.start(bank_account_id, statements, candidates).report()
