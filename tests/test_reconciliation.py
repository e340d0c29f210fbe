"""Tests for bank reconciliation."""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.config import ReconciliationSettings
from ledgerkit.domain.entities import (
    BankStatement,
    BankTransaction,
    EntryStatus,
    Invoice,
)
from ledgerkit.domain.errors import ConflictError, NotFoundError, ValidationError
from ledgerkit.domain.journal import reverse_entry
from ledgerkit.domain.reconciliation import (
    BankReconciliationService,
    CandidateKind,
    LedgerCandidate,
    MatchConfidence,
    MatchStatus,
    ReconciliationRun,
    StatementSummary,
    candidates_from_invoices,
    candidates_from_journal_entries,
    reference_matches,
)


def candidate(candidate_id, day, amount, reference=None, description=""):
    """Journal entry candidate dated in February 2026."""
    return LedgerCandidate(
        id=candidate_id,
        kind=CandidateKind.JOURNAL_ENTRY,
        source_id=candidate_id,
        date=date(2026, 2, day),
        amount=Decimal(str(amount)),
        description=description,
        reference=reference,
    )


def statement(*lines, opening=0, closing=None, statement_id="st"):
    """Statement of account 1002 from (id, day, signed amount[, description]) tuples."""
    transactions = [
        BankTransaction(
            id=line[0],
            statement_id=statement_id,
            date=date(2026, 2, line[1]),
            description=line[3] if len(line) > 3 else "",
            amount=abs(Decimal(str(line[2]))),
            type="debit" if Decimal(str(line[2])) < 0 else "credit",
        )
        for line in lines
    ]
    opening = Decimal(str(opening))
    if closing is None:
        closing = opening + sum(t.signed_amount for t in transactions)
    return BankStatement(
        id=statement_id,
        bank_account_id="1002",
        statement_number=statement_id.upper(),
        statement_date=date(2026, 2, 28),
        opening_balance=opening,
        closing_balance=closing,
        transactions=transactions,
    )


def run_for(statements, candidates, **settings):
    run = ReconciliationRun(
        "1002",
        statements,
        candidates,
        settings=ReconciliationSettings(**settings) if settings else None,
    )
    run.auto_match()
    return run


class TestAutoMatch:
    """Tests for automatic matching tiers."""

    def test_single_exact_candidate_is_high(self, bank_statement):
        """Test a 1000 receipt against one 1000 ledger movement on the same day."""
        service = BankReconciliationService()
        report = service.reconcile("1002", [bank_statement], [candidate("c1", 10, 1000)])

        match = report.matches[0]
        assert match.status == MatchStatus.MATCHED
        assert match.candidate.id == "c1"
        assert match.confidence == MatchConfidence.HIGH
        assert report.matched_count == 1
        assert report.matched_amount == Decimal("1000.00")
        assert report.discrepancy == Decimal("0.00")
        assert report.is_reconciled

    def test_two_exact_candidates_are_ambiguous(self, bank_statement):
        report = BankReconciliationService().reconcile(
            "1002", [bank_statement], [candidate("c1", 10, 1000), candidate("c2", 10, 1000)]
        )

        match = report.matches[0]
        assert match.status == MatchStatus.UNMATCHED
        assert match.is_ambiguous
        assert [s.candidate.id for s in match.alternatives] == ["c1", "c2"]
        assert report.ambiguous_matches == (match,)
        assert report.matched_count == 0
        assert report.discrepancy == Decimal("1000.00")
        assert not report.is_reconciled

    def test_reference_breaks_tie(self):
        st = statement(("b1", 10, 1000, "Payment INV-9"))
        run = run_for([st], [candidate("c1", 10, 1000), candidate("c2", 10, 1000, "INV-9")])
        match = run.get_match("b1")
        assert match.candidate.id == "c2"
        assert "reference breaks tie" in match.reason

    def test_partial_reference_does_not_break_tie(self):
        """Test that a short bank reference inside invoice numbers stays ambiguous."""
        st = statement(("b1", 10, 1000))
        st = replace(
            st, transactions=[replace(st.transactions[0], reference="10")]
        )
        invoices = [
            Invoice("a", "INV-100", "Acme", Decimal("1000"), date(2026, 2, 1), date(2026, 2, 10)),
            Invoice("b", "INV-200", "Beta", Decimal("1000"), date(2026, 2, 1), date(2026, 2, 10)),
        ]
        run = run_for([st], candidates_from_invoices(invoices))

        match = run.get_match("b1")
        assert match.status == MatchStatus.UNMATCHED
        assert [s.candidate.id for s in match.alternatives] == ["inv:a", "inv:b"]
        assert not any(s.reference_match for s in match.alternatives)

    def test_date_within_window_is_medium(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 13, 1000)])
        assert run.get_match("b1").confidence == MatchConfidence.MEDIUM

    def test_date_outside_window_does_not_match(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 14, 1000)])
        assert run.get_match("b1").status == MatchStatus.UNMATCHED
        assert run.get_match("b1").alternatives == ()

    def test_amount_within_tolerance_is_low(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 11, "999.70")])
        match = run.get_match("b1")
        assert match.confidence == MatchConfidence.LOW
        assert "amount off by 0.30" in match.reason

    def test_amount_outside_tolerance_does_not_match(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 10, "999.40")])
        assert run.get_match("b1").status == MatchStatus.UNMATCHED

    def test_custom_thresholds(self):
        run = run_for(
            [statement(("b1", 10, 1000))],
            [candidate("c1", 10, "999.40")],
            date_window_days=0,
            amount_tolerance=Decimal("1"),
        )
        assert run.get_match("b1").confidence == MatchConfidence.LOW

    def test_sign_must_match(self):
        run = run_for([statement(("b1", 10, -1000))], [candidate("c1", 10, 1000)])
        assert run.get_match("b1").status == MatchStatus.UNMATCHED

    def test_stronger_tier_wins_across_transactions(self):
        """Test that a later exact-date match is not pre-empted by an earlier near-date one."""
        st = statement(("b1", 10, 1000), ("b2", 11, 1000))
        run = run_for([st], [candidate("c1", 11, 1000)])
        assert run.get_match("b2").candidate.id == "c1"
        assert run.get_match("b2").confidence == MatchConfidence.HIGH
        assert run.get_match("b1").status == MatchStatus.UNMATCHED

    def test_candidate_used_once(self):
        st = statement(("b1", 10, 1000), ("b2", 10, 500))
        run = run_for([st], [candidate("c1", 10, 1000), candidate("c2", 10, 500)])
        assert run.get_match("b1").candidate.id == "c1"
        assert run.get_match("b2").candidate.id == "c2"
        assert run.report().unmatched_candidates == ()

    def test_runs_do_not_share_the_pool(self):
        pool = [candidate("c1", 10, 1000)]
        first = run_for([statement(("b1", 10, 1000))], pool)
        second = run_for([statement(("b1", 10, 1000))], pool)
        assert first.get_match("b1").candidate.id == "c1"
        assert second.get_match("b1").candidate.id == "c1"


class TestManualOperations:
    """Tests for manual matching, rejection and unmatching."""

    def test_manual_match_outside_tiers(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 25, 1200)])
        match = run.match_transaction("b1", "c1")
        assert match.status == MatchStatus.MATCHED
        assert match.confidence == MatchConfidence.MANUAL

    def test_manual_match_inside_tier_keeps_tier(self):
        run = run_for(
            [statement(("b1", 10, 1000))],
            [candidate("c1", 10, 1000), candidate("c2", 10, 1000)],
        )
        assert run.match_transaction("b1", "c2").confidence == MatchConfidence.HIGH
        assert not run.get_match("b1").is_ambiguous

    def test_manual_match_replaces_previous_candidate(self):
        run = run_for(
            [statement(("b1", 10, 1000))],
            [candidate("c1", 10, 1000), candidate("c2", 20, 1000)],
        )
        run.match_transaction("b1", "c2")
        assert [c.id for c in run.report().unmatched_candidates] == ["c1"]

    def test_candidate_matched_elsewhere_conflicts(self):
        st = statement(("b1", 10, 1000), ("b2", 12, 700))
        run = run_for([st], [candidate("c1", 10, 1000)])
        with pytest.raises(ConflictError, match="already matched"):
            run.match_transaction("b2", "c1")

    def test_unknown_ids(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 10, 1000)])
        with pytest.raises(NotFoundError):
            run.match_transaction("missing", "c1")
        with pytest.raises(NotFoundError):
            run.match_transaction("b1", "missing")
        with pytest.raises(NotFoundError):
            run.reject_match("missing")

    def test_reject_returns_candidate_and_blocks_pair(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 10, 1000)])
        rejected = run.reject_match("b1")

        assert rejected.status == MatchStatus.REJECTED
        assert rejected.candidate is None
        report = run.report()
        assert report.rejected_transactions[0].id == "b1"
        assert [c.id for c in report.unmatched_candidates] == ["c1"]
        assert run.recommendations("b1") == []
        assert not report.is_reconciled

    def test_rejected_transaction_skipped_by_auto_match(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 10, 1000)])
        run.reject_match("b1")
        run.auto_match()
        assert run.get_match("b1").status == MatchStatus.REJECTED

    def test_unmatch_after_reject_keeps_pair_blocked(self):
        run = run_for(
            [statement(("b1", 10, 1000))],
            [candidate("c1", 10, 1000), candidate("c2", 12, 1000)],
        )
        run.reject_match("b1")
        cleared = run.unmatch("b1")
        assert cleared.status == MatchStatus.UNMATCHED
        run.auto_match()
        assert run.get_match("b1").candidate.id == "c2"

    def test_manual_match_lifts_rejection(self):
        run = run_for([statement(("b1", 10, 1000))], [candidate("c1", 10, 1000)])
        run.reject_match("b1")
        assert run.match_transaction("b1", "c1").candidate.id == "c1"

    def test_recommendations_best_first(self):
        run = ReconciliationRun(
            "1002",
            [statement(("b1", 10, 1000, "Acme REF-1"))],
            [
                candidate("low", 10, "999.90"),
                candidate("medium", 11, 1000),
                candidate("medium-ref", 12, 1000, "REF-1"),
                candidate("high", 10, 1000),
                candidate("far", 20, 1000),
            ],
        )
        ids = [s.candidate.id for s in run.recommendations("b1")]
        assert ids == ["high", "medium-ref", "medium", "low"]
        assert len(run.recommendations("b1", limit=2)) == 2


class TestReport:
    """Tests for report figures and statement checks."""

    def test_discrepancy_counts_matched_only(self):
        st = statement(("b1", 10, 1000), ("b2", 15, -300), opening=500)
        report = run_for([st], [candidate("c1", 10, 1000)]).report()
        assert report.opening_balance == Decimal("500.00")
        assert report.closing_balance == Decimal("1200.00")
        assert report.matched_amount == Decimal("1000.00")
        assert report.discrepancy == Decimal("-300.00")
        assert [t.id for t in report.unmatched_transactions] == ["b2"]

    def test_multiple_statements_chain(self):
        first = statement(("b1", 3, 1000), opening=0, statement_id="st1")
        second = BankStatement(
            id="st2",
            bank_account_id="1002",
            statement_number="ST2",
            statement_date=date(2026, 3, 31),
            opening_balance=Decimal("1000"),
            closing_balance=Decimal("800"),
            transactions=(
                BankTransaction(
                    id="b2",
                    statement_id="st2",
                    date=date(2026, 3, 5),
                    description="Fee",
                    amount=Decimal("200"),
                    type="debit",
                ),
            ),
        )
        fee = LedgerCandidate(
            id="fee", kind=CandidateKind.JOURNAL_ENTRY, source_id="fee",
            date=date(2026, 3, 5), amount=Decimal("-200"),
        )
        report = run_for([second, first], [candidate("c1", 3, 1000), fee]).report()
        assert [s.statement_id for s in report.statements] == ["st1", "st2"]
        assert report.closing_balance == Decimal("800.00")
        assert report.discrepancy == Decimal("0.00")
        assert report.is_reconciled

    def test_statement_roll_forward_warning(self, caplog):
        st = statement(("b1", 10, 1000), closing=Decimal("999"))
        with caplog.at_level(logging.WARNING, logger="ledgerkit.domain.reconciliation"):
            ReconciliationRun("1002", [st], [])
        assert "does not roll forward" in caplog.text

    def test_statement_summary(self):
        summary = StatementSummary.from_statement(
            statement(("b1", 10, 1000), ("b2", 11, -250), opening=100, closing=Decimal("900"))
        )
        assert summary.total_credits == Decimal("1000.00")
        assert summary.total_debits == Decimal("250.00")
        assert summary.computed_closing_balance == Decimal("850.00")
        assert summary.difference == Decimal("50.00")
        assert not summary.is_balanced

    def test_statements_of_other_accounts_ignored(self, bank_statement):
        with pytest.raises(ValidationError, match="No bank statements"):
            ReconciliationRun("1003", [bank_statement], [])

    def test_duplicate_candidate_ids(self, bank_statement):
        with pytest.raises(ValidationError, match="Duplicate"):
            ReconciliationRun(
                "1002", [bank_statement], [candidate("c1", 10, 1), candidate("c1", 11, 2)]
            )


class TestCandidates:
    """Tests for building candidates from books."""

    def test_from_journal_entries(self, feb_entries):
        candidates = candidates_from_journal_entries(feb_entries, ["1002"])
        amounts = {c.source_id: c.amount for c in candidates}
        assert amounts == {
            "je-t1": Decimal("15000.00"),
            "je-t2": Decimal("8000.00"),
            "je-t3": Decimal("-5000.00"),
            "je-t4": Decimal("-2000.00"),
            "je-t5": Decimal("-1200.00"),
        }
        by_id = {c.id: c for c in candidates}
        assert by_id["je:je-t2"].reference == "INV-2026-001"
        assert by_id["je:je-t1"].reference == feb_entries[0].entry_number

    def test_other_cash_account_ignored(self, feb_entries):
        assert candidates_from_journal_entries(feb_entries, ["1001"]) == []

    def test_drafts_and_reversals_excluded(self, feb_entries):
        draft = replace(feb_entries[1], id="draft", status=EntryStatus.DRAFT)
        original, offset = reverse_entry(feb_entries[0], "JE-0099")
        assert candidates_from_journal_entries([original, offset, draft], ["1002"]) == []

    def test_from_invoices(self):
        invoices = [
            Invoice("i1", "INV-1", "Acme", Decimal("800"), date(2026, 2, 1), date(2026, 2, 15)),
            Invoice(
                "i2", "INV-2", "Beta", Decimal("300"), date(2026, 2, 1), date(2026, 2, 15),
                status="paid", paid_date=date(2026, 2, 9),
            ),
            Invoice("i3", "INV-3", "Gamma", Decimal("100"), date(2026, 2, 1), date(2026, 2, 15), status="draft"),
            Invoice("i4", "INV-4", "Delta", Decimal("100"), date(2026, 2, 1), date(2026, 2, 15), status="Cancelled"),
        ]
        candidates = candidates_from_invoices(invoices)
        assert [(c.id, c.date) for c in candidates] == [
            ("inv:i1", date(2026, 2, 15)),
            ("inv:i2", date(2026, 2, 9)),
        ]
        assert candidates[0].reference == "INV-1"
        assert candidates[0].kind == CandidateKind.INVOICE

    def test_reference_matches(self):
        txn = BankTransaction(
            id="b1", statement_id="st", date=date(2026, 2, 1),
            description="ACME  inv-1 payment", amount=Decimal("1"), type="credit",
        )
        assert reference_matches(txn, candidate("c", 1, 1, "INV-1"))
        assert not reference_matches(txn, candidate("c", 1, 1, "INV-2"))
        assert not reference_matches(txn, candidate("c", 1, 1))

    def test_reference_matches_whole_tokens_only(self):
        txn = BankTransaction(
            id="b1", statement_id="st", date=date(2026, 2, 1),
            description="Transfer INV-100 Acme", amount=Decimal("1"), type="credit",
            reference="10",
        )
        assert reference_matches(txn, candidate("c", 1, 1, "INV-100"))
        assert not reference_matches(txn, candidate("c", 1, 1, "INV-10"))
        assert not reference_matches(txn, candidate("c", 1, 1, "INV-1000"))
        assert not reference_matches(txn, candidate("c", 1, 1, "X", description="Invoice 10"))
        assert reference_matches(txn, candidate("c", 1, 1, "10"))
