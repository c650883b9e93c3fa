from __future__ import annotations

import pytest

from services.review.ledger import ReviewItem, ReviewLedger, ReviewStatus


def items(n=4):
    return [ReviewItem(id=f"e{i}", category="Credentialing", definition="d", confidence=90) for i in range(1, n + 1)]


def test_new_ledger_is_all_pending():
    ledger = ReviewLedger(items())
    assert len(ledger) == 4
    assert ledger.counts() == {"pending": 4, "approved": 0, "rejected": 0}
    assert ledger.all_reviewed() is False
    assert ledger.pending_ids() == ["e1", "e2", "e3", "e4"]


def test_approve_and_reject_update_status():
    ledger = ReviewLedger(items())
    assert ledger.approve("e1") is True
    assert ledger.reject("e2") is True
    assert ledger.get("e1").status is ReviewStatus.APPROVED
    assert ledger.get("e2").status is ReviewStatus.REJECTED
    assert ledger.approved_count == 1


def test_status_can_flip_and_reset():
    ledger = ReviewLedger(items(1))
    ledger.approve("e1")
    ledger.reject("e1")
    assert ledger.get("e1").status is ReviewStatus.REJECTED
    ledger.reset_status("e1")
    assert ledger.get("e1").status is ReviewStatus.PENDING


def test_first_comment_wins():
    ledger = ReviewLedger(items(1))
    ledger.approve("e1", "looks right")
    ledger.reject("e1", "second thoughts")
    assert ledger.get("e1").comment == "looks right"


def test_empty_comment_is_not_stored():
    ledger = ReviewLedger(items(1))
    ledger.approve("e1", "")
    ledger.reject("e1", "missing signature")
    assert ledger.get("e1").comment == "missing signature"


def test_unknown_id_is_a_silent_noop():
    ledger = ReviewLedger(items(2))
    before = ledger.snapshot()
    assert ledger.set_status("nope", "approved") is False
    assert ledger.snapshot() == before


def test_status_strings_are_accepted_and_checked():
    ledger = ReviewLedger(items(1))
    assert ledger.set_status("e1", "rejected") is True
    with pytest.raises(ValueError):
        ledger.set_status("e1", "maybe")


def test_all_reviewed_once_nothing_pending():
    ledger = ReviewLedger(items(2))
    ledger.approve("e1")
    assert ledger.all_reviewed() is False
    ledger.reject("e2")
    assert ledger.all_reviewed() is True


def test_ledger_copies_input_items():
    src = items(1)
    ledger = ReviewLedger(src)
    ledger.approve("e1", "ok")
    assert src[0].status is ReviewStatus.PENDING
    assert src[0].comment is None


def test_snapshot_is_detached():
    ledger = ReviewLedger(items(1))
    snap = ledger.snapshot()
    ledger.approve("e1")
    assert snap[0].status is ReviewStatus.PENDING


def test_duplicate_ids_and_bad_confidence_rejected():
    with pytest.raises(ValueError):
        ReviewLedger(items(1) + items(1))
    with pytest.raises(ValueError):
        ReviewLedger([ReviewItem(id="x", category="c", definition="d", confidence=101)])


def test_percent_approved():
    ledger = ReviewLedger(items(4))
    for i in ("e1", "e2", "e3"):
        ledger.approve(i)
    ledger.reject("e4")
    assert ledger.percent_approved == 75


def test_reset_keeps_existing_comment():
    ledger = ReviewLedger(items(1))
    ledger.reject("e1", "A")
    assert ledger.reset_status("e1") is True
    item = ledger.get("e1")
    assert item.status is ReviewStatus.PENDING
    assert item.comment == "A"


def test_auto_approve_only_touches_pending_items_at_threshold():
    ledger = ReviewLedger(
        [
            ReviewItem(id="hi", category="c", definition="d", confidence=95),
            ReviewItem(id="edge", category="c", definition="d", confidence=85),
            ReviewItem(id="low", category="c", definition="d", confidence=84.9),
            ReviewItem(id="done", category="c", definition="d", confidence=99, status=ReviewStatus.REJECTED),
        ]
    )
    assert ledger.auto_approve(85) == ["hi", "edge"]
    assert ledger.get("low").status is ReviewStatus.PENDING
    assert ledger.get("done").status is ReviewStatus.REJECTED
    assert ledger.get("hi").comment is None
    assert ledger.below_threshold(85) == ["low"]
    assert ledger.auto_approve(85) == []
