"""Tests for the approval stream fold."""

from types import SimpleNamespace

import pytest

from erp_backoffice.approvals import workflow
from erp_backoffice.approvals.workflow import StreamState, derive_state
from erp_backoffice.common.exceptions import DataIntegrityError, StaleApprovalStateError


def ev(seq, action, level, approval_id=1):
    return SimpleNamespace(seq=seq, action=action, level=level, approval_id=approval_id)


class TestDeriveState:
    def test_empty_stream_is_draft(self):
        state = derive_state([], max_level=2)
        assert state == StreamState()
        assert state.status == workflow.DRAFT
        assert state.next_seq == 1

    def test_full_approval(self):
        events = [ev(1, "submit", 1), ev(2, "approve", 1), ev(3, "approve", 2)]
        state = derive_state(events, max_level=2)
        assert state.status == workflow.APPROVED
        assert state.last_seq == 3
        assert state.approval_id == 1

    def test_partial_approval_advances_level(self):
        state = derive_state([ev(1, "submit", 1), ev(2, "approve", 1)], max_level=3)
        assert state.status == workflow.PENDING
        assert state.current_level == 2

    def test_reject_then_revise_then_resubmit(self):
        events = [
            ev(1, "submit", 1),
            ev(2, "approve", 1),
            ev(3, "reject", 2),
            ev(4, "revise", 2),
            ev(5, "submit", 1),
        ]
        state = derive_state(events, max_level=2)
        assert state.status == workflow.PENDING
        assert state.current_level == 1
        assert state.next_seq == 6

    def test_revise_resets_to_level_one(self):
        events = [ev(1, "submit", 1), ev(2, "approve", 1), ev(3, "reject", 2), ev(4, "revise", 2)]
        state = derive_state(events, max_level=3)
        assert state.status == workflow.REVISING
        assert state.current_level == 1

    def test_replay_sorts_by_seq(self):
        events = [ev(2, "approve", 1), ev(1, "submit", 1)]
        assert derive_state(events, max_level=1).status == workflow.APPROVED

    def test_illegal_stored_sequence(self):
        with pytest.raises(DataIntegrityError):
            derive_state([ev(1, "approve", 1)], max_level=1)

    def test_level_mismatch_in_store(self):
        with pytest.raises(DataIntegrityError):
            derive_state([ev(1, "submit", 1), ev(2, "approve", 2)], max_level=2)

    def test_nothing_after_approved(self):
        events = [ev(1, "submit", 1), ev(2, "approve", 1), ev(3, "approve", 1)]
        with pytest.raises(DataIntegrityError):
            derive_state(events, max_level=1)


class TestCheckTransition:
    @pytest.mark.parametrize(
        "status,action",
        [
            ("draft", "approve"),
            ("draft", "reject"),
            ("draft", "revise"),
            ("pending", "submit"),
            ("pending", "revise"),
            ("approved", "approve"),
            ("approved", "submit"),
            ("rejected", "approve"),
            ("revising", "approve"),
        ],
    )
    def test_illegal(self, status, action):
        with pytest.raises(StaleApprovalStateError):
            workflow.check_transition(StreamState(status=status), action)

    @pytest.mark.parametrize(
        "status,action",
        [
            ("draft", "submit"),
            ("revising", "submit"),
            ("pending", "approve"),
            ("pending", "reject"),
            ("rejected", "revise"),
        ],
    )
    def test_legal(self, status, action):
        workflow.check_transition(StreamState(status=status), action)

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            workflow.check_transition(StreamState(), "escalate")
