"""Approval stream state machine.

The history stream is the only stored state; everything here is a pure fold
over its events.

    action   precondition            post-state
    submit   draft or revising       pending, level 1
    approve  pending                 pending at level + 1, or approved at the last level
    reject   pending                 rejected
    revise   rejected                revising, level 1
"""

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Protocol

from erp_backoffice.common.exceptions import DataIntegrityError, StaleApprovalStateError

SUBMIT = "submit"
APPROVE = "approve"
REJECT = "reject"
REVISE = "revise"
ACTIONS = (SUBMIT, APPROVE, REJECT, REVISE)

DRAFT = "draft"
PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
REVISING = "revising"

_ALLOWED_FROM = {
    SUBMIT: (DRAFT, REVISING),
    APPROVE: (PENDING,),
    REJECT: (PENDING,),
    REVISE: (REJECTED,),
}

# Actions taken by the record owner; the rest by the current level's approvers.
OWNER_ACTIONS = (SUBMIT, REVISE)


class StreamEvent(Protocol):
    seq: int
    action: str
    level: int
    approval_id: int


@dataclass(frozen=True)
class StreamState:
    status: str = DRAFT
    current_level: int = 1
    last_seq: int = 0
    approval_id: Optional[int] = None

    @property
    def next_seq(self) -> int:
        return self.last_seq + 1


def check_transition(state: StreamState, action: str) -> None:
    """Raise StaleApprovalStateError unless ``action`` is legal from ``state``."""
    allowed = _ALLOWED_FROM.get(action)
    if allowed is None:
        raise ValueError(f"Unknown approval action {action!r}")
    if state.status not in allowed:
        raise StaleApprovalStateError(
            f"Cannot {action} while the approval is {state.status}"
        )


def transition(state: StreamState, action: str, max_level: int) -> StreamState:
    """State after appending ``action``; the caller has already validated it."""
    if action == SUBMIT:
        return replace(state, status=PENDING, current_level=1)
    if action == APPROVE:
        if state.current_level < max_level:
            return replace(state, current_level=state.current_level + 1)
        return replace(state, status=APPROVED)
    if action == REJECT:
        return replace(state, status=REJECTED)
    if action == REVISE:
        return replace(state, status=REVISING, current_level=1)
    raise ValueError(f"Unknown approval action {action!r}")


def derive_state(events: Iterable[StreamEvent], max_level: int) -> StreamState:
    """Replay a stream from empty.

    Events are applied in ``seq`` order. A stored event that was not legal
    at its position means the stream was written outside the engine.
    """
    state = StreamState()
    for event in sorted(events, key=lambda e: e.seq):
        try:
            check_transition(state, event.action)
        except StaleApprovalStateError as exc:
            raise DataIntegrityError(
                f"Approval event {event.seq} ({event.action}) is out of order"
            ) from exc
        if event.level != state.current_level:
            raise DataIntegrityError(
                f"Approval event {event.seq} recorded level {event.level}, "
                f"expected {state.current_level}"
            )
        state = transition(state, event.action, max_level)
        state = replace(state, last_seq=event.seq, approval_id=event.approval_id)
    return state
