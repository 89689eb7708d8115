"""
Document status state machine.

``TRANSITIONS`` maps ``(current status, actor role, action)`` to the next
status. Anything not in the map is an invalid transition. The table is checked
once at import so a bad edit fails loudly at startup instead of at request
time.
"""

from typing import Dict, Optional, Tuple

from app.schemas.notarization_schema import DocumentStatusEnum as S, ActionEnum as A
from app.schemas.user_schemas import RoleEnum as R

TransitionKey = Tuple[str, str, str]

TERMINAL_STATES = frozenset({S.accepted.value, S.rejected.value})

# Intermediate states that the staleness sweep watches
INTERMEDIATE_STATES = (
    S.pending.value,
    S.processing.value,
    S.ready_to_sign.value,
    S.pending_signature.value,
)

TRANSITIONS: Dict[TransitionKey, str] = {
    (S.pending.value, R.secretary.value, A.accept.value): S.processing.value,
    (S.processing.value, R.notary.value, A.accept.value): S.ready_to_sign.value,
    (S.ready_to_sign.value, R.user.value, A.accept.value): S.pending_signature.value,
    (S.pending_signature.value, R.notary.value, A.accept.value): S.accepted.value,
    (S.pending_signature.value, R.system.value, A.accept.value): S.accepted.value,
    (S.pending.value, R.secretary.value, A.reject.value): S.rejected.value,
    (S.processing.value, R.secretary.value, A.reject.value): S.rejected.value,
    (S.processing.value, R.notary.value, A.reject.value): S.rejected.value,
    (S.ready_to_sign.value, R.notary.value, A.reject.value): S.rejected.value,
    (S.pending_signature.value, R.notary.value, A.reject.value): S.rejected.value,
}

# Accepting out of these states additionally requires both signatures
CO_SIGNATURE_REQUIRED = frozenset({S.pending_signature.value})

# Statuses each staff role works on; admins see everything
ROLE_VISIBLE_STATUSES: Dict[str, Tuple[str, ...]] = {
    R.secretary.value: (S.pending.value, S.processing.value),
    R.notary.value: (S.processing.value, S.ready_to_sign.value, S.pending_signature.value),
    R.admin.value: tuple(s.value for s in S),
}


def next_status(current: str, role: str, action: str) -> Optional[str]:
    return TRANSITIONS.get((current, role, action))


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def validate_table():
    known = {s.value for s in S}
    roles = {r.value for r in R}
    actions = {a.value for a in A}

    for (current, role, action), target in TRANSITIONS.items():
        if current not in known or target not in known:
            raise RuntimeError(f"Transition {current} -> {target} references an unknown status")
        if role not in roles or action not in actions:
            raise RuntimeError(f"Transition from {current} uses unknown role/action {role}/{action}")
        if current in TERMINAL_STATES:
            raise RuntimeError(f"Terminal status {current} must not have outbound transitions")

    sources = {current for current, _, _ in TRANSITIONS}
    for status in known - TERMINAL_STATES:
        if status not in sources:
            raise RuntimeError(f"Non-terminal status {status} has no outbound transition")


validate_table()
