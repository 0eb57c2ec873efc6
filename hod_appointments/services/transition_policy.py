"""Which status changes the department head may make.

The review workflow historically accepted any status from any status. That
behavior is kept as the ``permissive`` table; ``strict`` is the forward-only
workflow (pending -> approved/rejected/cancelled, approved -> completed/cancelled).
Setting the current status again is allowed by both so the call stays idempotent.
"""

from dataclasses import dataclass

from hod_appointments.core.config import settings
from hod_appointments.models.appointment import AppointmentStatus

S = AppointmentStatus


@dataclass(frozen=True)
class StatusTransitionPolicy:
    name: str
    allowed: dict[AppointmentStatus, frozenset[AppointmentStatus]]

    def can_transition(self, current: AppointmentStatus, target: AppointmentStatus) -> bool:
        if current == target:
            return True
        return target in self.allowed.get(current, frozenset())


PERMISSIVE = StatusTransitionPolicy(
    name="permissive",
    allowed={status: frozenset(AppointmentStatus) for status in AppointmentStatus},
)

STRICT = StatusTransitionPolicy(
    name="strict",
    allowed={
        S.PENDING: frozenset({S.APPROVED, S.REJECTED, S.CANCELLED}),
        S.APPROVED: frozenset({S.COMPLETED, S.CANCELLED}),
        S.REJECTED: frozenset(),
        S.COMPLETED: frozenset(),
        S.CANCELLED: frozenset(),
    },
)

POLICIES = {policy.name: policy for policy in (PERMISSIVE, STRICT)}


def get_transition_policy(name: str | None = None) -> StatusTransitionPolicy:
    key = name or settings.status_transition_policy
    try:
        return POLICIES[key]
    except KeyError:
        raise ValueError(f"Unknown status transition policy: {key}") from None
