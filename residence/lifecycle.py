"""
Service request status lifecycle.
Defines the allowed transitions and how statuses are bucketed in reports.
"""

from typing import Dict, FrozenSet, Union

from residence.exceptions import InvalidTransitionError
from residence.models import ReportStatus, RequestStatus

TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.IN_PROGRESS, RequestStatus.DENIED}),
    RequestStatus.IN_PROGRESS: frozenset({RequestStatus.COMPLETED, RequestStatus.DENIED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.DENIED: frozenset(),
}

REPORT_BUCKETS: Dict[RequestStatus, ReportStatus] = {
    RequestStatus.PENDING: ReportStatus.PENDING,
    RequestStatus.IN_PROGRESS: ReportStatus.PENDING,
    RequestStatus.COMPLETED: ReportStatus.RESOLVED,
    RequestStatus.DENIED: ReportStatus.DENIED,
}

# Older rows were written with the report vocabulary or the sleepover vocabulary
LEGACY_ALIASES: Dict[str, RequestStatus] = {
    "resolved": RequestStatus.COMPLETED,
    "approved": RequestStatus.COMPLETED,
    "rejected": RequestStatus.DENIED,
}


def parse_status(value: Union[str, RequestStatus]) -> RequestStatus:
    """
    Convert a stored status string to the canonical enum, accepting legacy aliases

    Raises:
        InvalidTransitionError: If the value is not a known status
    """
    if isinstance(value, RequestStatus):
        return value
    if value in LEGACY_ALIASES:
        return LEGACY_ALIASES[value]
    try:
        return RequestStatus(value)
    except ValueError:
        raise InvalidTransitionError("?", str(value))


def is_terminal(status: RequestStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: RequestStatus, requested: RequestStatus) -> bool:
    return requested in TRANSITIONS[current]


def validate_transition(
    current: Union[str, RequestStatus], requested: Union[str, RequestStatus]
) -> RequestStatus:
    """
    Check a status change against the transition table

    Returns:
        The requested status as a RequestStatus

    Raises:
        InvalidTransitionError: Unknown status, backward move, no-op, or move out of a terminal state
    """
    current_status = parse_status(current)
    try:
        requested_status = RequestStatus(requested)
    except ValueError:
        raise InvalidTransitionError(current_status.value, str(requested))

    if not can_transition(current_status, requested_status):
        raise InvalidTransitionError(current_status.value, requested_status.value)
    return requested_status


def report_bucket(status: Union[str, RequestStatus]) -> ReportStatus:
    """Map a request status to the report bucket it is counted in"""
    return REPORT_BUCKETS[parse_status(status)]
