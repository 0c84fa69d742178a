"""Booking lifecycle state machine.

The whole transition space lives in ``TRANSITIONS``. A ``(status, action)``
pair missing from the table is rejected, so adding a status only needs a new
row here.
"""
from typing import Dict, FrozenSet, Union

from bulkwaste.exceptions import InvalidTransition
from .value_objects import BookingAction, BookingStatus

TRANSITIONS: Dict[BookingStatus, Dict[BookingAction, BookingStatus]] = {
    BookingStatus.RECEIVED: {
        BookingAction.ASSIGN: BookingStatus.ASSIGNED,
        BookingAction.CANCEL: BookingStatus.CANCELLED,
    },
    BookingStatus.ASSIGNED: {
        BookingAction.START: BookingStatus.IN_PROGRESS,
        BookingAction.CANCEL: BookingStatus.CANCELLED,
    },
    BookingStatus.IN_PROGRESS: {
        BookingAction.COMPLETE: BookingStatus.COMPLETED,
        BookingAction.CANCEL: BookingStatus.CANCELLED,
    },
    BookingStatus.COMPLETED: {},
    BookingStatus.CANCELLED: {},
}


def _as_action(action: Union[BookingAction, str]) -> BookingAction:
    if isinstance(action, BookingAction):
        return action
    try:
        return BookingAction(str(action).lower())
    except ValueError:
        raise ValueError(f"Unknown booking action: {action}")


def transition(current: BookingStatus, action: Union[BookingAction, str]) -> BookingStatus:
    action = _as_action(action)
    next_status = TRANSITIONS[current].get(action)
    if next_status is None:
        raise InvalidTransition(current.value, action.value)
    return next_status


def allowed_actions(status: BookingStatus) -> FrozenSet[BookingAction]:
    return frozenset(TRANSITIONS[status])


def is_terminal(status: BookingStatus) -> bool:
    return not TRANSITIONS[status]
