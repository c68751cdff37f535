from __future__ import annotations

from typing import Optional, Union

from .schemas import SubjectStatus


def next_status(current: Optional[Union[SubjectStatus, str]]) -> SubjectStatus:
    """Status of a subject after a completed grading run.

    ``getting_to_know_you`` moves to ``lets_bridge_gaps``; there is no way back.
    Unknown or missing statuses are treated as a fresh subject.
    """
    try:
        status = SubjectStatus(current) if current is not None else SubjectStatus.getting_to_know_you
    except ValueError:
        status = SubjectStatus.getting_to_know_you
    if status is SubjectStatus.getting_to_know_you:
        return SubjectStatus.lets_bridge_gaps
    return status
