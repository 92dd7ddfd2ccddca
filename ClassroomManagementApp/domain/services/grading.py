"""Pure derivation functions for lateness, penalties and grades.

Nothing here touches the database. The submission service calls
`derive_on_submit` right before persisting; serializers call the read-side
helpers (`final_grade`, `grade_percentage`, `is_overdue`, `days_until_due`)
so the computed values are never stored and never stale.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from ClassroomManagementApp.core.choices import AssignmentStatus, SubmissionStatus

ONE_DAY = timedelta(days=1)
CENTS = Decimal("0.01")


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def late_by_days(submitted_at: datetime, due_date: datetime) -> int:
    """Ceiling of the day gap between submission and due date (0 when on time)."""
    if submitted_at <= due_date:
        return 0
    return math.ceil(abs(submitted_at - due_date) / ONE_DAY)


def late_penalty(penalty_per_day, days_late: int) -> Decimal:
    """Penalty in points: per-day penalty times days late. Not capped."""
    if days_late <= 0:
        return Decimal("0")
    per_day = _as_decimal(penalty_per_day or 0)
    if per_day <= 0:
        return Decimal("0")
    return per_day * days_late


def derive_on_submit(submission, assignment, now: datetime) -> bool:
    """Stamp submission time and lateness on the first move into `submitted`.

    Fires only when the submission is `submitted` and `submitted_at` is still
    unset, so retried or repeated saves never re-stamp or re-penalize.
    Returns True when the derivation ran.
    """
    if submission.status != SubmissionStatus.SUBMITTED or submission.submitted_at is not None:
        return False
    submission.submitted_at = now
    days = late_by_days(now, assignment.due_date)
    submission.is_late = days > 0
    submission.late_by_days = days
    submission.penalty_applied = late_penalty(assignment.late_submission_penalty, days)
    return True


def final_grade(grade, penalty_applied) -> Decimal | None:
    """Raw grade minus the late penalty, floored at zero, rounded to 2 places."""
    if grade is None:
        return None
    value = _as_decimal(grade) - _as_decimal(penalty_applied or 0)
    return max(Decimal("0"), value).quantize(CENTS, rounding=ROUND_HALF_UP)


def grade_percentage(grade, penalty_applied, total_points) -> int | None:
    """Final grade as a whole-number percentage of the assignment's points."""
    final = final_grade(grade, penalty_applied)
    if final is None or not total_points:
        return None
    ratio = final / _as_decimal(total_points) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_overdue(assignment, now: datetime) -> bool:
    return now > assignment.due_date and assignment.status != AssignmentStatus.CLOSED


def days_until_due(assignment, now: datetime) -> int:
    """Whole days left until the due date (ceiling); negative once overdue."""
    return math.ceil((assignment.due_date - now) / ONE_DAY)
